"""
Registry of single-test diagnostics.

Each entry is a callable ``(FittedModel, alpha) -> DiagnosticResult``.
Callers compose the tests they need with :func:`run_diagnostics` instead
of going through one fixed pipeline.

Examples
--------
>>> results = run_diagnostics(model, ['durbin_watson', 'shapiro_wilk'])
>>> results['durbin_watson'].decision

>>> @register_diagnostic('durbin_watson_two_sided')
... def dw_two_sided(model, alpha):
...     return durbin_watson_test(model, alpha, alternative='two-sided')
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Optional

from ._utils import check_alpha
from .exceptions import DegenerateModelError
from .inference import omnibus_f_test
from .lm import FittedModel
from .residuals import breusch_pagan_test, durbin_watson_test, shapiro_wilk_test
from .results import DiagnosticResult
from .thresholds import ALPHA


Diagnostic = Callable[[FittedModel, float], DiagnosticResult]

_REGISTRY: Dict[str, Diagnostic] = {}


def register_diagnostic(name: str, replace: bool = False):
    """Decorator adding a diagnostic under ``name``."""
    def decorator(func: Diagnostic) -> Diagnostic:
        if name in _REGISTRY and not replace:
            raise ValueError(f"Diagnostic '{name}' is already registered")
        _REGISTRY[name] = func
        return func
    return decorator


def get_diagnostic(name: str) -> Diagnostic:
    try:
        return _REGISTRY[name]
    except KeyError:
        raise KeyError(
            f"Unknown diagnostic: '{name}'. "
            f"Available: {', '.join(available_diagnostics())}"
        ) from None


def available_diagnostics() -> List[str]:
    return list(_REGISTRY)


@register_diagnostic('omnibus_f')
def _omnibus_f(model: FittedModel, alpha: float) -> DiagnosticResult:
    result = omnibus_f_test(model, alpha)
    if result is None:
        raise DegenerateModelError("Intercept-only model has no omnibus F-test")
    return result


@register_diagnostic('durbin_watson')
def _durbin_watson(model: FittedModel, alpha: float) -> DiagnosticResult:
    return durbin_watson_test(model, alpha)


@register_diagnostic('breusch_pagan')
def _breusch_pagan(model: FittedModel, alpha: float) -> DiagnosticResult:
    return breusch_pagan_test(model, alpha)


@register_diagnostic('shapiro_wilk')
def _shapiro_wilk(model: FittedModel, alpha: float) -> DiagnosticResult:
    return shapiro_wilk_test(model, alpha)


def run_diagnostics(
    model: FittedModel,
    names: Optional[Iterable[str]] = None,
    alpha: float = ALPHA,
    max_workers: Optional[int] = None,
) -> Dict[str, DiagnosticResult]:
    """
    Run registered diagnostics against one fitted model.

    Parameters
    ----------
    model : FittedModel
    names : iterable of str, optional
        Diagnostics to run, in order (default: all registered)
    alpha : float
        Significance level passed to each diagnostic
    max_workers : int, optional
        Run on a thread pool of this size; sequential when None

    Returns
    -------
    dict
        name -> DiagnosticResult, in the requested order

    Raises
    ------
    The first exception raised by any diagnostic.
    """
    alpha = check_alpha(alpha)
    selected = list(names) if names is not None else available_diagnostics()
    funcs = [get_diagnostic(name) for name in selected]

    if max_workers is None:
        return {name: func(model, alpha) for name, func in zip(selected, funcs)}

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(func, model, alpha) for func in funcs]
        return {name: future.result() for name, future in zip(selected, futures)}
