"""
Hypothesis tests on the fitted coefficients.

Per-coefficient t-tests, the omnibus F-test against the intercept-only
model, R² / adjusted R², and the sequential (type I) ANOVA table.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Optional, Tuple
from scipy import stats
from scipy.linalg import qr

from ._utils import check_alpha
from .exceptions import DegenerateModelError
from .lm import FittedModel
from .results import DiagnosticResult
from .thresholds import ALPHA


@dataclass(frozen=True)
class InferenceReport:
    """Coefficient tests and overall fit of one model."""
    coefficient_tests: Tuple[DiagnosticResult, ...]
    omnibus_test: Optional[DiagnosticResult]
    r_squared: float
    adjusted_r_squared: float
    column_names: Tuple[str, ...]
    estimates: np.ndarray
    standard_errors: np.ndarray

    def coefficient_table(self) -> pd.DataFrame:
        """Estimate, Std. Error, t value and Pr(>|t|) per coefficient."""
        return pd.DataFrame({
            'Estimate': self.estimates,
            'Std. Error': self.standard_errors,
            't value': [t.statistic for t in self.coefficient_tests],
            'Pr(>|t|)': [t.p_value for t in self.coefficient_tests],
        }, index=list(self.column_names))


def _check_df(model: FittedModel):
    if model.df_residual <= 0:
        raise DegenerateModelError(
            f"No residual degrees of freedom (n={model.n}, p={model.p})"
        )


def _model_df(model: FittedModel) -> int:
    return model.p - 1 if model.design.has_intercept else model.p


def omnibus_f_test(model: FittedModel, alpha: float = ALPHA) -> Optional[DiagnosticResult]:
    """
    F-test of all slopes against the intercept-only model.

    Returns None for an intercept-only model (nothing to test).

    Raises
    ------
    DegenerateModelError
        Residual degrees of freedom <= 0, or the response is constant
    """
    _check_df(model)
    df_model = _model_df(model)
    if df_model == 0:
        return None
    if model.tss == 0:
        raise DegenerateModelError("Response has no variation; F-test is undefined")

    # Rounding can push tss - rss just below zero
    ess = max(model.tss - model.rss, 0.0)
    if model.rss == 0:
        f_statistic = np.inf
    else:
        f_statistic = (ess / df_model) / (model.rss / model.df_residual)

    return DiagnosticResult(
        name="Omnibus F-test",
        statistic=float(f_statistic),
        p_value=float(stats.f.sf(f_statistic, df_model, model.df_residual)),
        df=(df_model, model.df_residual),
        alpha=check_alpha(alpha),
        null_hypothesis="all slope coefficients are zero",
        method="F distribution",
    )


def summarize(model: FittedModel, alpha: float = ALPHA) -> InferenceReport:
    """
    Coefficient t-tests, omnibus F-test and R².

    Parameters
    ----------
    model : FittedModel
    alpha : float
        Significance level for the decisions

    Returns
    -------
    InferenceReport

    Raises
    ------
    DegenerateModelError
        Residual degrees of freedom <= 0, or the response is constant
    """
    alpha = check_alpha(alpha)
    _check_df(model)
    if model.tss == 0:
        raise DegenerateModelError("Response has no variation; R² is undefined")

    se = model.standard_errors
    with np.errstate(divide='ignore', invalid='ignore'):
        t_values = model.coefficients / se
    p_values = 2 * stats.t.sf(np.abs(t_values), model.df_residual)

    tests = tuple(
        DiagnosticResult(
            name=f"t-test: {name}",
            statistic=float(t),
            p_value=float(pv),
            df=(model.df_residual,),
            alpha=alpha,
            null_hypothesis=f"coefficient of {name} is zero",
            method="Student t, two-sided",
        )
        for name, t, pv in zip(model.column_names, t_values, p_values)
    )

    r_squared = 1.0 - model.rss / model.tss
    n = model.n
    df_int = 1 if model.design.has_intercept else 0
    adj_r_squared = 1.0 - (1.0 - r_squared) * (n - df_int) / model.df_residual

    return InferenceReport(
        coefficient_tests=tests,
        omnibus_test=omnibus_f_test(model, alpha),
        r_squared=float(r_squared),
        adjusted_r_squared=float(adj_r_squared),
        column_names=model.column_names,
        estimates=model.coefficients,
        standard_errors=se,
    )


def anova_table(model: FittedModel) -> pd.DataFrame:
    """
    Sequential (type I) ANOVA table, like R's ``anova(lm)``.

    Each term's sum of squares is the squared norm of its block of the
    effects vector Q'y from an unpivoted QR in term order.

    Returns
    -------
    DataFrame
        Columns 'Df', 'Sum Sq', 'Mean Sq', 'F value', 'Pr(>F)'; one row
        per term plus 'Residuals'
    """
    _check_df(model)
    design = model.design
    Q, _ = qr(design.X, mode='economic')
    effects = Q.T @ design.y

    sigma2 = model.sigma2
    rows = {}
    for term, columns in design.terms.items():
        if term == "Intercept":
            continue
        ss = float(np.sum(effects[list(columns)] ** 2))
        df = len(columns)
        ms = ss / df
        f_value = ms / sigma2 if sigma2 > 0 else np.inf
        rows[term] = (df, ss, ms, f_value, stats.f.sf(f_value, df, model.df_residual))

    rows["Residuals"] = (model.df_residual, model.rss, sigma2, np.nan, np.nan)

    return pd.DataFrame.from_dict(
        rows,
        orient='index',
        columns=['Df', 'Sum Sq', 'Mean Sq', 'F value', 'Pr(>F)'],
    )
