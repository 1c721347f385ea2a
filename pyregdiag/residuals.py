"""
Residual-based assumption checks.

- Durbin-Watson: first-order autocorrelation of residuals in row order
- Breusch-Pagan (Koenker's studentized form): heteroscedasticity
- Shapiro-Wilk: normality of residuals

All three read the fitted model only; the Breusch-Pagan auxiliary
regression and the Durbin-Watson null moments are projected through the
model's Q factor instead of refitting.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from scipy import stats

from ._utils import check_alpha, check_vector
from .exceptions import DegenerateModelError, SampleSizeError
from .lm import FittedModel
from .results import DiagnosticResult
from .thresholds import ALPHA, SHAPIRO_MAX_N, SHAPIRO_MIN_N


DW_ALTERNATIVES = ('greater', 'less', 'two-sided')


@dataclass(frozen=True)
class ResidualDiagnosticsReport:
    durbin_watson: DiagnosticResult
    breusch_pagan: DiagnosticResult
    shapiro_wilk: DiagnosticResult

    def to_frame(self) -> pd.DataFrame:
        tests = (self.durbin_watson, self.breusch_pagan, self.shapiro_wilk)
        return pd.DataFrame([t.to_dict() for t in tests]).set_index('name')


def durbin_watson_statistic(residuals) -> float:
    """
    DW = sum (e_i - e_{i-1})^2 / sum e_i^2, in the order given.

    Near 2: no autocorrelation; towards 0: positive; towards 4: negative.
    """
    e = check_vector(residuals, 'residuals')
    if len(e) < 2:
        raise SampleSizeError(
            f"Durbin-Watson needs at least 2 residuals, got {len(e)}",
            n=len(e), minimum=2,
        )
    ss = float(e @ e)
    if ss == 0:
        raise DegenerateModelError("All residuals are zero; Durbin-Watson is undefined")
    return float(np.sum(np.diff(e) ** 2) / ss)


def _apply_difference_operator(Q: np.ndarray) -> np.ndarray:
    """A @ Q for the tridiagonal A with DW = e'Ae / e'e."""
    AQ = 2.0 * Q
    AQ[1:] -= Q[:-1]
    AQ[:-1] -= Q[1:]
    AQ[0] = Q[0] - Q[1]
    AQ[-1] = Q[-1] - Q[-2]
    return AQ


def durbin_watson_moments(model: FittedModel) -> tuple:
    """
    Exact mean and variance of DW under independent normal errors.

    Uses tr(MA) and tr(MAMA) with M = I - QQ', expanded so only n x p
    products are formed.
    """
    n, df = model.n, model.df_residual
    Q = np.asarray(model.qr_Q)
    AQ = _apply_difference_operator(Q)
    B = Q.T @ AQ

    tr_MA = 2.0 * (n - 1) - np.trace(B)
    tr_MAMA = 2.0 * (3 * n - 4) - 2.0 * np.sum(AQ * AQ) + np.sum(B * B.T)

    mean = tr_MA / df
    var = 2.0 / (df * (df + 2)) * (tr_MAMA - tr_MA * mean)
    return float(mean), float(var)


def durbin_watson_test(
    model: FittedModel,
    alpha: float = ALPHA,
    alternative: str = 'greater',
) -> DiagnosticResult:
    """
    Durbin-Watson test on the model residuals in original row order.

    The p-value uses a normal approximation with the exact null mean and
    variance of DW given the design.

    Parameters
    ----------
    model : FittedModel
    alpha : float
    alternative : {'greater', 'less', 'two-sided'}
        'greater' tests for positive autocorrelation (small DW)
    """
    if alternative not in DW_ALTERNATIVES:
        raise ValueError(
            f"alternative must be one of {DW_ALTERNATIVES}, got '{alternative}'"
        )
    if model.df_residual <= 0:
        raise DegenerateModelError(
            f"No residual degrees of freedom (n={model.n}, p={model.p})"
        )

    dw = durbin_watson_statistic(model.residuals)
    mean, var = durbin_watson_moments(model)
    z = (dw - mean) / np.sqrt(var)

    if alternative == 'greater':
        p_value = stats.norm.cdf(z)
    elif alternative == 'less':
        p_value = stats.norm.sf(z)
    else:
        p_value = 2 * min(stats.norm.cdf(z), stats.norm.sf(z))

    return DiagnosticResult(
        name="Durbin-Watson",
        statistic=dw,
        p_value=float(p_value),
        alpha=check_alpha(alpha),
        null_hypothesis="residuals are not autocorrelated",
        method=(
            f"normal approximation with exact null moments "
            f"(mean={mean:.4f}, var={var:.4g}), alternative={alternative}"
        ),
    )


def breusch_pagan_test(model: FittedModel, alpha: float = ALPHA) -> DiagnosticResult:
    """
    Breusch-Pagan test, Koenker's studentized version.

    LM = n R² of e² regressed on the design, chi-squared with p - 1 df.
    """
    df = model.p - 1
    if df <= 0:
        raise DegenerateModelError(
            "Breusch-Pagan needs at least one predictor besides the intercept"
        )

    u = np.asarray(model.residuals) ** 2
    centered = u - u.mean()
    tss_aux = float(centered @ centered)
    if tss_aux == 0:
        raise DegenerateModelError(
            "Squared residuals are constant; Breusch-Pagan is undefined"
        )

    Q = np.asarray(model.qr_Q)
    aux_resid = u - Q @ (Q.T @ u)
    r_squared = 1.0 - float(aux_resid @ aux_resid) / tss_aux
    statistic = model.n * r_squared

    return DiagnosticResult(
        name="Breusch-Pagan",
        statistic=float(statistic),
        p_value=float(stats.chi2.sf(statistic, df)),
        df=(df,),
        alpha=check_alpha(alpha),
        null_hypothesis="residual variance is constant (homoscedasticity)",
        method="studentized (Koenker) LM statistic, chi-squared",
    )


def shapiro_wilk(x, alpha: float = ALPHA, name: str = "Shapiro-Wilk") -> DiagnosticResult:
    """
    Shapiro-Wilk normality test of a sample (Royston's approximation).

    Raises
    ------
    SampleSizeError
        n outside [3, 5000]
    DegenerateModelError
        All values identical
    """
    x = check_vector(x, 'x')
    n = len(x)
    if not SHAPIRO_MIN_N <= n <= SHAPIRO_MAX_N:
        raise SampleSizeError(
            f"Shapiro-Wilk requires {SHAPIRO_MIN_N} <= n <= {SHAPIRO_MAX_N}, got n={n}",
            n=n, minimum=SHAPIRO_MIN_N, maximum=SHAPIRO_MAX_N,
        )
    if np.ptp(x) == 0:
        raise DegenerateModelError("All values are identical; Shapiro-Wilk is undefined")

    statistic, p_value = stats.shapiro(x)

    return DiagnosticResult(
        name=name,
        statistic=float(statistic),
        p_value=float(p_value),
        alpha=check_alpha(alpha),
        null_hypothesis="sample is drawn from a normal distribution",
        method="Royston (1995) approximation",
    )


def shapiro_wilk_test(model: FittedModel, alpha: float = ALPHA) -> DiagnosticResult:
    """Shapiro-Wilk test on the model residuals."""
    return shapiro_wilk(model.residuals, alpha=alpha)


def diagnose_residuals(
    model: FittedModel,
    alpha: float = ALPHA,
    alternative: str = 'greater',
) -> ResidualDiagnosticsReport:
    """
    Run Durbin-Watson, Breusch-Pagan and Shapiro-Wilk on the residuals.

    Parameters
    ----------
    model : FittedModel
    alpha : float
        Significance level for all three decisions
    alternative : str
        Durbin-Watson alternative hypothesis

    Returns
    -------
    ResidualDiagnosticsReport
    """
    return ResidualDiagnosticsReport(
        durbin_watson=durbin_watson_test(model, alpha, alternative),
        breusch_pagan=breusch_pagan_test(model, alpha),
        shapiro_wilk=shapiro_wilk_test(model, alpha),
    )
