"""
Ordinary least squares fit of a design matrix.

``fit`` produces the immutable ``FittedModel`` every diagnostic consumes:
coefficients, their covariance, residuals and the hat diagonal, all read
off a single pivoted QR decomposition.
"""

import warnings
import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union
from scipy import stats
from scipy.linalg import solve_triangular

from ._backends import get_backend
from ._core.conditioning import scaled_condition_number
from ._utils import check_alpha, check_array
from .design import DesignMatrix, Factor, ModelSpec, build_design
from .exceptions import IllConditionedWarning, InsufficientDataError
from .thresholds import ALPHA, CONDITION_WARN


def _read_only(a: np.ndarray) -> np.ndarray:
    a.flags.writeable = False
    return a


@dataclass(frozen=True)
class FittedModel:
    """
    Fitted linear model.

    Created once by :func:`fit`; every array is read-only.

    Attributes
    ----------
    design : DesignMatrix
        Design the model was fitted on
    coefficients : ndarray, shape (p,)
        OLS estimates, in design column order
    covariance : ndarray, shape (p, p)
        sigma^2 (X'X)^-1
    fitted_values, residuals, hat_diagonal : ndarray, shape (n,)
        Per-observation outputs, in original row order
    df_residual : int
        n - p
    rss, tss : float
        Residual and total (centered) sums of squares
    qr_Q, qr_R, qr_pivot : ndarray
        Economic pivoted QR of the design, X[:, pivot] = Q R
    """
    design: DesignMatrix
    coefficients: np.ndarray
    covariance: np.ndarray
    fitted_values: np.ndarray
    residuals: np.ndarray
    hat_diagonal: np.ndarray
    df_residual: int
    rss: float
    tss: float
    rank: int
    qr_Q: np.ndarray
    qr_R: np.ndarray
    qr_pivot: np.ndarray
    backend_name: str = 'cpu_fp64'

    @property
    def n(self) -> int:
        return self.design.n

    @property
    def p(self) -> int:
        return self.design.p

    @property
    def column_names(self) -> Tuple[str, ...]:
        return self.design.column_names

    @property
    def sigma2(self) -> float:
        """Residual variance RSS / (n - p)."""
        if self.df_residual <= 0:
            return np.nan
        return self.rss / self.df_residual

    @property
    def sigma(self) -> float:
        """Residual standard error."""
        return float(np.sqrt(self.sigma2))

    @property
    def standard_errors(self) -> np.ndarray:
        return np.sqrt(np.diag(self.covariance))

    @property
    def coef(self) -> pd.Series:
        """Named coefficients (pandas Series)."""
        return pd.Series(self.coefficients, index=list(self.column_names))

    def conf_int(self, alpha: float = ALPHA) -> pd.DataFrame:
        """
        Confidence intervals for coefficients.

        Parameters
        ----------
        alpha : float
            Significance level (default: 0.05 for 95% CI)

        Returns
        -------
        DataFrame
            Confidence intervals with columns 'lower' and 'upper'
        """
        alpha = check_alpha(alpha)
        t_crit = stats.t.ppf(1 - alpha / 2, self.df_residual)
        se = self.standard_errors
        return pd.DataFrame({
            'lower': self.coefficients - t_crit * se,
            'upper': self.coefficients + t_crit * se,
        }, index=list(self.column_names))

    def predict(self, X: np.ndarray) -> np.ndarray:
        """
        Evaluate the fit on new rows laid out like the design (intercept included).
        """
        X = check_array(X, 'X')
        if X.shape[1] != self.p:
            raise ValueError(
                f"X has {X.shape[1]} columns, expected {self.p} "
                f"({', '.join(self.column_names)})"
            )
        return X @ self.coefficients

    def __repr__(self):
        r2 = 1.0 - self.rss / self.tss if self.tss > 0 else np.nan
        return f"FittedModel(n={self.n}, p={self.p}, R²={r2:.3f})"


def fit(
    design: DesignMatrix,
    tol: Optional[float] = None,
    backend: str = 'auto',
) -> FittedModel:
    """
    Fit ordinary least squares by pivoted QR.

    Parameters
    ----------
    design : DesignMatrix
        Output of :func:`build_design` or :meth:`DesignMatrix.from_arrays`
    tol : float, optional
        Relative pivot tolerance for rank detection (default 1e-10)
    backend : str
        Computational backend ('auto' or 'cpu')

    Returns
    -------
    FittedModel

    Raises
    ------
    InsufficientDataError
        Fewer observations than columns
    RankDeficientError
        Columns of the design are linearly dependent; names them

    Warns
    -----
    IllConditionedWarning
        The unit-scaled design has condition number above 1e8
    """
    X, y = design.X, design.y
    n, p = X.shape
    if n < p:
        raise InsufficientDataError(
            f"{n} observations cannot identify {p} parameters"
        )

    engine = get_backend(backend)
    result = engine.fit_linear_model(
        X, y,
        tol=tol,
        singular_ok=False,
        column_names=design.column_names,
    )
    qr = result.qr

    cond = scaled_condition_number(X, qr)
    if cond > CONDITION_WARN:
        warnings.warn(
            f"Design is ill-conditioned (κ = {cond:.2e} after column scaling); "
            f"coefficients and standard errors may be unstable.",
            IllConditionedWarning,
            stacklevel=2,
        )

    residuals = result.residuals
    rss = float(residuals @ residuals)
    if design.has_intercept:
        tss = float(np.sum((y - np.mean(y)) ** 2))
    else:
        tss = float(y @ y)

    # Leverage of observation i = squared norm of row i of Q
    hat = np.einsum('ij,ij->i', qr.Q, qr.Q)

    # Var(β) = σ² (X'X)⁻¹ = σ² P R⁻¹ R⁻ᵀ P'
    df_residual = result.df_residual
    sigma2 = rss / df_residual if df_residual > 0 else np.nan
    R_inv = solve_triangular(qr.R, np.eye(p), lower=False)
    covariance = np.empty((p, p), dtype=np.float64)
    covariance[np.ix_(qr.pivot, qr.pivot)] = (R_inv @ R_inv.T) * sigma2

    return FittedModel(
        design=design,
        coefficients=_read_only(result.coef),
        covariance=_read_only(covariance),
        fitted_values=_read_only(result.fitted_values),
        residuals=_read_only(residuals),
        hat_diagonal=_read_only(hat),
        df_residual=df_residual,
        rss=rss,
        tss=tss,
        rank=result.rank,
        qr_Q=_read_only(qr.Q),
        qr_R=_read_only(qr.R),
        qr_pivot=_read_only(qr.pivot),
        backend_name=engine.name,
    )


def lm(
    response: str,
    covariates: Sequence[str] = (),
    factors: Sequence[Union[str, Factor]] = (),
    data=None,
    **kwargs
) -> FittedModel:
    """
    Build the design and fit it in one call (like R's lm()).

    Parameters
    ----------
    response : str
        Response column
    covariates : sequence of str
        Continuous predictor columns
    factors : sequence of str or Factor
        Categorical predictor columns
    data : DataFrame
        Dataset
    **kwargs
        Passed to :func:`fit` (tol, backend)

    Examples
    --------
    >>> model = lm('cognitive_function_scores',
    ...            covariates=['systolic_blood_pressure', 'cholesterol_levels'],
    ...            factors=['education', 'income_level'],
    ...            data=data)
    >>> model.coef
    """
    if data is None:
        raise ValueError("Must provide data")
    spec = ModelSpec(response=response, covariates=covariates, factors=factors)
    design = build_design(data, spec, tol=kwargs.get('tol'))
    return fit(design, **kwargs)
