"""
Per-observation influence measures.

Leverage, Cook's distance and externally studentized residuals are all
closed-form functions of the residuals and the hat diagonal, so one
vectorised pass suffices; no leave-one-out refits are made. The
leave-one-out residual variance uses

    sigma_(i)^2 = ((n - p) sigma^2 - e_i^2 / (1 - h_ii)) / (n - p - 1)
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Optional, Tuple

from .exceptions import DegenerateModelError
from .lm import FittedModel
from .thresholds import (
    COOKS_CONVENTIONAL,
    STUDENTIZED_THRESHOLD,
    cooks_small_sample,
    leverage_thresholds,
)


# h_ii this close to 1 means the observation is fitted exactly
_UNIT_LEVERAGE = 1.0 - 1e-10


@dataclass(frozen=True)
class InfluenceDiagnosticsReport:
    """
    Influence measures, one entry per retained observation in row order.

    Thresholds are reported, not applied: callers choose the convention.
    """
    leverage: np.ndarray
    cooks_distance: np.ndarray
    studentized_residuals: np.ndarray
    row_index: Tuple
    leverage_threshold: float
    leverage_threshold_conservative: float
    cooks_threshold: float
    cooks_threshold_conventional: float
    studentized_threshold: float

    def high_leverage(self, conservative: bool = False) -> np.ndarray:
        """Positions with h_ii above 2p/n (or 3p/n when conservative)."""
        cut = (
            self.leverage_threshold_conservative if conservative
            else self.leverage_threshold
        )
        return np.flatnonzero(self.leverage > cut)

    def influential(self, threshold: Optional[float] = None) -> np.ndarray:
        """Positions with Cook's distance above ``threshold`` (default 4/n)."""
        cut = self.cooks_threshold if threshold is None else threshold
        with np.errstate(invalid='ignore'):
            return np.flatnonzero(self.cooks_distance > cut)

    def outliers(self, threshold: Optional[float] = None) -> np.ndarray:
        """Positions with |studentized residual| above ``threshold`` (default 2)."""
        cut = self.studentized_threshold if threshold is None else threshold
        with np.errstate(invalid='ignore'):
            return np.flatnonzero(np.abs(self.studentized_residuals) > cut)

    def to_frame(self) -> pd.DataFrame:
        """Measures as a DataFrame indexed by the original row labels."""
        return pd.DataFrame({
            'leverage': self.leverage,
            'cooks_distance': self.cooks_distance,
            'studentized_residual': self.studentized_residuals,
        }, index=list(self.row_index))


def diagnose_influence(model: FittedModel) -> InfluenceDiagnosticsReport:
    """
    Leverage, Cook's distance and studentized residuals.

    Observations with unit leverage get NaN Cook's distance and
    studentized residual.

    Raises
    ------
    DegenerateModelError
        n - p - 1 <= 0 (the leave-one-out variance is undefined)
    """
    n, p = model.n, model.p
    df = model.df_residual
    if df - 1 <= 0:
        raise DegenerateModelError(
            f"Influence measures need n - p - 1 > 0 (n={n}, p={p})"
        )

    e = np.asarray(model.residuals)
    h = np.asarray(model.hat_diagonal).copy()
    sigma2 = model.sigma2

    exact = h >= _UNIT_LEVERAGE
    one_minus_h = np.where(exact, np.nan, 1.0 - h)

    sigma2_loo = (df * sigma2 - e ** 2 / one_minus_h) / (df - 1)
    sigma2_loo = np.maximum(sigma2_loo, 0.0)

    # A perfect fit (sigma2 == 0) leaves both measures undefined
    with np.errstate(divide='ignore', invalid='ignore'):
        cooks = (e ** 2 / (p * sigma2)) * (h / one_minus_h ** 2)
        studentized = e / np.sqrt(sigma2_loo * one_minus_h)

    lev, lev_conservative = leverage_thresholds(n, p)

    return InfluenceDiagnosticsReport(
        leverage=h,
        cooks_distance=cooks,
        studentized_residuals=studentized,
        row_index=model.design.row_index,
        leverage_threshold=lev,
        leverage_threshold_conservative=lev_conservative,
        cooks_threshold=cooks_small_sample(n),
        cooks_threshold_conventional=COOKS_CONVENTIONAL,
        studentized_threshold=STUDENTIZED_THRESHOLD,
    )
