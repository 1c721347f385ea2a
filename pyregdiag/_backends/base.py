"""
Abstract base classes for backends.

Defines the interface all backends must implement.
"""

from abc import ABC, abstractmethod
import numpy as np
from typing import Optional, Sequence
from dataclasses import dataclass

from .._core.qr import QRDecomposition


@dataclass(frozen=True)
class LinearModelResult:
    """Raw least-squares results (all numpy arrays)."""
    coef: np.ndarray
    residuals: np.ndarray
    fitted_values: np.ndarray
    rank: int
    df_residual: int
    qr: QRDecomposition


class BackendBase(ABC):
    """Abstract base class for all backends."""

    name: str = "base"

    @abstractmethod
    def qr_with_pivoting(
        self,
        X: np.ndarray,
        tol: Optional[float] = None,
    ) -> QRDecomposition:
        """
        Economic QR decomposition with column pivoting.

        Parameters
        ----------
        X : ndarray, shape (n, p)
            Matrix to decompose (n >= p)
        tol : float, optional
            Relative tolerance for rank determination

        Returns
        -------
        QRDecomposition
        """
        pass

    @abstractmethod
    def fit_linear_model(
        self,
        X: np.ndarray,
        y: np.ndarray,
        tol: Optional[float] = None,
        singular_ok: bool = False,
        column_names: Optional[Sequence[str]] = None,
    ) -> LinearModelResult:
        """
        Fit linear model - complete computation.

        Parameters
        ----------
        X : ndarray, shape (n, p)
            Design matrix (WITH intercept column)
        y : ndarray, shape (n,)
            Response vector
        tol : float, optional
            Relative tolerance for rank determination
        singular_ok : bool
            Allow singular fits; otherwise raise RankDeficientError
        column_names : sequence of str, optional
            Used to name the dependent columns in errors

        Returns
        -------
        LinearModelResult
        """
        pass

    @abstractmethod
    def get_device_info(self) -> dict:
        """Get backend information."""
        pass


class CPUBackend(BackendBase):
    """CPU backend base class (always FP64)."""
    pass
