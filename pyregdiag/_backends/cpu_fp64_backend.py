"""
CPU backend using NumPy + SciPy.

Householder QR with column pivoting through LAPACK (geqp3). Deterministic
and always FP64.
"""

import numpy as np
from scipy.linalg import qr, solve_triangular
from typing import Optional, Sequence

from .base import CPUBackend, LinearModelResult
from .._core.qr import QRDecomposition, numerical_rank, describe_dependency
from ..exceptions import RankDeficientError
from ..thresholds import RANK_TOL


class CPUBackendFP64(CPUBackend):
    """
    CPU backend using NumPy + SciPy.

    Reference implementation. Always uses FP64 precision.
    """

    def __init__(self):
        self.name = "cpu_fp64"
        self.precision = "fp64"

    def qr_with_pivoting(
        self,
        X: np.ndarray,
        tol: Optional[float] = None,
    ) -> QRDecomposition:
        """Economic pivoted QR via LAPACK."""
        X = np.asarray(X, dtype=np.float64)
        if tol is None:
            tol = RANK_TOL

        Q, R, P = qr(X, mode='economic', pivoting=True)

        return QRDecomposition(
            Q=Q,
            R=R,
            pivot=P.astype(np.int64),
            rank=numerical_rank(R, tol),
            tol=tol,
        )

    def fit_linear_model(
        self,
        X: np.ndarray,
        y: np.ndarray,
        tol: Optional[float] = None,
        singular_ok: bool = False,
        column_names: Optional[Sequence[str]] = None,
    ) -> LinearModelResult:
        """
        Fit linear model using NumPy/LAPACK.

        Complete implementation - all computation stays in NumPy.
        """
        X = np.asarray(X, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        n, p = X.shape

        if column_names is None:
            column_names = [f'x{j}' for j in range(p)]

        decomposition = self.qr_with_pivoting(X, tol=tol)
        rank = decomposition.rank

        if rank < p and not singular_ok:
            columns = describe_dependency(decomposition, column_names)
            raise RankDeficientError(
                f"Design matrix is rank deficient (rank {rank} < {p} columns); "
                f"linearly dependent columns: {', '.join(columns)}",
                columns=columns,
            )

        # Solve R β = Q'y
        qty = decomposition.Q.T @ y

        # Initialize coefficients (with NaN for aliased)
        coef = np.full(p, np.nan, dtype=np.float64)

        if rank > 0:
            # Back-solve for non-aliased coefficients
            coef_active = solve_triangular(
                decomposition.R[:rank, :rank],
                qty[:rank],
                lower=False
            )
            coef[decomposition.pivot[:rank]] = coef_active

        # Fitted values (aliased terms contribute nothing)
        valid_coef = ~np.isnan(coef)
        if np.any(valid_coef):
            fitted = X[:, valid_coef] @ coef[valid_coef]
        else:
            fitted = np.zeros(n, dtype=np.float64)

        residuals = y - fitted

        return LinearModelResult(
            coef=coef,
            residuals=residuals,
            fitted_values=fitted,
            rank=rank,
            df_residual=n - rank,
            qr=decomposition,
        )

    def get_device_info(self) -> dict:
        """Get backend information."""
        import scipy
        return {
            'backend': 'cpu',
            'precision': 'fp64',
            'library': f'NumPy {np.__version__}, SciPy {scipy.__version__}',
        }
