"""
QR decomposition with column pivoting.

Backend-agnostic interface to QR factorization, plus the helpers that
read rank and linear dependencies off the triangular factor.
"""

import numpy as np
from typing import List, Optional, Sequence
from dataclasses import dataclass
from scipy.linalg import solve_triangular


@dataclass(frozen=True)
class QRDecomposition:
    """Result of QR decomposition with pivoting (X[:, pivot] = Q @ R)."""
    Q: np.ndarray            # Orthonormal factor, economic (n x p)
    R: np.ndarray            # Upper triangular matrix R (p x p)
    pivot: np.ndarray        # Pivot indices (0-indexed)
    rank: int                # Determined rank
    tol: float               # Relative tolerance used

    @property
    def dependent(self) -> np.ndarray:
        """Original indices of columns beyond the numerical rank."""
        return np.sort(self.pivot[self.rank:])


def qr_decomposition_with_pivoting(
    X: np.ndarray,
    tol: Optional[float] = None,
    backend = None,
) -> QRDecomposition:
    """
    QR decomposition with column pivoting.

    Delegates to backend-specific implementation.

    Parameters
    ----------
    X : ndarray, shape (n, p)
        Matrix to decompose
    tol : float, optional
        Relative tolerance for rank determination
    backend : Backend, optional
        Computational backend

    Returns
    -------
    result : QRDecomposition
        QR decomposition with pivoting
    """
    if backend is None:
        from .._backends import get_backend
        backend = get_backend('cpu')

    return backend.qr_with_pivoting(X, tol=tol)


def numerical_rank(R: np.ndarray, tol: float) -> int:
    """Count pivots with |R_kk| >= tol * |R_00|."""
    R_diag = np.abs(np.diag(R))
    if R_diag.size == 0 or R_diag[0] == 0:
        return 0
    return int(np.sum(R_diag >= tol * R_diag[0]))


def implicated_columns(qr: QRDecomposition) -> List[int]:
    """
    Columns taking part in a linear dependency, in original order.

    Each dependent column (pivot position >= rank) is expressed as a
    combination of the retained columns by solving R11 z = R12[:, k];
    retained columns whose weight is non-negligible relative to the largest
    weight are implicated along with the dependent column itself.
    """
    rank = qr.rank
    p = qr.R.shape[1]
    if rank >= p:
        return []

    involved = set(int(j) for j in qr.pivot[rank:])
    if rank > 0:
        R11 = qr.R[:rank, :rank]
        R12 = qr.R[:rank, rank:]
        Z = solve_triangular(R11, R12, lower=False)
        cutoff = np.sqrt(np.finfo(np.float64).eps)
        for k in range(Z.shape[1]):
            z = np.abs(Z[:, k])
            scale = z.max()
            involved.update(int(j) for j in qr.pivot[:rank][z > cutoff * scale])
    return sorted(involved)


def describe_dependency(
    qr: QRDecomposition,
    column_names: Sequence[str],
) -> List[str]:
    """Names of the implicated columns."""
    return [column_names[j] for j in implicated_columns(qr)]
