"""
Conditioning checks on the design matrix.

Columns are scaled to unit length before singular values are taken so the
numbers reflect near-collinearity rather than the units of measurement.
"""

import numpy as np
from typing import Tuple

from .qr import QRDecomposition


def scale_to_unit_length(X: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Divide each column by its Euclidean norm (zero columns left as-is)."""
    norms = np.linalg.norm(X, axis=0)
    safe = np.where(norms > 0, norms, 1.0)
    return X / safe, safe


def scaled_condition_number(X: np.ndarray, qr: QRDecomposition) -> float:
    """
    2-norm condition number of the column-equilibrated design.

    Uses X[:, pivot] = Q R, so the singular values of X D^-1 are those of
    R D_pivot^-1 and only a p x p SVD is needed.
    """
    _, norms = scale_to_unit_length(X)
    R_scaled = qr.R / norms[qr.pivot][np.newaxis, :]
    s = np.linalg.svd(R_scaled, compute_uv=False)
    if s.size == 0 or s[-1] == 0:
        return np.inf
    return float(s[0] / s[-1])


def belsley_collinearity(X: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Belsley-Kuh-Welsch condition indices and variance-decomposition proportions.

    Parameters
    ----------
    X : ndarray, shape (n, p)
        Design matrix including the intercept column

    Returns
    -------
    indices : ndarray, shape (p,)
        Condition index of each singular dimension, ascending
    proportions : ndarray, shape (p, p)
        Row k, column j: share of var(beta_j) attributable to dimension k
    """
    X_scaled, _ = scale_to_unit_length(X)
    _, s, Vt = np.linalg.svd(X_scaled, full_matrices=False)
    indices = s[0] / s

    # phi_jk = v_jk^2 / s_k^2, normalized over k for each coefficient j
    phi = (Vt.T ** 2) / (s ** 2)[np.newaxis, :]
    proportions = (phi / phi.sum(axis=1, keepdims=True)).T
    return indices, proportions
