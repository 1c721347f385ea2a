"""
Core algorithms (backend-agnostic).
"""

from .qr import (
    QRDecomposition,
    qr_decomposition_with_pivoting,
    implicated_columns,
    describe_dependency,
)
from .conditioning import scaled_condition_number, belsley_collinearity

__all__ = [
    "QRDecomposition",
    "qr_decomposition_with_pivoting",
    "implicated_columns",
    "describe_dependency",
    "scaled_condition_number",
    "belsley_collinearity",
]
