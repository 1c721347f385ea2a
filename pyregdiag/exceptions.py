"""
Exception hierarchy.

Every computational failure of the diagnostics core is raised as one of
these. They all derive from ``ValueError`` so callers that only guard
against invalid fits keep working.
"""

from typing import Optional, Sequence


class RegressionDiagnosticsError(ValueError):
    """Base class for all pyregdiag errors."""


class MissingValueError(RegressionDiagnosticsError):
    """A variable referenced by the model is absent or unusable."""

    def __init__(self, message: str, variables: Sequence[str] = ()):
        super().__init__(message)
        self.variables = tuple(variables)


class InsufficientDataError(RegressionDiagnosticsError):
    """Fewer usable rows than model parameters."""


class RankDeficientError(InsufficientDataError):
    """
    Design (or auxiliary regression) is not of full column rank.

    Attributes
    ----------
    columns : tuple of str
        Columns involved in the linear dependency.
    """

    def __init__(self, message: str, columns: Sequence[str] = ()):
        super().__init__(message)
        self.columns = tuple(columns)


class DegenerateModelError(RegressionDiagnosticsError):
    """Not enough residual degrees of freedom (or variation) for the statistic."""


class SampleSizeError(RegressionDiagnosticsError):
    """Sample size outside the range where a test's reference distribution is valid."""

    def __init__(
        self,
        message: str,
        n: int,
        minimum: Optional[int] = None,
        maximum: Optional[int] = None,
    ):
        super().__init__(message)
        self.n = n
        self.minimum = minimum
        self.maximum = maximum


class IllConditionedWarning(UserWarning):
    """Design is full rank but numerically close to collinear."""


__all__ = [
    "RegressionDiagnosticsError",
    "MissingValueError",
    "InsufficientDataError",
    "RankDeficientError",
    "DegenerateModelError",
    "SampleSizeError",
    "IllConditionedWarning",
]
