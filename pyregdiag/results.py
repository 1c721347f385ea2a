"""
Structured result of a single hypothesis test.
"""

from dataclasses import dataclass
from typing import Tuple

from ._utils import check_alpha
from .thresholds import ALPHA


REJECT = "reject null hypothesis"
DO_NOT_REJECT = "do not reject null hypothesis"


@dataclass(frozen=True)
class DiagnosticResult:
    """
    One hypothesis test.

    Attributes
    ----------
    name : str
        Test name, e.g. 'Durbin-Watson'
    statistic : float
        Test statistic
    p_value : float
        p-value under the null
    df : tuple of float
        Degrees-of-freedom parameters of the reference distribution (may be empty)
    alpha : float
        Significance level the decision is taken at
    null_hypothesis : str
        Plain-language statement of H0
    method : str
        How the p-value was obtained
    """
    name: str
    statistic: float
    p_value: float
    df: Tuple[float, ...] = ()
    alpha: float = ALPHA
    null_hypothesis: str = ""
    method: str = ""

    @property
    def reject(self) -> bool:
        """True when p_value < alpha."""
        return bool(self.p_value < self.alpha)

    @property
    def decision(self) -> str:
        return REJECT if self.reject else DO_NOT_REJECT

    def at(self, alpha: float) -> 'DiagnosticResult':
        """Same test, decided at a different significance level."""
        return DiagnosticResult(
            name=self.name,
            statistic=self.statistic,
            p_value=self.p_value,
            df=self.df,
            alpha=check_alpha(alpha),
            null_hypothesis=self.null_hypothesis,
            method=self.method,
        )

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'statistic': self.statistic,
            'df': self.df,
            'p_value': self.p_value,
            'alpha': self.alpha,
            'decision': self.decision,
        }

    def __repr__(self):
        df = f", df={self.df}" if self.df else ""
        return (
            f"DiagnosticResult({self.name}: statistic={self.statistic:.4g}{df}, "
            f"p={self.p_value:.4g}, {self.decision})"
        )

