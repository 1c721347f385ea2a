"""
Named decision thresholds.

Conventions differ between textbooks, so every cut-off used by the
reports is exposed here and callers pick the one they want.
"""

# Significance level for all hypothesis tests
ALPHA = 0.05

# Relative pivot tolerance for rank detection: |R_kk| < RANK_TOL * |R_00|
RANK_TOL = 1e-10

# Condition number (unit-scaled columns) above which fit() warns
CONDITION_WARN = 1e8

# Variance inflation factors
VIF_CONCERN = 5.0
VIF_SERIOUS = 10.0

# Belsley condition indices
CONDITION_INDEX_SERIOUS = 30.0
VARIANCE_PROPORTION_HIGH = 0.5

# Shapiro-Wilk valid sample sizes (R's shapiro.test range)
SHAPIRO_MIN_N = 3
SHAPIRO_MAX_N = 5000

# Cook's distance: conventional cut-off; 4/n is computed per model
COOKS_CONVENTIONAL = 1.0

# |studentized residual| above this flags an outlier
STUDENTIZED_THRESHOLD = 2.0


def leverage_thresholds(n: int, p: int) -> tuple:
    """Return the (conventional 2p/n, conservative 3p/n) leverage cut-offs."""
    return 2.0 * p / n, 3.0 * p / n


def cooks_small_sample(n: int) -> float:
    """Cook's distance cut-off 4/n."""
    return 4.0 / n
