"""
PyRegDiag: linear-model assumption diagnostics with R-compatible numerics.

Copyright (C) 2024 SGCX
Licensed under GPL-3.0
"""

__version__ = "1.0.0"

# Import main user-facing API
from .design import Factor, ModelSpec, DesignMatrix, DroppedRow, build_design
from .lm import FittedModel, fit, lm
from .results import DiagnosticResult
from .inference import InferenceReport, summarize, anova_table
from .multicollinearity import (
    MulticollinearityReport,
    analyze_multicollinearity,
    variance_inflation_factors,
)
from .residuals import (
    ResidualDiagnosticsReport,
    diagnose_residuals,
    durbin_watson_statistic,
)
from .influence import InfluenceDiagnosticsReport, diagnose_influence
from .registry import (
    register_diagnostic,
    run_diagnostics,
    available_diagnostics,
)
from .exceptions import (
    RegressionDiagnosticsError,
    MissingValueError,
    InsufficientDataError,
    RankDeficientError,
    DegenerateModelError,
    SampleSizeError,
    IllConditionedWarning,
)

# Import backend utilities (for advanced users)
from ._backends import get_backend, list_available_backends

__all__ = [
    'Factor',
    'ModelSpec',
    'DesignMatrix',
    'DroppedRow',
    'build_design',
    'FittedModel',
    'fit',
    'lm',
    'DiagnosticResult',
    'InferenceReport',
    'summarize',
    'anova_table',
    'MulticollinearityReport',
    'analyze_multicollinearity',
    'variance_inflation_factors',
    'ResidualDiagnosticsReport',
    'diagnose_residuals',
    'durbin_watson_statistic',
    'InfluenceDiagnosticsReport',
    'diagnose_influence',
    'register_diagnostic',
    'run_diagnostics',
    'available_diagnostics',
    'RegressionDiagnosticsError',
    'MissingValueError',
    'InsufficientDataError',
    'RankDeficientError',
    'DegenerateModelError',
    'SampleSizeError',
    'IllConditionedWarning',
    'get_backend',
    'list_available_backends',
]
