"""
pytest configuration and shared fixtures.
"""

import pytest
import numpy as np
import pandas as pd


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def simple_data(rng):
    """y = 3 + 2x + e, e ~ N(0, 1), n = 100."""
    n = 100
    x = rng.standard_normal(n)
    y = 3.0 + 2.0 * x + rng.standard_normal(n)
    return pd.DataFrame({'x': x, 'y': y})


@pytest.fixture
def three_predictor_arrays(rng):
    """Well-conditioned regression arrays (100 obs, 3 predictors)."""
    n, p = 100, 3
    X = rng.standard_normal((n, p))
    beta_true = np.array([1.0, -2.0, 0.5])
    y = 0.7 + X @ beta_true + rng.standard_normal(n) * 0.5
    return X, y, beta_true


@pytest.fixture
def ancova_data(rng):
    """
    Cognitive-function style dataset: three covariates and two factors.
    """
    n = 120
    education = np.tile(['primary', 'secondary', 'tertiary'], n // 3)
    income = rng.choice(['high', 'low', 'middle'], n)
    sbp = rng.normal(130, 15, n)
    cholesterol = rng.normal(200, 30, n)
    glucose = rng.normal(95, 10, n)

    edu_effect = pd.Series(education).map(
        {'primary': 0.0, 'secondary': 3.0, 'tertiary': 5.0}
    ).to_numpy()
    score = (
        60.0
        - 0.05 * sbp
        - 0.02 * cholesterol
        - 0.03 * glucose
        + edu_effect
        + rng.normal(0, 2, n)
    )
    return pd.DataFrame({
        'cognitive_function_scores': score,
        'systolic_blood_pressure': sbp,
        'cholesterol_levels': cholesterol,
        'blood_glucose_levels': glucose,
        'education': education,
        'income_level': income,
    })
