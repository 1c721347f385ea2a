"""
Test correlation, VIF and condition-index diagnostics.

VIFs are checked against the defining auxiliary regressions,
VIF_j = 1 / (1 - R²_j), solved directly with lstsq.
"""

import pytest
import numpy as np
import pandas as pd
from scipy import stats

from pyregdiag import (
    DesignMatrix,
    ModelSpec,
    analyze_multicollinearity,
    variance_inflation_factors,
    RankDeficientError,
)
from pyregdiag.multicollinearity import generalized_vif, spearman_correlations


VIF_TOL = 1e-9


def auxiliary_vif(X, j):
    """1 / (1 - R²) of column j regressed on the other columns plus intercept."""
    n = X.shape[0]
    others = np.column_stack([np.ones(n), np.delete(X, j, axis=1)])
    target = X[:, j]
    beta, *_ = np.linalg.lstsq(others, target, rcond=None)
    resid = target - others @ beta
    r2 = 1 - resid @ resid / np.sum((target - target.mean()) ** 2)
    return 1.0 / (1.0 - r2)


def correlated_frame(rng, n=200):
    x1 = rng.standard_normal(n)
    x2 = 0.8 * x1 + 0.6 * rng.standard_normal(n)
    x3 = rng.standard_normal(n)
    y = x1 - x2 + 0.5 * x3 + rng.standard_normal(n)
    return pd.DataFrame({'y': y, 'x1': x1, 'x2': x2, 'x3': x3})


class TestVIF:

    def test_orthogonal_columns(self):
        """Centred, mutually orthogonal columns have VIF exactly 1."""
        n = 40
        a = np.tile([1.0, -1.0], n // 2)
        b = np.tile([1.0, 1.0, -1.0, -1.0], n // 4)
        c = np.tile([1.0, -1.0, -1.0, 1.0], n // 4)
        design = DesignMatrix.from_arrays(np.column_stack([a, b, c]), np.arange(n, dtype=float))

        vif = variance_inflation_factors(design)
        np.testing.assert_allclose(list(vif.values()), 1.0, atol=1e-12)

    def test_matches_auxiliary_regressions(self, rng):
        data = correlated_frame(rng)
        X = data[['x1', 'x2', 'x3']].to_numpy()
        design = DesignMatrix.from_arrays(X, data['y'], column_names=['x1', 'x2', 'x3'])

        vif = variance_inflation_factors(design)

        assert list(vif) == ['x1', 'x2', 'x3']
        for j, name in enumerate(['x1', 'x2', 'x3']):
            np.testing.assert_allclose(vif[name], auxiliary_vif(X, j), rtol=VIF_TOL)
        assert all(v >= 1.0 for v in vif.values())

    def test_near_collinear_flagged(self, rng):
        n = 100
        x1 = rng.standard_normal(n)
        x2 = x1 + 0.05 * rng.standard_normal(n)
        x3 = rng.standard_normal(n)
        data = pd.DataFrame({'y': rng.standard_normal(n), 'x1': x1, 'x2': x2, 'x3': x3})

        report = analyze_multicollinearity(
            data, ModelSpec(response='y', covariates=['x1', 'x2', 'x3'])
        )

        assert set(report.flagged()) == {'x1', 'x2'}
        assert set(report.serious) == {'x1', 'x2'}
        assert report.vif['x3'] < 5
        assert report.max_vif == max(report.vif['x1'], report.vif['x2'])

    def test_exact_collinearity_cites_first_column(self, rng):
        n = 30
        x1 = rng.standard_normal(n)
        x2 = rng.standard_normal(n)
        design = DesignMatrix.from_arrays(
            np.column_stack([x1, x2, x1 + x2]),
            rng.standard_normal(n),
            column_names=['x1', 'x2', 'x3'],
        )

        with pytest.raises(RankDeficientError, match="'x1'") as exc:
            variance_inflation_factors(design)
        assert set(exc.value.columns) == {'x1', 'x2', 'x3'}

    def test_constant_column(self, rng):
        n = 20
        design = DesignMatrix.from_arrays(
            np.column_stack([rng.standard_normal(n), np.full(n, 5.0)]),
            rng.standard_normal(n),
            column_names=['x', 'k'],
        )
        with pytest.raises(RankDeficientError) as exc:
            variance_inflation_factors(design)
        assert exc.value.columns == ('Intercept', 'k')

    def test_single_predictor(self, rng):
        design = DesignMatrix.from_arrays(rng.standard_normal((15, 1)), rng.standard_normal(15))
        np.testing.assert_allclose(variance_inflation_factors(design)['x0'], 1.0)


class TestGeneralizedVIF:

    def test_single_columns_match_vif(self, rng):
        data = correlated_frame(rng)
        X = data[['x1', 'x2', 'x3']].to_numpy()
        design = DesignMatrix.from_arrays(X, data['y'], column_names=['x1', 'x2', 'x3'])

        gvif = generalized_vif(design)
        vif = variance_inflation_factors(design)

        np.testing.assert_allclose(gvif['GVIF'], [vif[c] for c in gvif.index], rtol=1e-9)
        np.testing.assert_allclose(gvif['GVIF^(1/(2*Df))'], np.sqrt(gvif['GVIF']))
        assert list(gvif['Df']) == [1, 1, 1]

    def test_factor_term(self, ancova_data):
        spec = ModelSpec(
            response='cognitive_function_scores',
            covariates=['systolic_blood_pressure', 'cholesterol_levels'],
            factors=['education', 'income_level'],
        )
        report = analyze_multicollinearity(ancova_data, spec)
        gvif = report.generalized_vif

        assert list(gvif.index) == [
            'systolic_blood_pressure', 'cholesterol_levels', 'education', 'income_level'
        ]
        assert gvif.loc['education', 'Df'] == 2
        assert gvif.loc['income_level', 'Df'] == 2
        assert np.all(gvif['GVIF'] >= 1.0 - 1e-10)
        # Per-column VIFs still cover every indicator
        assert 'education[T.secondary]' in report.vif
        assert 'Intercept' not in report.vif


class TestSpearman:

    def test_matches_scipy(self, rng):
        data = correlated_frame(rng)
        report = analyze_multicollinearity(
            data, ModelSpec(response='y', covariates=['x1', 'x2', 'x3'])
        )

        rho, pvalue = stats.spearmanr(data['x1'], data['x2'])
        np.testing.assert_allclose(report.pairwise_correlations.loc['x1', 'x2'], rho, rtol=1e-12)
        np.testing.assert_allclose(report.correlation_pvalues.loc['x2', 'x1'], pvalue, rtol=1e-10)
        np.testing.assert_allclose(np.diag(report.pairwise_correlations), 1.0)
        assert np.all(np.isnan(np.diag(report.correlation_pvalues)))

    def test_monotone_transform_is_perfect(self, rng):
        x = rng.standard_normal(25)
        design = DesignMatrix.from_arrays(
            np.column_stack([x, np.exp(x)]), rng.standard_normal(25), column_names=['a', 'b']
        )
        corr, _ = spearman_correlations(design, ['a', 'b'])
        np.testing.assert_allclose(corr.loc['a', 'b'], 1.0)

    def test_ties_use_average_ranks(self):
        a = np.array([1.0, 2.0, 2.0, 3.0, 4.0, 4.0, 5.0])
        b = np.array([2.0, 1.0, 3.0, 3.0, 5.0, 4.0, 6.0])
        design = DesignMatrix.from_arrays(
            np.column_stack([a, b]), np.arange(7, dtype=float), column_names=['a', 'b']
        )
        corr, _ = spearman_correlations(design, ['a', 'b'])
        np.testing.assert_allclose(corr.loc['a', 'b'], stats.spearmanr(a, b)[0], rtol=1e-12)

    def test_factors_excluded(self, ancova_data):
        spec = ModelSpec(
            response='cognitive_function_scores',
            covariates=['systolic_blood_pressure', 'blood_glucose_levels'],
            factors=['education'],
        )
        report = analyze_multicollinearity(ancova_data, spec)
        assert list(report.pairwise_correlations.columns) == [
            'systolic_blood_pressure', 'blood_glucose_levels'
        ]


class TestConditionIndices:

    def test_indices_and_proportions(self, rng):
        data = correlated_frame(rng)
        report = analyze_multicollinearity(
            data, ModelSpec(response='y', covariates=['x1', 'x2', 'x3'])
        )

        indices = report.condition_indices.to_numpy()
        assert indices[0] == pytest.approx(1.0)
        assert np.all(np.diff(indices) >= 0)
        assert list(report.variance_proportions.columns) == ['Intercept', 'x1', 'x2', 'x3']
        np.testing.assert_allclose(report.variance_proportions.sum(axis=0), 1.0)
        assert report.collinear_dimensions() == {}

    def test_near_dependency_located(self, rng):
        n = 100
        x1 = rng.standard_normal(n)
        x2 = x1 + 0.001 * rng.standard_normal(n)
        x3 = rng.standard_normal(n)
        data = pd.DataFrame({'y': rng.standard_normal(n), 'x1': x1, 'x2': x2, 'x3': x3})
        report = analyze_multicollinearity(
            data, ModelSpec(response='y', covariates=['x1', 'x2', 'x3'])
        )

        found = report.collinear_dimensions()
        assert list(found) == [4]
        assert {'x1', 'x2'} <= set(found[4])
        assert 'x3' not in found[4]


class TestLinearity:

    def test_pearson_response_and_covariates(self, rng):
        data = correlated_frame(rng)
        data.loc[[2, 9], 'x3'] = np.nan
        report = analyze_multicollinearity(
            data, ModelSpec(response='y', covariates=['x1', 'x2', 'x3'])
        )
        corr = report.linearity_correlations

        assert list(corr.columns) == ['y', 'x1', 'x2', 'x3']
        complete = data.dropna()
        expected = np.corrcoef(complete[['y', 'x1', 'x2', 'x3']].to_numpy(), rowvar=False)
        np.testing.assert_allclose(corr.to_numpy(), expected, rtol=1e-10, atol=1e-12)
        np.testing.assert_allclose(np.diag(corr), 1.0)

    def test_factors_excluded(self, ancova_data):
        spec = ModelSpec(
            response='cognitive_function_scores',
            covariates=['systolic_blood_pressure'],
            factors=['education'],
        )
        corr = analyze_multicollinearity(ancova_data, spec).linearity_correlations
        assert list(corr.index) == ['cognitive_function_scores', 'systolic_blood_pressure']


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
