"""
Full pipeline: dataset -> design -> fit -> every diagnostic.
"""

import pytest
import numpy as np
import pandas as pd

from pyregdiag import (
    ModelSpec,
    build_design,
    fit,
    lm,
    summarize,
    anova_table,
    analyze_multicollinearity,
    diagnose_residuals,
    diagnose_influence,
    run_diagnostics,
    MissingValueError,
)


def test_simple_pipeline(simple_data):
    model = lm('y', covariates=['x'], data=simple_data)

    inference = summarize(model)
    residuals = diagnose_residuals(model)
    influence = diagnose_influence(model)

    assert inference.estimates[0] == pytest.approx(3.0, abs=0.5)
    assert inference.estimates[1] == pytest.approx(2.0, abs=0.5)
    # Generated with iid normal errors
    assert not residuals.breusch_pagan.reject or residuals.breusch_pagan.p_value > 0.001
    assert abs(residuals.durbin_watson.statistic - 2.0) < 0.6
    assert len(influence.leverage) == 100


def test_factor_coefficients_are_group_differences(rng):
    """Balanced one-way layout: indicator coefficients are mean differences."""
    groups = np.repeat(['ctl', 'trt1', 'trt2'], 10)
    y = rng.standard_normal(30) + np.repeat([5.0, 6.0, 4.5], 10)
    data = pd.DataFrame({'weight': y, 'group': groups})

    design = build_design(data, ModelSpec(response='weight', factors=['group']))
    model = fit(design)

    assert design.column_names == ('Intercept', 'group[T.trt1]', 'group[T.trt2]')
    means = data.groupby('group')['weight'].mean()
    np.testing.assert_allclose(
        model.coefficients,
        [means['ctl'], means['trt1'] - means['ctl'], means['trt2'] - means['ctl']],
        rtol=1e-10,
    )
    table = anova_table(model)
    assert table.loc['group', 'Df'] == 2


def test_ancova_pipeline(ancova_data):
    spec = ModelSpec(
        response='cognitive_function_scores',
        covariates=[
            'systolic_blood_pressure', 'cholesterol_levels', 'blood_glucose_levels'
        ],
        factors=['education', 'income_level'],
    )

    design = build_design(ancova_data, spec)
    model = fit(design)
    assert design.p == 1 + 3 + 2 + 2

    inference = summarize(model)
    collinearity = analyze_multicollinearity(ancova_data, spec)
    residuals = diagnose_residuals(model)
    influence = diagnose_influence(model)
    registry_results = run_diagnostics(model, max_workers=2)

    assert inference.omnibus_test.reject
    assert inference.coefficient_table().loc['education[T.tertiary]', 'Pr(>|t|)'] < 0.001
    # Independent draws: no serious collinearity
    assert collinearity.serious == []
    assert set(collinearity.generalized_vif.index) >= {'education', 'income_level'}
    assert registry_results['durbin_watson'].statistic == residuals.durbin_watson.statistic
    assert influence.leverage.sum() == pytest.approx(design.p)


def test_pipeline_with_missing_data(ancova_data):
    data = ancova_data.copy()
    data.loc[[0, 5, 17], 'cholesterol_levels'] = np.nan
    data.loc[40, 'education'] = None
    spec = ModelSpec(
        response='cognitive_function_scores',
        covariates=['systolic_blood_pressure', 'cholesterol_levels'],
        factors=['education'],
    )

    design = build_design(data, spec)
    model = fit(design)
    influence = diagnose_influence(model)

    assert design.n == 116
    assert [d.index for d in design.dropped] == [0, 5, 17, 40]
    assert len(model.residuals) == 116
    assert 40 not in influence.to_frame().index


def test_missing_variable_fails_early(ancova_data):
    spec = ModelSpec(response='cognitive_function_scores', covariates=['bmi'])
    with pytest.raises(MissingValueError, match='bmi'):
        build_design(ancova_data, spec)
    with pytest.raises(MissingValueError):
        analyze_multicollinearity(ancova_data, spec)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
