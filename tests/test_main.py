"""
Test Suite for the Pipeline Entry Point
=======================================

End-to-end run on a small synthetic survey file.
"""

import pytest
import numpy as np

from conftest import make_survey
from main import run_pipeline


@pytest.fixture
def survey_file(tmp_path):
    """Stata file with 400 respondents, some with missing outcome."""
    df = make_survey(n_rows=400, seed=5)
    df.loc[:9, 'health'] = np.nan
    path = tmp_path / "survey.dta"
    df.to_stata(path, write_index=False)
    return str(path)


@pytest.fixture
def config(tmp_path):
    return {
        'data': {'predictor_prefix': 'TIPI', 'outcome': 'health', 'n_predictors': 10},
        'split': {'seed': 123, 'holdout_size': 100, 'n_folds': 3},
        'preprocessing': {'knn_neighbors': 5},
        'models': {
            'ols': {'search': 'none'},
            'elastic_net': {'grid': {'l1_ratio': [0.5, 1.0], 'alpha': [0.05]}},
            'svr_poly': {'grid': {'degree': [1], 'C': [0.5]}},
            'xgb_dart': {'grid': {'n_estimators': [10], 'max_depth': [1], 'rate_drop': [0.1]}},
        },
        'evaluation': {'reference_correlations': {'ols': 0.117}, 'tolerance': 0.05},
        'output': {'reports_path': str(tmp_path / "reports")},
    }


class TestRunPipeline:
    """Tests for run_pipeline."""

    def test_clean_phase_only(self, survey_file, config):
        results = run_pipeline(survey_file, config, phase='clean')

        assert results['clean'].shape == (390, 11)
        assert 'models' not in results

    def test_split_phase(self, survey_file, config):
        results = run_pipeline(survey_file, config, phase='split')
        prep = results['preprocessing']

        assert len(prep['split'].holdout) == 100
        assert len(prep['split'].train) == 290
        assert len(prep['folds']) == 3

    def test_full_pipeline(self, survey_file, config, tmp_path):
        results = run_pipeline(survey_file, config)

        holdout = results['evaluation']['holdout']
        assert list(holdout.index) == ['ols', 'elastic_net', 'svr_poly', 'xgb_dart']
        assert (tmp_path / "reports" / "metrics" / "model_comparison.json").exists()

    def test_split_reproducible(self, survey_file, config):
        first = run_pipeline(survey_file, config, phase='split')['preprocessing']
        second = run_pipeline(survey_file, config, phase='split')['preprocessing']

        np.testing.assert_array_equal(first['split'].holdout_idx, second['split'].holdout_idx)
        for (_, a), (_, b) in zip(first['folds'], second['folds']):
            np.testing.assert_array_equal(a, b)

    def test_unknown_phase(self, survey_file, config):
        with pytest.raises(ValueError, match="Unknown phase"):
            run_pipeline(survey_file, config, phase='predict')
