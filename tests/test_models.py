"""
Test Suite for Model Training Module
=====================================

Tests for the four regression trainers and the shared harness.
"""

import pytest
import numpy as np
import pandas as pd

from conftest import PREDICTORS, make_survey
from trait_health.exceptions import TrainingError
from trait_health.models import (
    TRAINERS, LinearTrainer, ElasticNetTrainer, PolySVRTrainer, DartBoostTrainer,
    build_trainers, train_models, squared_correlation
)
from trait_health.preprocessing import SurveyPreprocessor
from trait_health.splitting import make_rng, make_folds

SMALL_GRIDS = {
    'ols': {'search': 'none'},
    'elastic_net': {'grid': {'l1_ratio': [0.5, 1.0], 'alpha': [0.01, 0.1]}},
    'svr_poly': {'grid': {'degree': [1, 2], 'C': [0.5]}},
    'xgb_dart': {'grid': {'n_estimators': [20], 'max_depth': [1, 2], 'rate_drop': [0.1]}},
}


@pytest.fixture
def training_data():
    """Training predictors, outcome, recipe and three shared folds."""
    df = make_survey(n_rows=240, seed=11)
    X = df[PREDICTORS]
    y = df['health'].to_numpy()
    folds = make_folds(y, make_rng(123), n_folds=3)
    return X, y, SurveyPreprocessor(), folds


class TestSquaredCorrelation:
    """Tests for the resampling R² scorer."""

    def test_matches_squared_pearson(self):
        rng = np.random.default_rng(4)
        a, b = rng.normal(size=40), rng.normal(size=40)

        assert squared_correlation(a, b) == pytest.approx(np.corrcoef(a, b)[0, 1] ** 2)

    def test_not_coefficient_of_determination(self):
        """Test a shifted but perfectly correlated prediction scores 1."""
        y = np.array([1.0, 2.0, 3.0, 4.0, 5.0])

        assert squared_correlation(y, y + 10) == pytest.approx(1.0)

    def test_constant_prediction(self):
        assert np.isnan(squared_correlation(np.array([1.0, 2.0, 3.0]), np.full(3, 2.0)))


class TestTrainers:
    """Tests for each trainer variant."""

    @pytest.mark.parametrize("name", list(TRAINERS))
    def test_fit_and_predict(self, name, training_data):
        X, y, recipe, folds = training_data
        trainer = TRAINERS[name](random_state=123)

        model = trainer.fit(X, y, recipe, folds, param_grid=SMALL_GRIDS[name].get('grid'),
                            search=SMALL_GRIDS[name].get('search'))

        assert model.technique == name
        predictions = model.predict(X.iloc[:25])
        assert predictions.shape == (25,)
        assert np.isfinite(predictions).all()

        assert len(model.fold_scores) == 3
        assert list(model.fold_scores.columns) == ['model', 'fold', 'RMSE', 'Rsquared']
        assert (model.fold_scores['RMSE'] > 0).all()
        assert model.fold_scores['Rsquared'].between(0, 1).all()

    def test_ols_has_interactions_and_no_search(self, training_data):
        X, y, recipe, folds = training_data

        model = LinearTrainer().fit(X, y, recipe, folds)

        assert model.best_params == {}
        assert model.training_info['n_configurations'] == 1
        assert len(model.feature_names) == 55

    def test_elastic_net_grid_selects_min_rmse(self, training_data):
        X, y, recipe, folds = training_data
        grid = SMALL_GRIDS['elastic_net']['grid']

        model = ElasticNetTrainer().fit(X, y, recipe, folds, param_grid=grid)

        assert len(model.cv_summary) == 4
        best = model.cv_summary.loc[model.cv_summary['RMSE'].idxmin()]
        assert model.best_params['alpha'] == best['alpha']
        assert model.best_params['l1_ratio'] == best['l1_ratio']
        assert model.fold_scores['RMSE'].mean() == pytest.approx(best['RMSE'])

    def test_svr_uses_main_effects_only(self, training_data):
        X, y, recipe, folds = training_data

        model = PolySVRTrainer().fit(X, y, recipe, folds, param_grid=SMALL_GRIDS['svr_poly']['grid'])

        assert model.feature_names == PREDICTORS
        assert model.best_params['degree'] in (1, 2)

    def test_dart_booster(self, training_data):
        X, y, recipe, folds = training_data

        model = DartBoostTrainer().fit(X, y, recipe, folds, param_grid=SMALL_GRIDS['xgb_dart']['grid'])

        assert model.pipeline[-1].get_params()['booster'] == 'dart'

    def test_random_search(self, training_data):
        X, y, recipe, folds = training_data
        grid = {'l1_ratio': [0.2, 0.5, 1.0], 'alpha': [0.01, 0.1, 1.0]}

        model = ElasticNetTrainer().fit(X, y, recipe, folds, param_grid=grid, search='random', n_iter=3)

        assert model.training_info['n_configurations'] == 3

    @pytest.mark.parametrize("name", list(TRAINERS))
    def test_all_missing_predictor_absent_from_features(self, name, training_data):
        X, y, recipe, folds = training_data
        X = X.copy()
        X['TIPI5'] = np.nan

        model = TRAINERS[name]().fit(X, y, recipe, folds, param_grid=SMALL_GRIDS[name].get('grid'),
                                     search=SMALL_GRIDS[name].get('search'))

        assert not any('TIPI5' in feature for feature in model.feature_names)


class TestTrainingErrors:
    """Tests for degenerate searches."""

    def test_invalid_grid_raises_training_error(self, training_data):
        X, y, recipe, folds = training_data

        with pytest.raises(TrainingError, match="elastic_net") as excinfo:
            ElasticNetTrainer().fit(X, y, recipe, folds, param_grid={'l1_ratio': [-1.0], 'alpha': [0.1]})

        assert excinfo.value.technique == 'elastic_net'

    def test_unknown_search_type(self, training_data):
        X, y, recipe, folds = training_data

        with pytest.raises(TrainingError, match="unknown search"):
            LinearTrainer().fit(X, y, recipe, folds, search='bayes')


class TestTrainModels:
    """Tests for train_models and build_trainers."""

    def test_build_trainers_default(self):
        trainers = build_trainers({})

        assert [t.name for t in trainers] == ['ols', 'elastic_net', 'svr_poly', 'xgb_dart']

    def test_build_trainers_unknown(self):
        with pytest.raises(ValueError, match="Unknown technique"):
            build_trainers({'models': {'lasso_lars': {}}})

    def test_build_trainers_fixed_params(self):
        trainers = build_trainers({'split': {'seed': 9}, 'models': {'svr_poly': {'params': {'gamma': 0.1}}}})

        assert trainers[0].build_estimator().gamma == 0.1
        assert trainers[0].random_state == 9

    @pytest.mark.parametrize("parallel", [False, True])
    def test_shared_folds_and_order(self, training_data, parallel):
        X, y, recipe, folds = training_data
        config = {'models': SMALL_GRIDS, 'training': {'n_jobs': 1, 'parallel_models': parallel}}

        models = train_models(X, y, recipe, folds, config)

        assert list(models) == ['ols', 'elastic_net', 'svr_poly', 'xgb_dart']
        for model in models.values():
            assert list(model.fold_scores['fold']) == ['Fold01', 'Fold02', 'Fold03']
            assert model.training_info['n_samples'] == len(X)
