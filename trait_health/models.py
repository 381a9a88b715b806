"""
Model Training Module
=====================

Four interchangeable regression trainers sharing one cross-validation
harness and one preprocessing recipe.

Techniques:
    - ols: Linear regression with all pairwise interactions
    - elastic_net: Elastic net with interactions, grid over mixing and penalty
    - svr_poly: Polynomial-kernel support vector regression
    - xgb_dart: DART gradient-boosted trees (XGBoost)
"""

import logging
from datetime import datetime
from typing import Dict, Any, List, Optional

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.base import BaseEstimator
from sklearn.linear_model import ElasticNet, LinearRegression
from sklearn.metrics import make_scorer
from sklearn.model_selection import GridSearchCV, RandomizedSearchCV
from sklearn.pipeline import Pipeline
from sklearn.svm import SVR
from xgboost import XGBRegressor

from .exceptions import TrainingError
from .preprocessing import SurveyPreprocessor, interaction_expander
from .splitting import Folds

logger = logging.getLogger(__name__)



def squared_correlation(y_true, y_pred) -> float:
    """
    Squared Pearson correlation between observed and predicted values.

    Used as the resampling R² instead of the coefficient of determination,
    so it stays in [0, 1]. NaN when either side is constant.
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    if np.ptp(y_true) == 0 or np.ptp(y_pred) == 0:
        return float('nan')
    return float(np.corrcoef(y_true, y_pred)[0, 1] ** 2)


SCORING = {
    'rmse': 'neg_root_mean_squared_error',
    'rsquared': make_scorer(squared_correlation),
}


class TrainedModel:
    """
    A fitted pipeline (recipe, optional interactions, estimator) together
    with its cross-validated resampling results.
    """

    def __init__(
        self,
        technique: str,
        pipeline: Pipeline,
        best_params: Dict[str, Any],
        fold_scores: pd.DataFrame,
        cv_summary: pd.DataFrame,
        training_info: Dict[str, Any]
    ):
        self.technique = technique
        self.pipeline = pipeline
        self.best_params = best_params
        self.fold_scores = fold_scores
        self.cv_summary = cv_summary
        self.training_info = training_info

    @property
    def feature_names(self) -> List[str]:
        """Features entering the final estimator."""
        return list(self.pipeline[:-1].get_feature_names_out())

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """
        Predict the outcome for raw (unprocessed) predictor rows.

        Args:
            X: Predictor frame with the training columns

        Returns:
            Predictions of shape (n_samples,)
        """
        return np.asarray(self.pipeline.predict(X), dtype=float).ravel()


class RegressionTrainer:
    """
    Base trainer: builds the pipeline, runs the search over the shared
    folds and refits the best configuration on all training rows.
    """

    name = 'base'
    interactions = False
    default_search = 'grid'
    default_grid: Dict[str, List[Any]] = {}

    def __init__(self, random_state: int = 123, **estimator_params):
        self.random_state = random_state
        self.estimator_params = estimator_params

    def build_estimator(self) -> BaseEstimator:
        raise NotImplementedError

    def build_pipeline(self, recipe: SurveyPreprocessor) -> Pipeline:
        steps = [('recipe', recipe.build())]
        if self.interactions:
            steps.append(('interactions', interaction_expander()))
        steps.append(('model', self.build_estimator()))
        return Pipeline(steps)

    def _make_search(
        self,
        pipeline: Pipeline,
        param_grid: Dict[str, List[Any]],
        folds: Folds,
        search: str,
        n_iter: Optional[int],
        n_jobs: Optional[int]
    ):
        if search not in ('grid', 'random', 'none'):
            raise TrainingError(self.name, f"unknown search type '{search}'")

        grid = {f"model__{key}": list(values) for key, values in param_grid.items()}
        if search == 'none':
            grid = {}
        if search == 'random' and grid:
            return RandomizedSearchCV(
                pipeline, grid, n_iter=n_iter or 10, scoring=SCORING, refit='rmse',
                cv=folds, n_jobs=n_jobs, random_state=self.random_state, error_score=np.nan
            )
        return GridSearchCV(
            pipeline, grid, scoring=SCORING, refit='rmse',
            cv=folds, n_jobs=n_jobs, error_score=np.nan
        )

    def fit(
        self,
        X: pd.DataFrame,
        y: np.ndarray,
        recipe: SurveyPreprocessor,
        folds: Folds,
        param_grid: Optional[Dict[str, List[Any]]] = None,
        search: Optional[str] = None,
        n_iter: Optional[int] = None,
        n_jobs: Optional[int] = None
    ) -> TrainedModel:
        """
        Search hyperparameters over the folds and refit on all rows.

        Args:
            X: Raw training predictors
            y: Training outcome
            recipe: Shared preprocessing recipe (cloned per fit)
            folds: Shared (fit, validation) index pairs
            param_grid: Estimator parameter lists (default: trainer's grid)
            search: 'grid', 'random' or 'none' (default: trainer's)
            n_iter: Sampled configurations for random search
            n_jobs: Parallel fold fits

        Returns:
            TrainedModel

        Raises:
            TrainingError: If no configuration can be fitted
        """
        start_time = datetime.now()
        param_grid = self.default_grid if param_grid is None else param_grid
        search = search or self.default_search

        logger.info("=" * 60)
        logger.info(f"TRAINING {self.name.upper()}")
        logger.info("=" * 60)
        logger.info(f"Training data shape: X={X.shape}, folds={len(folds)}, search={search}")

        searcher = self._make_search(
            self.build_pipeline(recipe), param_grid, folds, search, n_iter, n_jobs
        )

        try:
            searcher.fit(X, y)
        except ValueError as e:
            raise TrainingError(self.name, str(e)) from e

        results = searcher.cv_results_
        best = searcher.best_index_
        if not np.isfinite(results['mean_test_rmse'][best]):
            raise TrainingError(self.name, "no hyperparameter configuration produced finite CV scores")

        n_splits = searcher.n_splits_
        fold_scores = pd.DataFrame({
            'model': self.name,
            'fold': [f"Fold{i + 1:02d}" for i in range(n_splits)],
            'RMSE': [-results[f'split{i}_test_rmse'][best] for i in range(n_splits)],
            'Rsquared': [results[f'split{i}_test_rsquared'][best] for i in range(n_splits)],
        })

        cv_summary = pd.DataFrame(results['params'])
        cv_summary.columns = [col.replace('model__', '') for col in cv_summary.columns]
        cv_summary['RMSE'] = -results['mean_test_rmse']
        cv_summary['RMSESD'] = results['std_test_rmse']
        cv_summary['Rsquared'] = results['mean_test_rsquared']

        best_params = {
            key.replace('model__', ''): value
            for key, value in searcher.best_params_.items()
        }

        duration = (datetime.now() - start_time).total_seconds()
        training_info = {
            'training_duration_seconds': duration,
            'n_samples': int(X.shape[0]),
            'n_configurations': len(results['params']),
            'search': search,
            'trained_at': datetime.now().isoformat(),
        }

        logger.info(f"Best parameters: {best_params}")
        logger.info(f"CV RMSE: {fold_scores['RMSE'].mean():.4f}, CV R²: {fold_scores['Rsquared'].mean():.4f}")
        logger.info(f"{self.name} trained in {duration:.2f} seconds")

        return TrainedModel(
            technique=self.name,
            pipeline=searcher.best_estimator_,
            best_params=best_params,
            fold_scores=fold_scores,
            cv_summary=cv_summary,
            training_info=training_info,
        )


class LinearTrainer(RegressionTrainer):
    """Ordinary least squares on main effects and pairwise interactions."""

    name = 'ols'
    interactions = True
    default_search = 'none'

    def build_estimator(self) -> BaseEstimator:
        return LinearRegression(**self.estimator_params)


class ElasticNetTrainer(RegressionTrainer):
    """Elastic net with interactions; ``l1_ratio`` 0 is ridge, 1 is LASSO."""

    name = 'elastic_net'
    interactions = True
    default_grid = {
        'l1_ratio': [0.1, 0.325, 0.55, 0.775, 1.0],
        'alpha': [0.0001, 0.001, 0.01, 0.05, 0.1, 0.2, 0.5],
    }

    def build_estimator(self) -> BaseEstimator:
        params = {'max_iter': 10000}
        params.update(self.estimator_params)
        return ElasticNet(random_state=self.random_state, **params)


class PolySVRTrainer(RegressionTrainer):
    """Support vector regression with kernel (gamma * <x, x'> + 1) ** degree."""

    name = 'svr_poly'
    default_grid = {
        'degree': [1, 2, 3],
        'C': [0.25, 0.5, 1.0],
    }

    def build_estimator(self) -> BaseEstimator:
        params = {'coef0': 1.0, 'gamma': 0.01}
        params.update(self.estimator_params)
        return SVR(kernel='poly', **params)


class DartBoostTrainer(RegressionTrainer):
    """Gradient-boosted trees with DART (dropout) boosting."""

    name = 'xgb_dart'
    default_grid = {
        'n_estimators': [50, 100, 150],
        'max_depth': [1, 2, 3],
        'rate_drop': [0.01, 0.5],
    }

    def build_estimator(self) -> BaseEstimator:
        params = {
            'learning_rate': 0.3, 'subsample': 0.75, 'rate_drop': 0.01,
            'skip_drop': 0.5, 'n_jobs': 1, 'verbosity': 0,
        }
        params.update(self.estimator_params)
        return XGBRegressor(booster='dart', random_state=self.random_state, **params)


TRAINERS = {
    trainer.name: trainer
    for trainer in (LinearTrainer, ElasticNetTrainer, PolySVRTrainer, DartBoostTrainer)
}


def build_trainers(config: Dict[str, Any]) -> List[RegressionTrainer]:
    """
    Instantiate the configured trainers in configuration order.

    Args:
        config: Full configuration dictionary

    Returns:
        List of trainers (all four techniques when none are configured)
    """
    seed = config.get('split', {}).get('seed', 123)
    models_config = config.get('models') or {name: {} for name in TRAINERS}

    trainers = []
    for name, model_config in models_config.items():
        if name not in TRAINERS:
            raise ValueError(f"Unknown technique: {name}. Choose from: {', '.join(TRAINERS)}")
        params = (model_config or {}).get('params', {})
        trainers.append(TRAINERS[name](random_state=seed, **params))
    return trainers


def _fit_one(trainer, X, y, recipe, folds, model_config, n_jobs):
    return trainer.fit(
        X, y, recipe, folds,
        param_grid=model_config.get('grid'),
        search=model_config.get('search'),
        n_iter=model_config.get('n_iter'),
        n_jobs=n_jobs,
    )


def train_models(
    X_train: pd.DataFrame,
    y_train: np.ndarray,
    recipe: SurveyPreprocessor,
    folds: Folds,
    config: Dict[str, Any]
) -> Dict[str, TrainedModel]:
    """
    Train every configured technique on the same rows, folds and recipe.

    Args:
        X_train: Raw training predictors
        y_train: Training outcome
        recipe: Shared preprocessing recipe
        folds: Shared fold indices
        config: Full configuration dictionary

    Returns:
        Trained models keyed by technique, in configuration order
    """
    training_config = config.get('training', {})
    n_jobs = training_config.get('n_jobs', 1)
    models_config = config.get('models') or {}
    trainers = build_trainers(config)

    jobs = [
        delayed(_fit_one)(trainer, X_train, y_train, recipe, folds,
                          models_config.get(trainer.name) or {}, n_jobs)
        for trainer in trainers
    ]

    if training_config.get('parallel_models', False):
        logger.info(f"Training {len(trainers)} techniques in parallel")
        fitted = Parallel(n_jobs=len(trainers))(jobs)
    else:
        fitted = [func(*args, **kwargs) for func, args, kwargs in jobs]

    return {model.technique: model for model in fitted}


def print_model_summary(model: TrainedModel) -> None:
    """
    Print a summary of a trained model.

    Args:
        model: Trained model instance
    """
    print("\n" + "=" * 50)
    print(f"MODEL SUMMARY: {model.technique}")
    print("=" * 50)
    print(f"Estimator: {type(model.pipeline[-1]).__name__}")
    print(f"Features entering estimator: {len(model.feature_names)}")
    print(f"\nBest hyperparameters:")
    for key, value in model.best_params.items():
        print(f"  - {key}: {value}")
    if not model.best_params:
        print("  - (none tuned)")

    print(f"\nCross-validated resampling ({len(model.fold_scores)} folds):")
    print(f"  - RMSE: {model.fold_scores['RMSE'].mean():.4f}")
    print(f"  - R²: {model.fold_scores['Rsquared'].mean():.4f}")

    print(f"\nTraining Info:")
    print(f"  - Duration: {model.training_info.get('training_duration_seconds', 0.0):.2f}s")
    print(f"  - Samples: {model.training_info.get('n_samples', 'N/A')}")
    print(f"  - Configurations searched: {model.training_info.get('n_configurations', 'N/A')}")
    print("=" * 50 + "\n")
