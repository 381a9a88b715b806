"""
Data Preprocessing Module
=========================

Shared preprocessing recipe applied identically to every model fit.

Steps:
    - KNN imputation of missing predictor values
    - Zero-variance predictor removal
    - Centering and scaling

All statistics are learned from training rows only and reapplied
unchanged to any other rows.
"""

import logging
from typing import Dict, Any, Optional, List

import pandas as pd
import numpy as np
from sklearn.feature_selection import VarianceThreshold
from sklearn.impute import KNNImputer
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import PolynomialFeatures, StandardScaler

from .splitting import DataSplit

logger = logging.getLogger(__name__)


class SurveyPreprocessor:
    """
    Fit-on-train / apply-to-any preprocessing recipe.

    Imputation uses nan-euclidean distances over co-observed predictors
    with uniformly weighted neighbors drawn from the fitted rows only.
    Predictors that are entirely missing in the fitted rows are dropped
    by the imputer; constant predictors are dropped by the variance
    filter.
    """

    def __init__(
        self,
        n_neighbors: int = 5,
        center: bool = True,
        scale: bool = True,
        zero_variance: bool = True
    ):
        """
        Initialize the preprocessor.

        Args:
            n_neighbors: Neighbors used for imputation
            center: Subtract training means
            scale: Divide by training standard deviations
            zero_variance: Drop predictors with zero training variance
        """
        self.n_neighbors = n_neighbors
        self.center = center
        self.scale = scale
        self.zero_variance = zero_variance

        self.pipeline: Optional[Pipeline] = None
        self.feature_columns: Optional[List[str]] = None
        self.imputation_reference: Optional[np.ndarray] = None
        self._is_fitted = False

    def build(self) -> Pipeline:
        """Return a new, unfitted scikit-learn pipeline for this recipe."""
        steps = [('impute', KNNImputer(n_neighbors=self.n_neighbors, keep_empty_features=False))]
        if self.zero_variance:
            steps.append(('zero_variance', VarianceThreshold(threshold=0.0)))
        steps.append(('scale', StandardScaler(with_mean=self.center, with_std=self.scale)))
        return Pipeline(steps)

    def fit(self, df: pd.DataFrame) -> 'SurveyPreprocessor':
        """
        Learn imputation and scaling parameters from training predictors.

        Args:
            df: Training predictors

        Returns:
            Self for method chaining
        """
        self.feature_columns = list(df.columns)
        self.pipeline = self.build()
        self.pipeline.fit(df[self.feature_columns])
        self.imputation_reference = df[self.feature_columns].to_numpy(dtype=float, copy=True)
        self._is_fitted = True

        dropped = sorted(set(self.feature_columns) - set(self.get_feature_names()))
        if dropped:
            logger.info(f"Dropped predictors without training variance: {dropped}")
        logger.info(f"Fitted preprocessing recipe on {len(df)} rows")
        return self

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Apply the fitted recipe.

        Args:
            df: Predictors to transform

        Returns:
            Transformed predictors with the kept column names
        """
        if not self._is_fitted:
            raise ValueError("Preprocessor must be fitted before transform. Call fit() first.")

        data = self.pipeline.transform(df[self.feature_columns])
        return pd.DataFrame(data, columns=self.get_feature_names(), index=df.index)

    def fit_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Fit and transform in one step."""
        self.fit(df)
        return self.transform(df)

    def get_feature_names(self) -> List[str]:
        """Names of the predictors that survive the recipe."""
        if not self._is_fitted:
            raise ValueError("Preprocessor must be fitted first.")
        return list(self.pipeline.get_feature_names_out(self.feature_columns))

    def get_statistics(self) -> Dict[str, Any]:
        """
        Parameters learned during fit.

        Returns:
            Dictionary with the imputation reference rows, per-feature
            means and standard deviations, and kept feature names
        """
        if not self._is_fitted:
            raise ValueError("Preprocessor must be fitted first.")

        scaler = self.pipeline.named_steps['scale']
        return {
            'imputation_reference': self.imputation_reference.copy(),
            'mean': None if scaler.mean_ is None else scaler.mean_.copy(),
            'scale': None if scaler.scale_ is None else scaler.scale_.copy(),
            'features': self.get_feature_names(),
        }


def interaction_expander() -> PolynomialFeatures:
    """Main effects plus every pairwise product of the predictors."""
    return PolynomialFeatures(degree=2, interaction_only=True, include_bias=False)


def preprocess_split(
    split: DataSplit,
    outcome: str,
    preprocessor: SurveyPreprocessor
) -> Dict[str, Any]:
    """
    Fit the recipe on Train and apply it to both partitions.

    Args:
        split: Train/holdout partition
        outcome: Outcome column name
        preprocessor: Recipe to fit (modified in place)

    Returns:
        Dictionary containing:
            - X_train, X_holdout: Raw predictor frames
            - y_train, y_holdout: Outcome arrays
            - train_processed, holdout_processed: Transformed predictors
            - preprocessor: Fitted SurveyPreprocessor
    """
    logger.info("=" * 60)
    logger.info("STARTING DATA PREPROCESSING")
    logger.info("=" * 60)

    X_train = split.train.drop(columns=[outcome])
    X_holdout = split.holdout.drop(columns=[outcome])

    train_processed = preprocessor.fit_transform(X_train)
    holdout_processed = preprocessor.transform(X_holdout)

    result = {
        'X_train': X_train,
        'X_holdout': X_holdout,
        'y_train': split.train[outcome].to_numpy(),
        'y_holdout': split.holdout[outcome].to_numpy(),
        'train_processed': train_processed,
        'holdout_processed': holdout_processed,
        'preprocessor': preprocessor,
    }

    logger.info("=" * 60)
    logger.info("PREPROCESSING COMPLETE")
    logger.info(f"  Training samples: {len(X_train)}")
    logger.info(f"  Holdout samples: {len(X_holdout)}")
    logger.info(f"  Predictors kept: {train_processed.shape[1]} of {X_train.shape[1]}")
    logger.info("=" * 60)

    return result


def print_preprocessing_summary(result: Dict[str, Any]) -> None:
    """
    Print a summary of the preprocessing results.

    Args:
        result: Dictionary from preprocess_split
    """
    preprocessor = result['preprocessor']
    stats = preprocessor.get_statistics()

    print("\n" + "=" * 50)
    print("PREPROCESSING SUMMARY")
    print("=" * 50)
    print(f"Training samples: {result['train_processed'].shape[0]}")
    print(f"Holdout samples: {result['holdout_processed'].shape[0]}")
    print(f"Predictors kept: {len(stats['features'])} of {len(preprocessor.feature_columns)}")
    print(f"\nKNN neighbors: {preprocessor.n_neighbors}")
    print(f"Centering: {preprocessor.center}")
    print(f"Scaling: {preprocessor.scale}")
    if stats['mean'] is not None:
        print("\nTraining means / standard deviations:")
        scales = stats['scale'] if stats['scale'] is not None else np.ones(len(stats['mean']))
        for name, mean, sd in zip(stats['features'], stats['mean'], scales):
            print(f"  {name:<15} {mean:>10.4f} {sd:>10.4f}")
    print("=" * 50 + "\n")
