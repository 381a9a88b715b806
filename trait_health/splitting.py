"""
Split & Fold Module
===================

Seeded holdout partition and outcome-stratified k-fold indices.

All randomness comes from an explicit ``numpy.random.Generator`` passed in
by the caller; nothing here touches global random state.
"""

import logging
from typing import List, NamedTuple, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold, StratifiedKFold

logger = logging.getLogger(__name__)

Folds = List[Tuple[np.ndarray, np.ndarray]]


class DataSplit(NamedTuple):
    """Disjoint train/holdout partition of the clean table."""
    train_idx: np.ndarray
    holdout_idx: np.ndarray
    train: pd.DataFrame
    holdout: pd.DataFrame


def make_rng(seed: int) -> np.random.Generator:
    """Create the run's random generator."""
    return np.random.default_rng(seed)


def split_holdout(
    df: pd.DataFrame,
    rng: np.random.Generator,
    holdout_size: int = 250
) -> DataSplit:
    """
    Randomly reserve ``holdout_size`` rows for out-of-sample evaluation.

    Args:
        df: Clean table
        rng: Random generator (consumed)
        holdout_size: Number of holdout rows

    Returns:
        DataSplit with sorted positional indices and the two frames
    """
    n_rows = len(df)
    if holdout_size >= n_rows:
        raise ValueError(
            f"Holdout size ({holdout_size}) must be smaller than the number of rows ({n_rows})"
        )

    order = rng.permutation(n_rows)
    holdout_idx = np.sort(order[:holdout_size])
    train_idx = np.sort(order[holdout_size:])

    logger.info(f"Train/Holdout split: {len(train_idx)} train rows, {len(holdout_idx)} holdout rows")

    return DataSplit(
        train_idx=train_idx,
        holdout_idx=holdout_idx,
        train=df.iloc[train_idx],
        holdout=df.iloc[holdout_idx],
    )


def outcome_groups(y: np.ndarray, n_folds: int) -> Optional[np.ndarray]:
    """
    Bin a numeric outcome into quantile groups for stratification.

    Uses up to five groups, each with at least ``n_folds`` rows. Returns
    None when fewer than two such groups fit.
    """
    n_groups = min(5, len(y) // n_folds)
    if n_groups < 2:
        return None
    groups = pd.qcut(pd.Series(y).rank(method='first'), q=n_groups, labels=False)
    return np.asarray(groups, dtype=int)


def make_folds(
    y: np.ndarray,
    rng: np.random.Generator,
    n_folds: int = 10
) -> Folds:
    """
    Generate k-fold cross-validation indices stratified on the outcome.

    Falls back to unstratified shuffled folds when there are too few rows
    to stratify. Every row is validated exactly once and used for fitting in the other
    ``n_folds - 1`` folds.

    Args:
        y: Outcome values of the training rows
        rng: Random generator (consumed)
        n_folds: Number of folds

    Returns:
        List of (fit positions, validation positions) pairs into ``y``
    """
    y = np.asarray(y, dtype=float)
    if n_folds < 2 or n_folds > len(y):
        raise ValueError(f"n_folds must be between 2 and {len(y)}, got {n_folds}")

    groups = outcome_groups(y, n_folds)
    seed = int(rng.integers(0, 2**31 - 1))
    if groups is None:
        logger.warning(f"Too few rows ({len(y)}) to stratify {n_folds} folds; using unstratified folds")
        splits = KFold(n_splits=n_folds, shuffle=True, random_state=seed).split(y)
    else:
        splitter = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=seed)
        splits = splitter.split(np.zeros(len(y)), groups)

    folds = [(fit_idx, val_idx) for fit_idx, val_idx in splits]

    sizes = [len(val) for _, val in folds]
    logger.info(f"Created {n_folds} folds, validation sizes {min(sizes)}-{max(sizes)}")
    return folds
