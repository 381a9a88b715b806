"""Shared fixtures for the test suite."""

import sys
from pathlib import Path

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

PREDICTORS = [f"TIPI{i}" for i in range(1, 11)]


def make_survey(n_rows: int = 300, seed: int = 42, missing_rate: float = 0.05) -> pd.DataFrame:
    """Synthetic survey: ten 1-7 items, a 1-5 health rating and extra columns."""
    rng = np.random.default_rng(seed)
    items = rng.integers(1, 8, size=(n_rows, 10)).astype(float)

    signal = 0.4 * items[:, 0] - 0.3 * items[:, 3] + 0.2 * items[:, 0] * items[:, 7] / 7
    health = np.clip(np.round(2.5 + 0.5 * (signal - signal.mean()) + rng.normal(0, 0.8, n_rows)), 1, 5)

    mask = rng.random(items.shape) < missing_rate
    items[mask] = np.nan

    df = pd.DataFrame(items, columns=PREDICTORS)
    df['health'] = health
    df['age'] = rng.integers(18, 80, n_rows)
    df['country'] = rng.choice(['US', 'GB', 'DE'], n_rows)
    return df


@pytest.fixture
def survey_data():
    """Raw synthetic survey table."""
    return make_survey()


@pytest.fixture
def clean_survey(survey_data):
    """Survey reduced to predictors and outcome."""
    return survey_data[PREDICTORS + ['health']].reset_index(drop=True)
