"""
Test Suite for Split & Fold Module
==================================

Tests for the seeded holdout split and stratified folds.
"""

import pytest
import numpy as np
import pandas as pd

from trait_health.splitting import make_rng, split_holdout, make_folds


class TestSplitHoldout:
    """Tests for split_holdout."""

    @pytest.fixture
    def table(self):
        rng = np.random.default_rng(0)
        return pd.DataFrame({
            'x': rng.normal(size=1500),
            'health': rng.integers(1, 6, size=1500).astype(float),
        })

    def test_scenario_1500_rows(self, table):
        """Test 1,500 rows, seed 123, holdout 250."""
        split = split_holdout(table, make_rng(123), holdout_size=250)

        assert len(split.train) == 1250
        assert len(split.holdout) == 250
        assert len(np.intersect1d(split.train_idx, split.holdout_idx)) == 0
        combined = np.sort(np.concatenate([split.train_idx, split.holdout_idx]))
        np.testing.assert_array_equal(combined, np.arange(1500))

    def test_deterministic(self, table):
        first = split_holdout(table, make_rng(123))
        second = split_holdout(table, make_rng(123))

        np.testing.assert_array_equal(first.holdout_idx, second.holdout_idx)
        pd.testing.assert_frame_equal(first.train, second.train)

    def test_seed_changes_split(self, table):
        first = split_holdout(table, make_rng(123))
        second = split_holdout(table, make_rng(124))

        assert not np.array_equal(first.holdout_idx, second.holdout_idx)

    def test_holdout_too_large(self, table):
        with pytest.raises(ValueError, match="smaller than"):
            split_holdout(table.head(250), make_rng(1), holdout_size=250)

    def test_minimum_size(self, table):
        split = split_holdout(table.head(251), make_rng(1), holdout_size=250)

        assert len(split.train) == 1
        assert len(split.holdout) == 250


class TestMakeFolds:
    """Tests for make_folds."""

    @pytest.fixture
    def outcome(self):
        return np.random.default_rng(3).integers(1, 6, size=1250).astype(float)

    def test_each_row_validated_once(self, outcome):
        folds = make_folds(outcome, make_rng(123), n_folds=10)

        assert len(folds) == 10
        validated = np.concatenate([val for _, val in folds])
        np.testing.assert_array_equal(np.sort(validated), np.arange(len(outcome)))

        counts = np.zeros(len(outcome), dtype=int)
        for fit_idx, val_idx in folds:
            assert len(np.intersect1d(fit_idx, val_idx)) == 0
            counts[fit_idx] += 1
        assert (counts == 9).all()

    def test_roughly_equal_sizes(self, outcome):
        sizes = [len(val) for _, val in make_folds(outcome, make_rng(123), n_folds=10)]

        assert max(sizes) - min(sizes) <= 5

    def test_deterministic(self, outcome):
        first = make_folds(outcome, make_rng(123))
        second = make_folds(outcome, make_rng(123))

        for (a_fit, a_val), (b_fit, b_val) in zip(first, second):
            np.testing.assert_array_equal(a_fit, b_fit)
            np.testing.assert_array_equal(a_val, b_val)

    def test_stratified_by_outcome(self, outcome):
        """Test each fold's outcome mean stays close to the overall mean."""
        folds = make_folds(outcome, make_rng(5))

        for _, val_idx in folds:
            assert abs(outcome[val_idx].mean() - outcome.mean()) < 0.3

    def test_invalid_fold_count(self, outcome):
        with pytest.raises(ValueError):
            make_folds(outcome[:5], make_rng(1), n_folds=10)

    @pytest.mark.parametrize("n_rows", [10, 15, 19])
    def test_too_few_rows_to_stratify(self, outcome, n_rows):
        """Test fewer than two rows per fold and group still yields valid folds."""
        y = outcome[:n_rows]

        first = make_folds(y, make_rng(7), n_folds=10)
        second = make_folds(y, make_rng(7), n_folds=10)

        assert len(first) == 10
        validated = np.concatenate([val for _, val in first])
        np.testing.assert_array_equal(np.sort(validated), np.arange(n_rows))
        for (_, a_val), (_, b_val) in zip(first, second):
            np.testing.assert_array_equal(a_val, b_val)

    def test_same_rng_split_then_folds_reproducible(self):
        """Test the full seeded sequence used by the pipeline."""
        table = pd.DataFrame({'health': np.random.default_rng(9).integers(1, 6, 600).astype(float)})

        def run():
            rng = make_rng(123)
            split = split_holdout(table, rng, holdout_size=250)
            return split, make_folds(split.train['health'].to_numpy(), rng, n_folds=10)

        (split_a, folds_a), (split_b, folds_b) = run(), run()

        np.testing.assert_array_equal(split_a.train_idx, split_b.train_idx)
        for (_, a_val), (_, b_val) in zip(folds_a, folds_b):
            np.testing.assert_array_equal(a_val, b_val)
