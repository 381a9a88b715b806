"""
Feature Selection & Cleaning Module
===================================

Reduces the raw survey table to the personality predictors and the
health outcome, coerces everything to numeric and drops incomplete rows.

Functions:
    - select_columns: Prefix-matched predictors plus outcome
    - coerce_numeric: Non-numeric values become missing
    - drop_incomplete_rows: Outcome missing or all predictors missing
    - clean_data: The full selection/cleaning sequence
"""

import logging
from typing import List

import pandas as pd

from .exceptions import SchemaError

logger = logging.getLogger(__name__)


def predictor_columns(df: pd.DataFrame, prefix: str, outcome: str) -> List[str]:
    """Columns whose name starts with ``prefix``, in table order."""
    return [
        col for col in df.columns
        if str(col).startswith(prefix) and col != outcome
    ]


def select_columns(
    df: pd.DataFrame,
    prefix: str,
    outcome: str,
    n_predictors: int = 10
) -> pd.DataFrame:
    """
    Keep the prefix-matched predictor columns and the outcome column.

    Args:
        df: Raw survey table
        prefix: Name prefix shared by the predictor items
        outcome: Name of the outcome column
        n_predictors: Expected number of predictor columns

    Returns:
        DataFrame with predictors followed by the outcome

    Raises:
        SchemaError: If the outcome is absent or the column count differs
    """
    if outcome not in df.columns:
        raise SchemaError(f"Outcome column '{outcome}' not found in data")

    predictors = predictor_columns(df, prefix, outcome)
    selected = df[predictors + [outcome]]

    if selected.shape[1] != n_predictors + 1:
        raise SchemaError(
            f"Expected {n_predictors} predictors matching '{prefix}*' plus '{outcome}' "
            f"({n_predictors + 1} columns), found {selected.shape[1]}: {list(selected.columns)}"
        )

    logger.info(f"Selected {len(predictors)} predictors with prefix '{prefix}' and outcome '{outcome}'")
    return selected


def coerce_numeric(df: pd.DataFrame) -> pd.DataFrame:
    """Convert every column to float; unparseable values become NaN."""
    # object cast so labelled (categorical) columns parse by value
    return df.apply(lambda s: pd.to_numeric(s.astype(object), errors='coerce')).astype(float)


def drop_incomplete_rows(df: pd.DataFrame, outcome: str) -> pd.DataFrame:
    """
    Drop rows with a missing outcome, then rows missing every predictor.

    Args:
        df: Numeric table with predictors and outcome
        outcome: Name of the outcome column

    Returns:
        Filtered DataFrame (original index kept)
    """
    n_start = len(df)

    df = df[df[outcome].notna()]
    n_outcome = n_start - len(df)

    predictors = [col for col in df.columns if col != outcome]
    df = df[df[predictors].notna().any(axis=1)]
    n_predictors = n_start - n_outcome - len(df)

    logger.info(
        f"Dropped {n_outcome} rows with missing outcome and "
        f"{n_predictors} rows missing all predictors"
    )
    return df


def clean_data(
    raw: pd.DataFrame,
    prefix: str,
    outcome: str,
    n_predictors: int = 10
) -> pd.DataFrame:
    """
    Produce the clean modelling table from the raw survey table.

    Args:
        raw: Raw survey table
        prefix: Predictor name prefix
        outcome: Outcome column name
        n_predictors: Expected number of predictors

    Returns:
        Clean table with a fresh 0..n-1 index
    """
    logger.info("=" * 60)
    logger.info("CLEANING SURVEY DATA")
    logger.info("=" * 60)

    selected = select_columns(raw, prefix, outcome, n_predictors)
    numeric = coerce_numeric(selected)
    clean = drop_incomplete_rows(numeric, outcome).reset_index(drop=True)

    logger.info(f"Clean table: {clean.shape[0]} rows × {clean.shape[1]} columns")
    return clean
