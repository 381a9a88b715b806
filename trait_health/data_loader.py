"""
Data Loader Module
==================

Reads survey datasets saved by statistical software and the YAML run
configuration.

Functions:
    - load_config: Load YAML configuration file
    - load_data: Load an SPSS / Stata / SAS dataset into a DataFrame
    - missingness_report: Per-predictor missing fractions
    - print_data_summary: Console summary of a table
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional

import pandas as pd
import numpy as np
import yaml

from .exceptions import FormatError

logger = logging.getLogger(__name__)

# Extension -> reader family
SUPPORTED_FORMATS = {
    '.sav': 'spss',
    '.zsav': 'spss',
    '.por': 'spss',
    '.dta': 'stata',
    '.sas7bdat': 'sas',
    '.xpt': 'sas',
}


def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Dictionary containing configuration parameters

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    logger.info(f"Loaded configuration from {config_path}")
    return config or {}


def _read(file_path: Path, fmt: str, convert_categoricals: bool) -> pd.DataFrame:
    if fmt == 'spss':
        return pd.read_spss(file_path, convert_categoricals=convert_categoricals)
    if fmt == 'stata':
        return pd.read_stata(file_path, convert_categoricals=convert_categoricals)
    if file_path.suffix.lower() == '.xpt':
        return pd.read_sas(file_path, format='xport')
    return pd.read_sas(file_path, format='sas7bdat')


def load_data(
    file_path: str,
    convert_categoricals: bool = False
) -> pd.DataFrame:
    """
    Load a survey dataset written by SPSS, Stata or SAS.

    Labelled variables are returned as their numeric codes unless
    ``convert_categoricals`` is set.

    Args:
        file_path: Path to the dataset file
        convert_categoricals: Replace value codes with their labels

    Returns:
        DataFrame containing the raw survey table

    Raises:
        FileNotFoundError: If data file doesn't exist
        FormatError: If the file type is unsupported or cannot be parsed
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Data file not found: {file_path}")

    fmt = SUPPORTED_FORMATS.get(file_path.suffix.lower())
    if fmt is None:
        raise FormatError(
            f"Unsupported dataset format '{file_path.suffix}' for {file_path}. "
            f"Expected one of: {sorted(SUPPORTED_FORMATS)}"
        )

    try:
        df = _read(file_path, fmt, convert_categoricals)
    except Exception as e:
        raise FormatError(f"Could not read {file_path} as {fmt} data: {e}") from e

    logger.info(f"Loaded {fmt} data from {file_path}: {df.shape[0]} rows × {df.shape[1]} columns")
    return df


def missingness_report(
    df: pd.DataFrame,
    columns: Optional[List[str]] = None,
    threshold: float = 0.25
) -> pd.Series:
    """
    Fraction of missing values per column.

    Imputation assumes values are missing completely at random and affect
    fewer than ``threshold`` of rows per predictor. Columns above the
    threshold are logged, never rejected.

    Args:
        df: Table to inspect
        columns: Columns to report (default: all)
        threshold: Missing fraction that triggers a warning

    Returns:
        Series of missing fractions indexed by column name
    """
    columns = list(df.columns) if columns is None else columns
    fractions = df[columns].isnull().mean()

    for col, frac in fractions[fractions >= threshold].items():
        logger.warning(f"Column '{col}' is {frac:.1%} missing (>= {threshold:.0%} assumed maximum)")

    return fractions


def print_data_summary(df: pd.DataFrame) -> None:
    """
    Print a formatted summary of the dataset to console.

    Args:
        df: DataFrame to summarize
    """
    print("\n" + "=" * 60)
    print("DATASET SUMMARY")
    print("=" * 60)
    print(f"Shape: {df.shape[0]} rows × {df.shape[1]} columns")
    print(f"Memory Usage: {df.memory_usage(deep=True).sum() / 1024:.2f} KB")
    print("\nColumn Information:")
    print("-" * 40)

    for col in df.columns:
        dtype = df[col].dtype
        non_null = df[col].count()
        null_pct = (1 - non_null / len(df)) * 100 if len(df) else 0.0
        print(f"  {col}: {dtype} | {non_null} non-null ({null_pct:.1f}% missing)")

    numeric = df.select_dtypes(include=[np.number])
    if not numeric.empty:
        print("\nBasic Statistics:")
        print("-" * 40)
        print(numeric.describe().round(4).to_string())
    print("=" * 60 + "\n")
