"""
Load, persist and cache the used-car listings dataset.

This module provides `read_raw()` for the raw listings export, `write_dataset()`
and `read_dataset()` for the typed tabular files, and `load_data()` which
builds the cleaned dataset from the raw file and caches it as CSV for faster
subsequent access.

Persisted datasets always use the column order of `COLUMNS`; nulls are written
as empty fields. The cache file path defaults to
`data/processed/used_cars_clean.csv`.
"""

import logging
import os

import pandas as pd

from car_prices.config import CLEANED_FILE, COLUMNS, INTEGER_COLUMNS, RAW_ALIASES, RAW_COLUMNS, RAW_DATA_FILE
from car_prices.errors import FatalInputError
from car_prices.features.build_features import build_features

logger = logging.getLogger(__name__)

DATASET_DTYPES = {"Brand": str, "Model": str, "Horsepower": float}
DATASET_DTYPES.update({col: "Int64" for col in INTEGER_COLUMNS})


def normalize_raw_columns(raw: pd.DataFrame) -> pd.DataFrame:
    """
    Lower-case and strip raw headers, resolve aliases and check required columns.

    Raises
    ------
    FatalInputError
        If any required raw column is absent.
    """
    raw = raw.copy()
    renamed = {}
    for col in raw.columns:
        key = str(col).strip().lower()
        renamed[col] = RAW_ALIASES.get(key, key)
    raw = raw.rename(columns=renamed)

    missing = [col for col in RAW_COLUMNS if col not in raw.columns]
    if missing:
        raise FatalInputError(f"Required column(s) missing from input: {', '.join(missing)}")
    return raw[list(RAW_COLUMNS)]


def read_raw(path: str = RAW_DATA_FILE) -> pd.DataFrame:
    """
    Read the raw listings file as text.

    Only empty fields are treated as missing, so values such as "None reported"
    survive for the accident parser.
    """
    if not os.path.exists(path):
        raise FatalInputError(f"Raw listings file not found at {path}")
    raw = pd.read_csv(path, dtype=str, keep_default_na=False, na_values=[""])
    logger.info("Read %d raw listings from %s", len(raw), path)
    return normalize_raw_columns(raw)


def write_dataset(df: pd.DataFrame, path: str) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    df[COLUMNS].to_csv(path, index=False)
    logger.info("Wrote %d records to %s", len(df), path)


def read_dataset(path: str) -> pd.DataFrame:
    """Read a dataset written by `write_dataset`, restoring nullable dtypes."""
    df = pd.read_csv(path, dtype=DATASET_DTYPES, keep_default_na=False, na_values=[""])
    missing = [col for col in COLUMNS if col not in df.columns]
    if missing:
        raise FatalInputError(f"Dataset {path} lacks column(s): {', '.join(missing)}")
    return df[COLUMNS]


def load_data(use_cache=True, raw_path: str = RAW_DATA_FILE, cache_file: str = CLEANED_FILE) -> pd.DataFrame:
    """
    Load the cleaned (typed, possibly null) dataset from the cache or the raw file.

    Parameters
    ----------
    use_cache : bool
        If True and the cleaned CSV exists, load it instead of re-parsing.
    raw_path : str
        Raw listings export.
    cache_file : str
        Where the cleaned dataset is cached.

    Returns
    -------
    pd.DataFrame
        Cleaned dataset with columns `COLUMNS`.
    """
    if use_cache and os.path.exists(cache_file):
        return read_dataset(cache_file)

    df = build_features(read_raw(raw_path))
    write_dataset(df, cache_file)
    return df
