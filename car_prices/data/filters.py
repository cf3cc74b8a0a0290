"""
Record filters applied between extraction and modelling.

Both filters return new DataFrames; their input is never modified.
"""
import logging
from typing import List, NamedTuple, Tuple

import numpy as np
import pandas as pd

from car_prices.config import OUTLIER_COLUMNS, Z_THRESHOLD

logger = logging.getLogger(__name__)


class FilterReport(NamedTuple):
    original: int
    retained: int
    removed: int


def drop_incomplete(df: pd.DataFrame) -> Tuple[pd.DataFrame, FilterReport]:
    """
    Keep complete cases only.

    Returns
    -------
    complete : pd.DataFrame
        Records with no null field, in input order, with a fresh index.
    report : FilterReport
        Original, retained and removed counts.
    """
    complete = df.dropna(how="any").reset_index(drop=True)
    report = FilterReport(original=len(df), retained=len(complete), removed=len(df) - len(complete))
    logger.info(
        "Missing-data filter: %d of %d records retained (%d removed)",
        report.retained, report.original, report.removed,
    )
    return complete, report


def zscores(df: pd.DataFrame, columns: List[str] = OUTLIER_COLUMNS) -> pd.DataFrame:
    """
    Standardized scores per column, using the mean and sample standard deviation
    of `df` itself.

    A column whose standard deviation is zero or undefined gets z = 0 throughout,
    so a constant column never marks a record as an outlier.
    """
    values = df[columns].astype(float)
    mu = values.mean()
    sigma = values.std(ddof=1)
    degenerate = sigma.isna() | (sigma == 0)
    for col in sigma[degenerate].index:
        logger.info("Outlier filter: %s has zero or undefined spread and is not screened", col)
    z = (values - mu) / sigma.where(~degenerate, np.inf)
    return z.fillna(0.0)


def remove_outliers(
    df: pd.DataFrame,
    columns: List[str] = OUTLIER_COLUMNS,
    threshold: float = Z_THRESHOLD,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Remove records with |z| > threshold on any of `columns`.

    The means and standard deviations are computed once over `df`; the filter is
    not repeated on the reduced set.

    Returns
    -------
    kept, removed : pd.DataFrame
        Partition of `df`, each in input order with a fresh index.
    """
    z = zscores(df, columns)
    is_outlier = (z.abs() > threshold).any(axis=1)
    kept = df.loc[~is_outlier].reset_index(drop=True)
    removed = df.loc[is_outlier].reset_index(drop=True)
    logger.info(
        "Outlier filter (|z| > %.1f on %s): %d of %d records retained (%d removed)",
        threshold, ", ".join(columns), len(kept), len(df), len(removed),
    )
    return kept, removed
