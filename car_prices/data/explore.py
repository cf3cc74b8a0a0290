"""
Exploratory summaries of the cleaned dataset.

Tables only; plotting consumes these downstream.
"""
from typing import Dict

import pandas as pd

from car_prices.config import OUTLIER_COLUMNS, TARGET

NUMERIC_COLUMNS = ["Model_year"] + OUTLIER_COLUMNS


def missing_counts(df: pd.DataFrame) -> pd.Series:
    """Null count per column."""
    return df.isna().sum().astype(int)


def numeric_summary(df: pd.DataFrame) -> pd.DataFrame:
    """count, mean, std, min, quartiles and max of the numeric fields."""
    return df[NUMERIC_COLUMNS].astype(float).describe().T


def correlations(df: pd.DataFrame) -> pd.DataFrame:
    """Pearson correlations between the numeric fields and the accident flag."""
    cols = NUMERIC_COLUMNS + ["Accident"]
    return df[cols].astype(float).corr(method="pearson")


def brand_counts(df: pd.DataFrame, top: int = 10) -> pd.Series:
    return df["Brand"].value_counts().head(top)


def price_by_accident(df: pd.DataFrame) -> pd.DataFrame:
    """Price count/mean/median per accident status (0 = none reported)."""
    grouped = df.dropna(subset=["Accident"]).groupby("Accident")[TARGET]
    return grouped.agg(["count", "mean", "median"]).astype(float)


def summarize(df: pd.DataFrame) -> Dict[str, pd.DataFrame]:
    """All exploratory tables keyed by name."""
    return {
        "missing": missing_counts(df).to_frame("n_missing"),
        "numeric": numeric_summary(df),
        "correlations": correlations(df),
        "brands": brand_counts(df).to_frame("n_listings"),
        "price_by_accident": price_by_accident(df),
    }
