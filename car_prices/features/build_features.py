"""
Field extraction for the used-car listings dataset.

Raw listings carry semi-structured text ("10,000 mi.", "300.0HP 3.0L ...",
"$12,500"). Each parser here is a pure function that returns a typed value or
None; malformed input never raises.
"""
import logging
import re
from typing import Any, Dict, Mapping, NamedTuple, Optional, Tuple

import numpy as np
import pandas as pd

from car_prices.config import ACCIDENT_CASE_SENSITIVE, COLUMNS, RAW_COLUMNS

logger = logging.getLogger(__name__)

HP_PATTERN = re.compile(r"(\d+(?:\.\d+)?)HP", re.IGNORECASE)
YEAR_PATTERN = re.compile(r"^\s*(\d+)(?:\.0*)?\s*$")


class Record(NamedTuple):
    Brand: Optional[str]
    Model: Optional[str]
    Model_year: Optional[int]
    Mileage: Optional[int]
    Horsepower: Optional[float]
    Accident: Optional[int]
    Price: Optional[int]


def _is_blank(raw: Any) -> bool:
    if raw is None:
        return True
    if not isinstance(raw, str) and pd.isna(raw):
        return True
    return str(raw).strip() == ""


def _parse_digits(raw: Any) -> Optional[int]:
    if _is_blank(raw):
        return None
    digits = re.sub(r"\D", "", str(raw))
    # more than 18 digits does not fit the Int64 columns
    if not digits or len(digits) > 18:
        return None
    return int(digits)


def parse_text(raw: Any) -> Optional[str]:
    return None if _is_blank(raw) else str(raw).strip()


def parse_mileage(raw: Any) -> Optional[int]:
    """'10,000 mi.' -> 10000. Every non-digit character is dropped."""
    return _parse_digits(raw)


def parse_price(raw: Any) -> Optional[int]:
    """'$12,500' -> 12500."""
    return _parse_digits(raw)


def parse_horsepower(raw: Any) -> Optional[float]:
    """First number directly followed by 'HP' in the engine description."""
    if _is_blank(raw):
        return None
    match = HP_PATTERN.search(str(raw))
    return float(match.group(1)) if match else None


def parse_model_year(raw: Any) -> Optional[int]:
    if _is_blank(raw):
        return None
    match = YEAR_PATTERN.match(str(raw))
    return int(match.group(1)) if match else None


def encode_accident(raw: Any, case_sensitive: bool = ACCIDENT_CASE_SENSITIVE) -> Optional[int]:
    """
    Encode the accident history text.

    Returns None for an empty field, 0 when the text mentions "None"
    (e.g. "None reported"), 1 for anything else.
    """
    if _is_blank(raw):
        return None
    text = str(raw)
    if case_sensitive:
        return 0 if "None" in text else 1
    return 0 if "none" in text.lower() else 1


def extract_record(raw: Mapping[str, Any], accident_case_sensitive: bool = ACCIDENT_CASE_SENSITIVE) -> Record:
    """Build a typed Record from one raw listing keyed by raw header names."""
    return Record(
        Brand=parse_text(raw.get("brand")),
        Model=parse_text(raw.get("model")),
        Model_year=parse_model_year(raw.get("model_year")),
        Mileage=parse_mileage(raw.get("milage")),
        Horsepower=parse_horsepower(raw.get("engine")),
        Accident=encode_accident(raw.get("accident"), case_sensitive=accident_case_sensitive),
        Price=parse_price(raw.get("price")),
    )


def _as_text(values: pd.Series) -> pd.Series:
    """Raw column as stripped nullable strings, blank fields as NA."""
    text = values.astype("string").str.strip()
    return text.mask(text.eq("").fillna(False))


def _to_number(text: pd.Series) -> pd.Series:
    return pd.to_numeric(text.astype(object).where(text.notna(), np.nan), errors="coerce")


def _digits_column(values: pd.Series) -> pd.Series:
    digits = _as_text(values).str.replace(r"\D", "", regex=True)
    # more than 18 digits does not fit the Int64 columns
    valid = digits.str.len().between(1, 18).fillna(False).to_numpy(dtype=bool)
    out = pd.Series(pd.NA, index=values.index, dtype="Int64")
    out.loc[valid] = _to_number(digits[valid]).to_numpy(dtype="int64")
    return out


def _horsepower_column(values: pd.Series) -> pd.Series:
    hp = _as_text(values).str.extract(HP_PATTERN.pattern, flags=re.IGNORECASE, expand=False)
    return _to_number(hp).astype(float)


def _model_year_column(values: pd.Series) -> pd.Series:
    year = _as_text(values).str.extract(YEAR_PATTERN.pattern, expand=False)
    return _digits_column(year)


def _accident_column(values: pd.Series, case_sensitive: bool) -> pd.Series:
    text = _as_text(values)
    mentions_none = text.str.contains("None", case=case_sensitive, regex=False).fillna(False).to_numpy(dtype=bool)
    out = pd.Series(1, index=values.index, dtype="Int64")
    out.loc[mentions_none] = 0
    out.loc[text.isna().to_numpy(dtype=bool)] = pd.NA
    return out


def parse_failure_counts(raw: pd.DataFrame, df: pd.DataFrame) -> Dict[str, int]:
    """
    Count fields that had text in the raw data but no parsed value.

    Parameters
    ----------
    raw : pd.DataFrame
        Raw listings keyed by raw header names.
    df : pd.DataFrame
        Output of `build_features(raw)`, row-aligned with `raw`.

    Returns
    -------
    Dict[str, int]
        Dataset column -> number of non-empty raw values that resolved to null.
    """
    counts = {}
    for raw_col, col in RAW_COLUMNS.items():
        had_text = _as_text(raw[raw_col]).notna().to_numpy(dtype=bool)
        counts[col] = int((had_text & df[col].isna().to_numpy()).sum())
    return counts


def extract_fields(
    raw: pd.DataFrame, accident_case_sensitive: bool = ACCIDENT_CASE_SENSITIVE
) -> Tuple[pd.DataFrame, Dict[str, int]]:
    """
    Parse every raw column and count the fields that failed to parse.

    Column-wise counterpart of `extract_record`: each row of the result equals
    `extract_record` applied to the same raw row.

    Returns
    -------
    Tuple[pd.DataFrame, Dict[str, int]]
        The typed dataset (nullable Int64 integer fields, float Horsepower)
        and the per-column parse failure counts.
    """
    df = pd.DataFrame(
        {
            "Brand": _as_text(raw["brand"]).astype(object),
            "Model": _as_text(raw["model"]).astype(object),
            "Model_year": _model_year_column(raw["model_year"]),
            "Mileage": _digits_column(raw["milage"]),
            "Horsepower": _horsepower_column(raw["engine"]),
            "Accident": _accident_column(raw["accident"], accident_case_sensitive),
            "Price": _digits_column(raw["price"]),
        },
        index=raw.index,
    )
    df = df[COLUMNS].reset_index(drop=True)

    failures = parse_failure_counts(raw, df)
    for col, n in failures.items():
        if n:
            logger.info("%s: %d value(s) could not be parsed and were set to null", col, n)
    return df, failures


def build_features(raw: pd.DataFrame, accident_case_sensitive: bool = ACCIDENT_CASE_SENSITIVE) -> pd.DataFrame:
    """Apply all field parsers and return the typed (nullable) dataset."""
    df, _ = extract_fields(raw, accident_case_sensitive=accident_case_sensitive)
    return df
