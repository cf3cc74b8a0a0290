"""
Metrics and model comparison.

Usage (from project root)
-------------------------
from car_prices.models.evaluate import compare_models, regression_metrics
table, models = compare_models(df)               # in-sample, every model in MODEL_FITTERS
table, models = compare_models(df, holdout=0.2)  # seeded train/test split instead

By default every model is scored on the same data it was fitted on. That is
an in-sample comparison and flatters flexible models (random forest, high
polynomial degrees); pass `holdout` for an out-of-sample view.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Mapping, NamedTuple, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, mean_squared_error
from sklearn.model_selection import train_test_split

from car_prices.config import RANDOM_SEED, TARGET
from car_prices.errors import DimensionMismatchError, FatalInputError, NumericDegeneracyError
from car_prices.models.train import MODEL_FITTERS, FittedModel

logger = logging.getLogger(__name__)

TABLE_COLUMNS = ["RMSE", "MAE", "R2", "status", "note"]


class MetricsRow(NamedTuple):
    RMSE: float
    MAE: float
    R2: float


def regression_metrics(actual, predicted) -> MetricsRow:
    """
    RMSE, MAE and R^2 of `predicted` against `actual`.

    R^2 is NaN (undefined) when `actual` is constant.

    Raises
    ------
    DimensionMismatchError
        If the sequences differ in length or are empty.
    """
    actual = np.asarray(actual, dtype=float).ravel()
    predicted = np.asarray(predicted, dtype=float).ravel()
    if len(actual) != len(predicted):
        raise DimensionMismatchError(f"{len(actual)} actual values but {len(predicted)} predictions")
    if len(actual) == 0:
        raise DimensionMismatchError("Cannot compute metrics over zero records")

    rmse = float(np.sqrt(mean_squared_error(actual, predicted)))
    mae = float(mean_absolute_error(actual, predicted))
    ss_res = float(np.sum((actual - predicted) ** 2))
    ss_tot = float(np.sum((actual - actual.mean()) ** 2))
    r2 = float("nan") if ss_tot == 0 else 1.0 - ss_res / ss_tot
    return MetricsRow(RMSE=rmse, MAE=mae, R2=r2)


def _unavailable(reason: str) -> Dict[str, object]:
    return {"RMSE": np.nan, "MAE": np.nan, "R2": np.nan, "status": "unavailable", "note": reason}


def compare_models(
    df: pd.DataFrame,
    fitters: Optional[Mapping[str, Callable[..., FittedModel]]] = None,
    holdout: Optional[float] = None,
    random_state: int = RANDOM_SEED,
) -> Tuple[pd.DataFrame, Dict[str, FittedModel]]:
    """
    Fit every model and tabulate RMSE, MAE and R^2 against the same records.

    Parameters
    ----------
    df : pd.DataFrame
        Complete-case, outlier-filtered dataset.
    fitters : Mapping[str, callable] or None
        Model name -> fitter called as `fitter(train, name=name)`.
        Defaults to `MODEL_FITTERS`.
    holdout : float or None
        If given, the fraction of records held out for scoring. If None
        (default), models are scored in-sample on `df`.
    random_state : int
        Seed for the hold-out split.

    Returns
    -------
    table : pd.DataFrame
        Indexed by model name; columns RMSE, MAE, R2, status, note. Models that
        could not be fitted or scored have status "unavailable" and a reason.
    models : Dict[str, FittedModel]
        The models that were fitted.
    """
    if len(df) == 0:
        raise FatalInputError("Cannot compare models on an empty dataset")
    fitters = MODEL_FITTERS if fitters is None else fitters

    if holdout:
        train, test = train_test_split(df, test_size=holdout, random_state=random_state)
        train, test = train.reset_index(drop=True), test.reset_index(drop=True)
        logger.info("Hold-out evaluation: %d training / %d test records", len(train), len(test))
    else:
        train = test = df
        logger.info("In-sample evaluation on %d records", len(df))
    actual = test[TARGET].astype(float).to_numpy()

    rows = {}
    models = {}
    for name, fitter in fitters.items():
        try:
            model = fitter(train, name=name)
        except NumericDegeneracyError as exc:
            logger.warning("%s unavailable: %s", name, exc)
            rows[name] = _unavailable(str(exc))
            continue
        models[name] = model

        try:
            metrics = regression_metrics(actual, model.predict(test))
        except DimensionMismatchError as exc:
            logger.warning("%s could not be scored: %s", name, exc)
            rows[name] = _unavailable(str(exc))
            continue
        rows[name] = dict(metrics._asdict(), status="ok", note="")
        logger.info("%s: RMSE=%.2f, MAE=%.2f, R2=%.3f", name, metrics.RMSE, metrics.MAE, metrics.R2)

    table = pd.DataFrame.from_dict(rows, orient="index", columns=TABLE_COLUMNS)
    table.index.name = "model"
    return table, models


def format_comparison(table: pd.DataFrame) -> str:
    """Plain-text rendering of the comparison table, unavailable models flagged."""
    lines = [f"{'Model':<24}{'RMSE':>14}{'MAE':>14}{'R2':>9}"]
    for name, row in table.iterrows():
        if row["status"] != "ok":
            lines.append(f"{name:<24}{'unavailable':>37}  ({row['note']})")
        else:
            lines.append(f"{name:<24}{row['RMSE']:>14,.2f}{row['MAE']:>14,.2f}{row['R2']:>9.3f}")
    return "\n".join(lines)
