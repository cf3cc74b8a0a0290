"""
Used-car prices - model persistence and single-listing prediction.

`save_models()` writes each fitted model with joblib plus one JSON metadata file
holding the comparison metrics. `predict_price(input_dict, model_name)`:
- Loads the persisted model.
- Accepts either raw listing fields ("milage": "10,000 mi.", "engine": ...) or
  typed fields ("Mileage": 10000, "Horsepower": 300.0, ...).
- Returns a float price prediction.
"""

from __future__ import annotations

import json
import math
import logging
import os
import re
from typing import Any, Dict

import joblib
import pandas as pd

from car_prices.config import FEATURES, METADATA_FILE, MODELS_DIR, RAW_ALIASES
from car_prices.features.build_features import extract_record
from car_prices.models.train import FittedModel, feature_frame

logger = logging.getLogger(__name__)

# raw-text fields that need parsing; "Mileage", "Horsepower" etc. are used as-is
RAW_INPUT_KEYS = {"milage", "engine", "accident"}


def model_filename(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")
    return f"{slug}.joblib"


def _json_metric(value: Any) -> Any:
    # NaN (e.g. R2 on a constant target) has no JSON literal; store null
    value = float(value)
    return round(value, 4) if math.isfinite(value) else None


def save_models(
    models: Dict[str, FittedModel],
    table: pd.DataFrame,
    models_dir: str = MODELS_DIR,
    metadata_file: str = METADATA_FILE,
) -> Dict[str, Any]:
    """
    Persist fitted models and the comparison metadata.

    Only the estimator and its feature list are stored; the training data is not.
    """
    os.makedirs(models_dir, exist_ok=True)
    files = {}
    for name, model in models.items():
        path = os.path.join(models_dir, model_filename(name))
        joblib.dump({"name": name, "estimator": model.estimator, "features": model.features}, path)
        files[name] = os.path.basename(path)

    metrics = {}
    for name, row in table.iterrows():
        if row["status"] == "ok":
            metrics[name] = {k: _json_metric(row[k]) for k in ("RMSE", "MAE", "R2")}
        else:
            metrics[name] = {"status": row["status"], "note": row["note"]}

    metadata = {
        "trained_on": pd.Timestamp.today().strftime("%Y-%m-%d"),
        "features": FEATURES,
        "model_files": files,
        "metrics": metrics,
        "notes": "Metrics are in-sample unless a hold-out fraction was configured.",
    }
    os.makedirs(os.path.dirname(os.path.abspath(metadata_file)), exist_ok=True)
    with open(metadata_file, "w") as fh:
        json.dump(metadata, fh, indent=4, allow_nan=False)
    logger.info("Saved %d model(s) to %s", len(files), models_dir)
    return metadata


def load_model(name: str, models_dir: str = MODELS_DIR) -> Dict[str, Any]:
    path = os.path.join(models_dir, model_filename(name))
    if not os.path.exists(path):
        raise RuntimeError(f"Model file not found at {path}. Run `python -m car_prices.pipeline` first.")
    return joblib.load(path)


def _input_frame(input_dict: Dict[str, Any]) -> pd.DataFrame:
    """Typed one-row frame from raw or already-typed listing fields."""
    raw = {RAW_ALIASES.get(k, k): v for k, v in input_dict.items()}
    if RAW_INPUT_KEYS & set(raw):
        return pd.DataFrame([extract_record(raw)._asdict()])
    return pd.DataFrame([input_dict])


def predict_price(input_dict: Dict[str, Any], model_name: str = "Random forest", models_dir: str = MODELS_DIR) -> float:
    """
    Predict the price of a single listing.

    Returns
    -------
    float
        Predicted price on the raw price scale.
    """
    saved = load_model(model_name, models_dir)
    X = feature_frame(_input_frame(input_dict), saved["features"])
    return float(saved["estimator"].predict(X)[0])


if __name__ == "__main__":
    example = {
        "brand": "Ford",
        "model": "F-150 XLT",
        "model_year": "2017",
        "milage": "51,000 mi.",
        "engine": "375.0HP 3.5L V6 Cylinder Engine Gasoline Fuel",
        "accident": "None reported",
    }
    print("Predicted price:", predict_price(example))
