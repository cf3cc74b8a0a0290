"""
End-to-end batch run: raw listings -> cleaned data -> model comparison.

Usage (from project root)
-------------------------
python -m car_prices.pipeline

# Or import:
from car_prices.pipeline import run
result = run()
print(result.comparison)
"""

from __future__ import annotations

import logging
from typing import Dict, NamedTuple, Optional

import pandas as pd

from car_prices.config import (
    CLEANED_FILE,
    COMPLETE_FILE,
    METADATA_FILE,
    MODELS_DIR,
    N_BOOTSTRAP,
    RANDOM_SEED,
    RAW_DATA_FILE,
)
from car_prices.data.explore import summarize
from car_prices.data.filters import FilterReport, drop_incomplete, remove_outliers
from car_prices.data.load_data import read_raw, write_dataset
from car_prices.errors import FatalInputError, NumericDegeneracyError
from car_prices.features.build_features import extract_fields
from car_prices.models.diagnostics import ols_diagnostics
from car_prices.models.evaluate import compare_models, format_comparison
from car_prices.models.predict import save_models
from car_prices.models.train import BootstrapResult, FittedModel, bootstrap_coefficients

logger = logging.getLogger(__name__)


class PipelineResult(NamedTuple):
    cleaned: pd.DataFrame
    complete: pd.DataFrame
    filtered: pd.DataFrame
    outliers: pd.DataFrame
    parse_failures: Dict[str, int]
    missing_report: FilterReport
    outlier_report: FilterReport
    exploration: Dict[str, pd.DataFrame]
    comparison: pd.DataFrame
    models: Dict[str, FittedModel]
    bootstrap: Optional[BootstrapResult]
    diagnostics: Optional[Dict[str, object]]


def run(
    raw_path: str = RAW_DATA_FILE,
    cleaned_file: str = CLEANED_FILE,
    complete_file: str = COMPLETE_FILE,
    holdout: Optional[float] = None,
    n_bootstrap: int = N_BOOTSTRAP,
    random_state: int = RANDOM_SEED,
    save: bool = True,
    models_dir: str = MODELS_DIR,
    metadata_file: str = METADATA_FILE,
) -> PipelineResult:
    """
    Run every stage once over `raw_path`.

    The cleaned and complete-case datasets are written to `cleaned_file` and
    `complete_file`. Models that cannot be fitted appear as unavailable in the
    comparison; a bootstrap or diagnostics failure of the same kind leaves that
    entry as None. A missing column or an empty dataset aborts the run.
    """
    raw = read_raw(raw_path)
    cleaned, failures = extract_fields(raw)
    write_dataset(cleaned, cleaned_file)

    complete, missing_report = drop_incomplete(cleaned)
    write_dataset(complete, complete_file)
    if missing_report.retained == 0:
        raise FatalInputError("No complete records remain after dropping missing values")

    filtered, outliers = remove_outliers(complete)
    outlier_report = FilterReport(original=len(complete), retained=len(filtered), removed=len(outliers))

    exploration = summarize(cleaned)
    comparison, models = compare_models(filtered, holdout=holdout, random_state=random_state)

    try:
        boot = bootstrap_coefficients(filtered, n_resamples=n_bootstrap, random_state=random_state)
    except NumericDegeneracyError as exc:
        logger.warning("Bootstrap unavailable: %s", exc)
        boot = None
    try:
        diagnostics = ols_diagnostics(filtered)
    except NumericDegeneracyError as exc:
        logger.warning("OLS diagnostics unavailable: %s", exc)
        diagnostics = None

    if save and models:
        save_models(models, comparison, models_dir=models_dir, metadata_file=metadata_file)

    return PipelineResult(
        cleaned=cleaned,
        complete=complete,
        filtered=filtered,
        outliers=outliers,
        parse_failures=failures,
        missing_report=missing_report,
        outlier_report=outlier_report,
        exploration=exploration,
        comparison=comparison,
        models=models,
        bootstrap=boot,
        diagnostics=diagnostics,
    )


def print_report(result: PipelineResult) -> None:
    print("Unparseable fields set to null:")
    for col, n in result.parse_failures.items():
        print(f"  {col:<12}{n:>8}")

    m, o = result.missing_report, result.outlier_report
    print(f"\nMissing-data filter: {m.original} -> {m.retained} records ({m.removed} removed)")
    print(f"Outlier filter:      {o.original} -> {o.retained} records ({o.removed} removed)")

    print("\nModel comparison:")
    print(format_comparison(result.comparison))
    unavailable = result.comparison.index[result.comparison["status"] != "ok"].tolist()
    if unavailable:
        print(f"Partial table, unavailable: {', '.join(unavailable)}")

    if "Polynomial" in result.models:
        print(f"\nPolynomial degree selected by CV: {result.models['Polynomial'].details['degree']}")

    if result.bootstrap is not None:
        print("\nBootstrap coefficient intervals:")
        print(result.bootstrap.summary.to_string(float_format=lambda v: f"{v:,.4g}"))

    if "Random forest" in result.models:
        details = result.models["Random forest"].details
        print(f"\nRandom forest OOB MSE={details['oob_mse']:,.0f}, OOB R2={details['oob_r2']:.3f}")
        print(details["importance"].to_string())


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    print_report(run())
