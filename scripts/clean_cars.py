import logging

from car_prices.config import CLEANED_FILE, COMPLETE_FILE, RAW_DATA_FILE
from car_prices.data.explore import missing_counts
from car_prices.data.filters import drop_incomplete, remove_outliers
from car_prices.data.load_data import read_raw, write_dataset
from car_prices.features.build_features import build_features


def main():
    print(f"Loading raw listings from {RAW_DATA_FILE}...")
    raw = read_raw(RAW_DATA_FILE)
    df = build_features(raw)
    print("Nulls per column after extraction:")
    print(missing_counts(df).to_string())
    write_dataset(df, CLEANED_FILE)

    complete, report = drop_incomplete(df)
    print(f"Complete cases: {report.retained} of {report.original} ({report.removed} dropped)")
    write_dataset(complete, COMPLETE_FILE)

    kept, removed = remove_outliers(complete)
    print(f"Outliers (|z| > 3): {len(removed)} removed, {len(kept)} kept")
    print("✅ Done.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    main()
