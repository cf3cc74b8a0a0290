import numpy as np
import pandas as pd
import pytest

from car_prices.config import COLUMNS


def _make_cars(n=200, seed=0, noise=2000.0):
    rng = np.random.default_rng(seed)
    mileage = rng.integers(5_000, 150_000, size=n)
    hp = np.round(rng.uniform(150, 500, size=n), 1)
    accident = rng.integers(0, 2, size=n)
    year = rng.integers(2005, 2024, size=n)
    price = 50_000 - 0.15 * mileage + 60 * hp - 3_000 * accident + 800 * (year - 2015)
    price = np.round(price + rng.normal(0, noise, size=n)).astype(int)
    df = pd.DataFrame({
        "Brand": rng.choice(["Ford", "BMW", "Toyota", "Audi"], size=n),
        "Model": rng.choice(["A", "B", "C"], size=n),
        "Model_year": pd.array(year, dtype="Int64"),
        "Mileage": pd.array(mileage, dtype="Int64"),
        "Horsepower": hp.astype(float),
        "Accident": pd.array(accident, dtype="Int64"),
        "Price": pd.array(price, dtype="Int64"),
    })
    return df[COLUMNS]


@pytest.fixture
def make_cars():
    """Factory for synthetic complete-case datasets, linear in every feature."""
    return _make_cars


@pytest.fixture
def cars():
    return _make_cars()


@pytest.fixture
def raw_listings():
    return pd.DataFrame({
        "brand": ["Ford", "BMW", "Lexus", None],
        "model": ["F-150 XLT", "M3 Base", "RX 350", "Model X"],
        "model_year": ["2017", "2019", "abc", "2021"],
        "milage": ["51,000 mi.", "10,000 mi.", "34,742 mi.", "n/a"],
        "engine": [
            "375.0HP 3.5L V6 Cylinder Engine Gasoline Fuel",
            "300.0HP Gas Engine",
            "3.5L V6",
            "Electric Motor",
        ],
        "accident": ["None reported", "At least 1 accident or damage reported", None, "None reported"],
        "price": ["$10,300", "$38,005", "$54,598", "$15,500"],
    })


def to_raw(df):
    """Render a typed dataset back into raw listing text."""
    return pd.DataFrame({
        "brand": df["Brand"],
        "model": df["Model"],
        "model_year": df["Model_year"].astype(str),
        "milage": [f"{m:,} mi." for m in df["Mileage"]],
        "engine": [f"{hp:.1f}HP 3.5L V6 Cylinder Engine Gasoline Fuel" for hp in df["Horsepower"]],
        "accident": ["None reported" if a == 0 else "At least 1 accident or damage reported" for a in df["Accident"]],
        "price": [f"${p:,}" for p in df["Price"]],
    })


@pytest.fixture
def raw_csv(tmp_path, make_cars):
    """Raw listings file: 80 clean rows, two incomplete rows and one extreme price."""
    raw = to_raw(make_cars(n=80, seed=3))
    extra = pd.DataFrame({
        "brand": ["Kia", "Audi", "Bugatti"],
        "model": ["Soul", "A4", "Chiron"],
        "model_year": ["2015", "2018", "2020"],
        "milage": ["40,000 mi.", "22,000 mi.", "1,000 mi."],
        "engine": ["130.0HP 1.6L", "Electric", "1500.0HP 8.0L W16"],
        "accident": ["", "None reported", "None reported"],
        "price": ["$9,000", "$21,000", "$2,950,000"],
    })
    raw = pd.concat([raw, extra], ignore_index=True)
    raw = raw.rename(columns={"brand": "Brand ", "milage": "milage"})
    path = tmp_path / "used_cars.csv"
    raw.to_csv(path, index=False)
    return str(path)
