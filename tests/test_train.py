import numpy as np
import pandas as pd
import pytest

from car_prices.config import FEATURES
from car_prices.errors import FatalInputError, NumericDegeneracyError, RankDeficiencyError
from car_prices.models.train import (
    bootstrap_coefficients,
    fit_decision_tree,
    fit_gradient_boosting,
    fit_linear,
    fit_log_linear,
    fit_polynomial,
    fit_polynomial_cv,
    fit_random_forest,
    has_full_rank,
    select_polynomial_degree,
)


def test_linear_recovers_generating_coefficients(make_cars):
    df = make_cars(n=500, seed=1, noise=1.0)
    coef = fit_linear(df).details["coefficients"]

    assert list(coef.index) == ["Intercept"] + FEATURES
    assert coef["Mileage"] == pytest.approx(-0.15, abs=1e-3)
    assert coef["Horsepower"] == pytest.approx(60, abs=0.1)
    assert coef["Accident"] == pytest.approx(-3000, abs=5)
    assert coef["Model_year"] == pytest.approx(800, abs=1)


def test_predict_preserves_length_and_order(cars):
    model = fit_linear(cars)
    preds = model.predict(cars)
    reversed_preds = model.predict(cars.iloc[::-1])

    assert len(preds) == len(cars)
    np.testing.assert_allclose(reversed_preds, preds[::-1])


def test_fitting_does_not_modify_training_data(cars):
    before = cars.copy()
    model = fit_linear(cars)
    fit_polynomial(cars, degree=3)
    pd.testing.assert_frame_equal(cars, before)
    assert model.training_data is cars


def test_rank_deficient_design_is_reported(cars):
    df = cars.copy()
    df["Accident"] = 0
    assert not has_full_rank(df[FEATURES].astype(float))
    with pytest.raises(RankDeficiencyError):
        fit_linear(df)
    assert issubclass(RankDeficiencyError, NumericDegeneracyError)


def test_empty_dataset_is_fatal(cars):
    with pytest.raises(FatalInputError):
        fit_linear(cars.iloc[0:0])


def test_log_linear_predictions_are_on_price_scale(cars):
    model = fit_log_linear(cars)
    preds = model.predict(cars)

    assert (preds > 0).all()
    assert np.median(np.abs(preds - cars["Price"].astype(float))) < 8_000


def test_log_linear_rejects_non_positive_price(cars):
    df = cars.copy()
    df.loc[0, "Price"] = 0
    with pytest.raises(NumericDegeneracyError, match="Price <= 0"):
        fit_log_linear(df)


def test_degree_selection_prefers_linear_fit(make_cars):
    selected = [select_polynomial_degree(make_cars(n=300, seed=seed))[0] for seed in range(10)]
    assert selected.count(1) >= 5


def test_degree_selection_reports_every_candidate(cars):
    best, cv_errors = select_polynomial_degree(cars, max_degree=5)
    assert list(cv_errors.index) == [1, 2, 3, 4, 5]
    assert best == int(cv_errors.idxmin())
    assert cv_errors[best] == cv_errors.min()


def test_degree_selection_is_reproducible(cars):
    _, first = select_polynomial_degree(cars, random_state=7)
    _, second = select_polynomial_degree(cars, random_state=7)
    pd.testing.assert_series_equal(first, second)


def test_degree_selection_picks_curvature(make_cars):
    df = make_cars(n=300, seed=2, noise=500.0)
    miles = df["Mileage"].astype(float)
    df["Price"] = (df["Price"].astype(float) + 4e-6 * (miles - 75_000) ** 2).round().astype("Int64")
    best, _ = select_polynomial_degree(df)
    assert best >= 2


def test_degree_selection_needs_enough_records(cars):
    with pytest.raises(NumericDegeneracyError):
        select_polynomial_degree(cars.head(5))


def test_degree_selection_breaks_ties_toward_lowest_degree(cars, monkeypatch):
    monkeypatch.setattr("car_prices.models.train.cross_val_score", lambda *args, **kwargs: np.array([-1.0, -1.0]))
    best, cv_errors = select_polynomial_degree(cars, max_degree=4)

    assert best == 1
    assert (cv_errors == 1.0).all()


def test_polynomial_cv_refits_on_full_data(cars):
    model = fit_polynomial_cv(cars, max_degree=3)
    assert model.details["degree"] in (1, 2, 3)
    assert len(model.details["cv_errors"]) == 3
    assert len(model.predict(cars)) == len(cars)


def test_bootstrap_distribution(make_cars):
    df = make_cars(n=100, seed=4)
    result = bootstrap_coefficients(df, n_resamples=1000, random_state=0)
    estimate = fit_linear(df).details["coefficients"]

    assert result.coefficients.shape == (1000, len(FEATURES) + 1)
    assert result.n_degenerate == 0
    summary = result.summary
    np.testing.assert_allclose(summary["estimate"], estimate.to_numpy())
    assert ((summary["mean"] - summary["estimate"]).abs() < 0.25 * summary["std_error"]).all()
    assert (summary["lower"] < summary["estimate"]).all()
    assert (summary["estimate"] < summary["upper"]).all()


def test_bootstrap_is_reproducible_and_job_independent(cars):
    first = bootstrap_coefficients(cars, n_resamples=30, random_state=5)
    second = bootstrap_coefficients(cars, n_resamples=30, random_state=5, n_jobs=2)
    pd.testing.assert_frame_equal(first.coefficients, second.coefficients)


def test_bootstrap_excludes_degenerate_resamples(make_cars):
    df = make_cars(n=40, seed=6)
    df["Accident"] = pd.array([1] + [0] * 39, dtype="Int64")
    result = bootstrap_coefficients(df, n_resamples=200, random_state=0)

    assert result.coefficients.shape[0] == 200
    assert result.n_degenerate > 0
    assert result.coefficients.isna().any(axis=1).sum() == result.n_degenerate
    assert np.isfinite(result.summary.to_numpy()).all()


def test_bootstrap_rejects_rank_deficient_data(cars):
    df = cars.copy()
    df["Horsepower"] = 300.0
    with pytest.raises(RankDeficiencyError):
        bootstrap_coefficients(df, n_resamples=10)


def test_random_forest_exposes_importance_and_oob(cars):
    model = fit_random_forest(cars, n_trees=60, permutation_repeats=2)
    details = model.details

    assert set(details["importance"].index) == set(FEATURES)
    assert list(details["importance"].columns) == ["impurity", "permutation"]
    assert details["importance"]["impurity"].sum() == pytest.approx(1.0)
    assert details["oob_mse"] >= 0
    assert details["oob_r2"] <= 1
    assert len(model.predict(cars)) == len(cars)


def test_random_forest_is_reproducible(cars):
    first = fit_random_forest(cars, n_trees=20, random_state=3).predict(cars)
    second = fit_random_forest(cars, n_trees=20, random_state=3).predict(cars)
    np.testing.assert_array_equal(first, second)


def test_decision_tree_structure(cars):
    model = fit_decision_tree(cars)
    structure = model.details["structure"]

    root = structure.iloc[0]
    assert root["node"] == 0 and root["depth"] == 0
    assert root["feature"] in FEATURES
    assert root["mean"] == pytest.approx(cars["Price"].astype(float).mean())

    left = structure.set_index("node").loc[int(root["left"])]
    right = structure.set_index("node").loc[int(root["right"])]
    assert left["mean"] == pytest.approx(root["left_mean"])
    weighted = (left["n_samples"] * left["mean"] + right["n_samples"] * right["mean"]) / root["n_samples"]
    assert weighted == pytest.approx(root["mean"])

    leaves = structure["feature"].isna()
    assert leaves.sum() == model.details["n_leaves"]
    assert "|---" in model.details["text"]


def test_gradient_boosting_predicts_prices(cars):
    model = fit_gradient_boosting(cars, n_estimators=50)
    preds = model.predict(cars)
    assert len(preds) == len(cars)
    assert (preds > 0).all()
    assert set(model.details["importance"].index) == set(FEATURES)
