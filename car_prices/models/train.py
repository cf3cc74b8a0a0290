"""
Model fitters for used-car prices.

Every fitter takes a complete-case dataset and returns a `FittedModel` whose
`predict(df)` yields one price per record, in record order and on the raw
price scale. Fitters raise `NumericDegeneracyError` when the data cannot
support that particular model and `FatalInputError` when the dataset is empty.

Usage
-----
from car_prices.models.train import fit_linear, fit_polynomial_cv, bootstrap_coefficients
linear = fit_linear(df)
poly = fit_polynomial_cv(df)        # degree chosen by 10-fold CV
boot = bootstrap_coefficients(df)   # 1000 resamples, 95% percentile intervals
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.compose import ColumnTransformer, TransformedTargetRegressor
from sklearn.ensemble import RandomForestRegressor
from sklearn.inspection import permutation_importance
from sklearn.linear_model import LinearRegression
from sklearn.metrics import mean_squared_error
from sklearn.model_selection import KFold, cross_val_score
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import PolynomialFeatures, StandardScaler
from sklearn.tree import DecisionTreeRegressor, export_text
from xgboost import XGBRegressor

from car_prices.config import (
    CONFIDENCE,
    FEATURES,
    MAX_DEGREE,
    N_BOOTSTRAP,
    N_SPLITS,
    N_TREES,
    POLY_FEATURES,
    RANDOM_SEED,
    TARGET,
    TREE_CP,
)
from car_prices.errors import FatalInputError, NumericDegeneracyError, RankDeficiencyError

logger = logging.getLogger(__name__)


class FittedModel:
    """
    A trained estimator together with the features it was fitted on.

    Attributes
    ----------
    name : str
    estimator : sklearn-compatible regressor
        Already fitted; predictions are on the raw price scale.
    features : List[str]
    training_data : pd.DataFrame
        The dataset the model was fitted on. Shared between models, never modified.
    details : Dict[str, Any]
        Fitter-specific outputs (coefficients, selected degree, importances, ...).
    """

    def __init__(
        self,
        name: str,
        estimator,
        training_data: pd.DataFrame,
        features: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.name = name
        self.estimator = estimator
        self.training_data = training_data
        self.features = list(features or FEATURES)
        self.details = details or {}

    def predict(self, df: pd.DataFrame) -> np.ndarray:
        X = feature_frame(df, self.features)
        return np.asarray(self.estimator.predict(X), dtype=float).ravel()

    def __repr__(self):
        return f"FittedModel(name={self.name!r}, n_train={len(self.training_data)})"


def feature_frame(df: pd.DataFrame, features: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Float feature matrix in `features` order.

    Accident is a two-level factor; its 0/1 coding is already the indicator
    for level 1 against the level-0 baseline.
    """
    features = list(features or FEATURES)
    missing = [c for c in features if c not in df.columns]
    if missing:
        raise FatalInputError(f"Dataset lacks feature column(s): {', '.join(missing)}")
    X = df[features].astype(float)
    if X.isna().any().any():
        raise ValueError("Feature columns contain nulls; filter incomplete records first")
    return X


def training_arrays(df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.Series]:
    if len(df) == 0:
        raise FatalInputError("Cannot fit a model on an empty dataset")
    return feature_frame(df), df[TARGET].astype(float)


def _require_positive_target(y: pd.Series) -> None:
    if (y <= 0).any():
        raise NumericDegeneracyError(
            f"log(Price) is undefined: {int((y <= 0).sum())} record(s) have Price <= 0"
        )


def has_full_rank(X) -> bool:
    """
    True if [1, X] has full column rank.

    Columns are centered and scaled to unit norm first so that the very
    different magnitudes of mileage and model year do not distort the check.
    """
    X = np.asarray(X, dtype=float)
    if X.shape[0] <= X.shape[1]:
        return False
    centered = X - X.mean(axis=0)
    norms = np.linalg.norm(centered, axis=0)
    if np.any(norms == 0):
        return False
    return np.linalg.matrix_rank(centered / norms) == X.shape[1]


def _coefficient_series(estimator: LinearRegression, names: List[str]) -> pd.Series:
    return pd.Series(np.r_[estimator.intercept_, estimator.coef_], index=["Intercept"] + list(names))


def fit_linear(df: pd.DataFrame, name: str = "Linear") -> FittedModel:
    """Ordinary least squares of Price on Mileage, Horsepower, Accident and Model_year."""
    X, y = training_arrays(df)
    if not has_full_rank(X):
        raise RankDeficiencyError("Design matrix is rank-deficient; linear coefficients are not identifiable")
    est = LinearRegression().fit(X, y)
    return FittedModel(name, est, df, details={"coefficients": _coefficient_series(est, FEATURES)})


def fit_log_linear(df: pd.DataFrame, name: str = "Log-linear") -> FittedModel:
    """
    OLS of log(Price) on the same features.

    Predictions are back-transformed with exp, so they compare directly to Price.
    """
    X, y = training_arrays(df)
    _require_positive_target(y)
    if not has_full_rank(X):
        raise RankDeficiencyError("Design matrix is rank-deficient; linear coefficients are not identifiable")
    est = TransformedTargetRegressor(regressor=LinearRegression(), func=np.log, inverse_func=np.exp)
    est.fit(X, y)
    return FittedModel(name, est, df, details={"coefficients": _coefficient_series(est.regressor_, FEATURES)})


def polynomial_pipeline(degree: int) -> Pipeline:
    """
    Mileage and Horsepower each expanded to powers 1..degree (no interactions),
    Accident and Model_year entered linearly.

    The expanded columns are standardized first; this leaves the fitted values
    unchanged and keeps degree-5 terms well conditioned.
    """
    expanded = [
        (f"{col.lower()}_poly", Pipeline([
            ("scale", StandardScaler()),
            ("poly", PolynomialFeatures(degree=degree, include_bias=False)),
        ]), [col])
        for col in POLY_FEATURES
    ]
    linear_cols = [c for c in FEATURES if c not in POLY_FEATURES]
    pre = ColumnTransformer(expanded + [("linear", "passthrough", linear_cols)], remainder="drop")
    return Pipeline([("pre", pre), ("model", LinearRegression())])


def select_polynomial_degree(
    df: pd.DataFrame,
    max_degree: int = MAX_DEGREE,
    n_splits: int = N_SPLITS,
    random_state: int = RANDOM_SEED,
) -> Tuple[int, pd.Series]:
    """
    Choose the polynomial degree by k-fold cross-validated mean squared error.

    Parameters
    ----------
    df : pd.DataFrame
        Complete-case dataset.
    max_degree : int
        Candidates are 1..max_degree.
    n_splits : int
    random_state : int
        Seeds the shuffled fold assignment; every candidate uses the same folds.

    Returns
    -------
    best_degree : int
        Degree with the lowest average CV error (the smallest such degree on ties).
    cv_errors : pd.Series
        Average fold MSE indexed by degree.
    """
    X, y = training_arrays(df)
    if len(df) < n_splits:
        raise NumericDegeneracyError(f"{n_splits}-fold cross-validation needs at least {n_splits} records, got {len(df)}")

    kf = KFold(n_splits=n_splits, shuffle=True, random_state=random_state)
    errors = {}
    for degree in range(1, max_degree + 1):
        scores = cross_val_score(polynomial_pipeline(degree), X, y, cv=kf, scoring="neg_mean_squared_error")
        errors[degree] = float(-scores.mean())
        logger.info("Polynomial degree %d: CV MSE=%.4g", degree, errors[degree])

    cv_errors = pd.Series(errors, name="cv_mse")
    cv_errors.index.name = "degree"
    best_degree = int(cv_errors.idxmin())
    return best_degree, cv_errors


def fit_polynomial(df: pd.DataFrame, degree: int, name: Optional[str] = None) -> FittedModel:
    X, y = training_arrays(df)
    est = polynomial_pipeline(degree).fit(X, y)
    return FittedModel(name or f"Polynomial (degree {degree})", est, df, details={"degree": degree})


def fit_polynomial_cv(
    df: pd.DataFrame,
    name: str = "Polynomial",
    max_degree: int = MAX_DEGREE,
    n_splits: int = N_SPLITS,
    random_state: int = RANDOM_SEED,
) -> FittedModel:
    """Select the degree by cross-validation, then refit on all of `df`."""
    best_degree, cv_errors = select_polynomial_degree(df, max_degree, n_splits, random_state)
    logger.info("Polynomial: selected degree %d", best_degree)
    model = fit_polynomial(df, best_degree, name=name)
    model.details["cv_errors"] = cv_errors
    return model


class BootstrapResult(NamedTuple):
    coefficients: pd.DataFrame
    summary: pd.DataFrame
    n_degenerate: int


def _ols_coefficients(X: np.ndarray, y: np.ndarray) -> np.ndarray:
    if not has_full_rank(X):
        return np.full(X.shape[1] + 1, np.nan)
    est = LinearRegression().fit(X, y)
    return np.r_[est.intercept_, est.coef_]


def bootstrap_coefficients(
    df: pd.DataFrame,
    n_resamples: int = N_BOOTSTRAP,
    confidence: float = CONFIDENCE,
    random_state: int = RANDOM_SEED,
    n_jobs: Optional[int] = None,
) -> BootstrapResult:
    """
    Nonparametric bootstrap of the linear-model coefficients.

    Each resample draws len(df) records with replacement and refits OLS.
    Resample indices come from one seeded generator in a fixed order, so the
    result does not depend on `n_jobs`.

    Returns
    -------
    BootstrapResult
        coefficients: one row per resample (NaN rows for rank-deficient resamples);
        summary: estimate, mean, std_error, bias, lower, upper per coefficient;
        n_degenerate: number of NaN rows.
    """
    X_df, y_s = training_arrays(df)
    X, y = X_df.to_numpy(), y_s.to_numpy()
    names = ["Intercept"] + FEATURES

    estimate = _ols_coefficients(X, y)
    if np.isnan(estimate).any():
        raise RankDeficiencyError("Design matrix is rank-deficient; cannot bootstrap linear coefficients")

    rng = np.random.default_rng(random_state)
    n = len(y)

    def resamples():
        for _ in range(n_resamples):
            idx = rng.integers(0, n, size=n)
            yield delayed(_ols_coefficients)(X[idx], y[idx])

    draws = np.vstack(Parallel(n_jobs=n_jobs)(resamples()))
    coefficients = pd.DataFrame(draws, columns=names)
    n_degenerate = int(coefficients.isna().any(axis=1).sum())
    if n_degenerate:
        logger.warning("Bootstrap: %d of %d resamples were rank-deficient and are excluded", n_degenerate, n_resamples)

    alpha = 1.0 - confidence
    valid = coefficients.dropna()
    if valid.empty:
        raise NumericDegeneracyError("Every bootstrap resample was rank-deficient")
    lower, upper = np.percentile(valid.to_numpy(), [100 * alpha / 2, 100 * (1 - alpha / 2)], axis=0)
    mean = valid.mean().to_numpy()
    summary = pd.DataFrame(
        {
            "estimate": estimate,
            "mean": mean,
            "std_error": valid.std(ddof=1).to_numpy(),
            "bias": mean - estimate,
            "lower": lower,
            "upper": upper,
        },
        index=names,
    )
    return BootstrapResult(coefficients=coefficients, summary=summary, n_degenerate=n_degenerate)


def fit_random_forest(
    df: pd.DataFrame,
    name: str = "Random forest",
    n_trees: int = N_TREES,
    random_state: int = RANDOM_SEED,
    n_jobs: Optional[int] = None,
    permutation_repeats: int = 0,
) -> FittedModel:
    """
    Random forest of regression trees with out-of-bag error.

    details
    -------
    importance : pd.DataFrame
        Impurity-based importance per feature, plus permutation importance
        (mean increase in MSE) when `permutation_repeats` > 0.
    oob_mse, oob_r2 : float
        Out-of-bag mean squared error and R^2.
    """
    X, y = training_arrays(df)
    if len(df) < 2:
        raise NumericDegeneracyError("Random forest needs at least two records for out-of-bag error")

    est = RandomForestRegressor(n_estimators=n_trees, oob_score=True, random_state=random_state, n_jobs=n_jobs)
    est.fit(X, y)

    importance = pd.DataFrame({"impurity": est.feature_importances_}, index=FEATURES)
    if permutation_repeats:
        perm = permutation_importance(
            est, X, y, n_repeats=permutation_repeats, random_state=random_state,
            scoring="neg_mean_squared_error",
        )
        importance["permutation"] = perm.importances_mean
    importance = importance.sort_values("impurity", ascending=False)

    details = {
        "importance": importance,
        "oob_mse": float(mean_squared_error(y, est.oob_prediction_)),
        "oob_r2": float(est.oob_score_),
    }
    logger.info("Random forest: OOB MSE=%.4g, OOB R2=%.3f", details["oob_mse"], details["oob_r2"])
    return FittedModel(name, est, df, details=details)


def tree_structure(tree: DecisionTreeRegressor, features: Optional[List[str]] = None) -> pd.DataFrame:
    """
    One row per node of a fitted regression tree.

    Columns: node, depth, feature, threshold, left, right, n_samples, mean,
    left_mean, right_mean. Leaves have no feature, threshold or children.
    """
    features = list(features or FEATURES)
    t = tree.tree_
    means = t.value[:, 0, 0]
    rows = []
    stack = [(0, 0)]
    while stack:
        node, depth = stack.pop()
        left, right = t.children_left[node], t.children_right[node]
        is_leaf = left == right
        rows.append({
            "node": node,
            "depth": depth,
            "feature": None if is_leaf else features[t.feature[node]],
            "threshold": np.nan if is_leaf else float(t.threshold[node]),
            "left": None if is_leaf else int(left),
            "right": None if is_leaf else int(right),
            "n_samples": int(t.n_node_samples[node]),
            "mean": float(means[node]),
            "left_mean": np.nan if is_leaf else float(means[left]),
            "right_mean": np.nan if is_leaf else float(means[right]),
        })
        if not is_leaf:
            stack.extend([(right, depth + 1), (left, depth + 1)])
    return pd.DataFrame(rows).sort_values("node").reset_index(drop=True)


def fit_decision_tree(
    df: pd.DataFrame,
    name: str = "Decision tree",
    cp: float = TREE_CP,
    min_samples_split: int = 20,
    min_samples_leaf: int = 7,
    random_state: int = RANDOM_SEED,
) -> FittedModel:
    """
    Single regression tree.

    A split is kept only if it lowers the overall sum of squared errors by at
    least `cp` times the root's; in sklearn terms that is
    min_impurity_decrease = cp * var(y).
    """
    X, y = training_arrays(df)
    est = DecisionTreeRegressor(
        min_samples_split=min_samples_split,
        min_samples_leaf=min_samples_leaf,
        min_impurity_decrease=cp * float(np.var(y)),
        random_state=random_state,
    )
    est.fit(X, y)
    details = {
        "structure": tree_structure(est),
        "text": export_text(est, feature_names=FEATURES),
        "n_leaves": int(est.get_n_leaves()),
    }
    return FittedModel(name, est, df, details=details)


def fit_gradient_boosting(
    df: pd.DataFrame,
    name: str = "XGBoost (log target)",
    n_estimators: int = 800,
    learning_rate: float = 0.05,
    max_depth: int = 6,
    random_state: int = RANDOM_SEED,
) -> FittedModel:
    """Gradient-boosted trees on log(Price), predictions back on the price scale."""
    X, y = training_arrays(df)
    _require_positive_target(y)
    xgb = XGBRegressor(
        n_estimators=n_estimators,
        learning_rate=learning_rate,
        max_depth=max_depth,
        subsample=0.8,
        colsample_bytree=0.8,
        random_state=random_state,
        n_jobs=-1,
        verbosity=0,
    )
    est = TransformedTargetRegressor(regressor=xgb, func=np.log, inverse_func=np.exp)
    est.fit(X, y)
    importance = pd.Series(est.regressor_.feature_importances_, index=FEATURES, name="gain")
    return FittedModel(name, est, df, details={"importance": importance.sort_values(ascending=False)})


MODEL_FITTERS: Dict[str, Callable[[pd.DataFrame], FittedModel]] = {
    "Linear": fit_linear,
    "Log-linear": fit_log_linear,
    "Polynomial": fit_polynomial_cv,
    "Random forest": fit_random_forest,
    "Decision tree": fit_decision_tree,
    "XGBoost (log target)": fit_gradient_boosting,
}
