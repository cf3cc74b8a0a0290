import numpy as np
import pytest

from car_prices.config import FEATURES
from car_prices.errors import RankDeficiencyError
from car_prices.models.diagnostics import ols_diagnostics
from car_prices.models.train import fit_linear


def test_ols_diagnostics_match_linear_fit(cars):
    diag = ols_diagnostics(cars)
    coef = diag["coefficients"]

    assert list(coef.index) == ["Intercept"] + FEATURES
    np.testing.assert_allclose(coef["coef"], fit_linear(cars).details["coefficients"], rtol=1e-6)
    assert coef["p_value"].between(0, 1).all()
    assert (coef["lower"] < coef["coef"]).all() and (coef["coef"] < coef["upper"]).all()
    assert coef.loc["Mileage", "p_value"] < 0.001


def test_fit_statistics_and_tests(cars):
    diag = ols_diagnostics(cars)

    assert diag["fit"]["n_obs"] == len(cars)
    assert 0 < diag["fit"]["adj_r2"] <= diag["fit"]["r2"] <= 1
    assert (diag["vif"] >= 1).all()
    assert set(diag["vif"].index) == set(FEATURES)
    assert 0 <= diag["breusch_pagan"]["lm_p_value"] <= 1
    assert len(diag["residuals"]) == len(cars)
    assert diag["residuals"].mean() == pytest.approx(0, abs=1e-6)


def test_rank_deficient_design(cars):
    df = cars.copy()
    df["Accident"] = 1
    with pytest.raises(RankDeficiencyError):
        ols_diagnostics(df)
