"""
Inference diagnostics for the linear price model.

Uses statsmodels OLS on the same design as `fit_linear` to report what the
sklearn estimator does not: standard errors, p-values, overall fit
statistics, multicollinearity and residual heteroskedasticity.
"""
from typing import Dict

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.stats.diagnostic import het_breuschpagan
from statsmodels.stats.outliers_influence import variance_inflation_factor

from car_prices.config import CONFIDENCE, FEATURES, TARGET
from car_prices.errors import RankDeficiencyError
from car_prices.models.train import training_arrays, has_full_rank


def fit_ols(df: pd.DataFrame):
    X, y = training_arrays(df)
    if not has_full_rank(X):
        raise RankDeficiencyError("Design matrix is rank-deficient; OLS inference is undefined")
    return sm.OLS(y, sm.add_constant(X, has_constant="add")).fit()


def coefficient_table(results, confidence: float = CONFIDENCE) -> pd.DataFrame:
    """coef, std_err, t, p_value and confidence bounds per term."""
    ci = results.conf_int(alpha=1.0 - confidence)
    table = pd.DataFrame({
        "coef": results.params,
        "std_err": results.bse,
        "t": results.tvalues,
        "p_value": results.pvalues,
        "lower": ci[0],
        "upper": ci[1],
    })
    return table.rename(index={"const": "Intercept"})


def fit_statistics(results) -> Dict[str, float]:
    return {
        "n_obs": int(results.nobs),
        "r2": float(results.rsquared),
        "adj_r2": float(results.rsquared_adj),
        "f_statistic": float(results.fvalue),
        "f_p_value": float(results.f_pvalue),
        "residual_std_error": float(np.sqrt(results.scale)),
    }


def vif_table(df: pd.DataFrame) -> pd.Series:
    """Variance inflation factor per predictor."""
    X = sm.add_constant(df[FEATURES].astype(float), has_constant="add")
    vif = [variance_inflation_factor(X.values, i) for i in range(1, X.shape[1])]
    return pd.Series(vif, index=FEATURES, name="VIF").sort_values(ascending=False)


def breusch_pagan(results) -> Dict[str, float]:
    lm, lm_p, f, f_p = het_breuschpagan(results.resid, results.model.exog)
    return {"lm_statistic": float(lm), "lm_p_value": float(lm_p), "f_statistic": float(f), "f_p_value": float(f_p)}


def ols_diagnostics(df: pd.DataFrame, confidence: float = CONFIDENCE) -> Dict[str, object]:
    """
    All linear-model diagnostics for `df`.

    Returns
    -------
    dict
        coefficients (DataFrame), fit (dict), vif (Series), breusch_pagan (dict),
        residuals (Series of Price minus fitted value).
    """
    results = fit_ols(df)
    return {
        "coefficients": coefficient_table(results, confidence),
        "fit": fit_statistics(results),
        "vif": vif_table(df),
        "breusch_pagan": breusch_pagan(results),
        "residuals": pd.Series(np.asarray(results.resid), index=df.index, name=f"{TARGET}_residual"),
    }
