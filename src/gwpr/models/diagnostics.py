"""Model-selection and assumption tests for the classical panel models."""
import logging
import math
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy import stats
from statsmodels.stats.outliers_influence import variance_inflation_factor

logger = logging.getLogger(__name__)


CONSTANT_NAMES = {"const", "intercept"}


def _slope_terms(*params: pd.Series) -> List[str]:
    """Coefficient names shared by every estimate, constant left out."""
    shared = set.intersection(*(set(p.index) for p in params))
    return [name for name in params[0].index if name in shared and name.lower() not in CONSTANT_NAMES]


def chow_test(fe_result) -> Tuple[float, float, str]:
    """F-test of the pooled model against entity fixed effects."""
    fp = fe_result.f_pooled
    return float(fp.stat), float(fp.pval), str(fp.df)


def hausman_test(fe_result, re_result) -> Tuple[float, float, int]:
    """Hausman statistic for the slopes FE and RE both estimate.

    The statistic is q' (V_FE - V_RE)^-1 q with q = b_FE - b_RE, compared
    with a chi-square on as many degrees of freedom as there are slopes.
    """
    terms = _slope_terms(fe_result.params, re_result.params)
    if not terms:
        raise ValueError("FE and RE share no slope coefficients.")

    q = fe_result.params[terms].to_numpy(dtype=float) - re_result.params[terms].to_numpy(dtype=float)
    v_diff = (
        fe_result.cov.loc[terms, terms].to_numpy(dtype=float)
        - re_result.cov.loc[terms, terms].to_numpy(dtype=float)
    )
    try:
        stat = float(q @ np.linalg.solve(v_diff, q))
    except np.linalg.LinAlgError:
        # small panels often give a non-invertible difference
        stat = float(q @ np.linalg.pinv(v_diff) @ q)

    dof = len(terms)
    return stat, float(stats.chi2.sf(stat, dof)), dof


def breusch_pagan_lm(pooled_resid: pd.Series) -> Tuple[float, float]:
    """Breusch-Pagan LM statistic for location random effects (balanced panels).

    With pooled residuals e arranged as locations x periods:
    LM = nT / (2 (T - 1)) * (sum_i (sum_t e_it)^2 / sum_it e_it^2 - 1)^2 ~ chi2(1).
    """
    grid = pooled_resid.unstack()
    if grid.isna().to_numpy().any():
        raise ValueError("LM test requires a balanced panel.")
    e = grid.to_numpy(dtype=float)
    n, T = e.shape
    if T < 2:
        raise ValueError("LM test requires at least two periods.")

    total_sq = float(np.sum(e**2))
    if total_sq == 0:
        raise ValueError("Residuals are all zero; LM is undefined.")
    ratio = float(np.sum(e.sum(axis=1) ** 2)) / total_sq

    lm = n * T / (2.0 * (T - 1)) * (ratio - 1.0) ** 2
    return float(lm), float(stats.chi2.sf(lm, 1))


def vif_table(X: pd.DataFrame) -> pd.DataFrame:
    """Variance inflation factor of every regressor, computed with a constant in the design."""
    regressors = [c for c in X.columns if c.lower() not in CONSTANT_NAMES]
    if len(regressors) < 2:
        return pd.DataFrame({"variable": regressors, "VIF": np.ones(len(regressors))})

    design = sm.add_constant(X[regressors].astype(float), has_constant="add").to_numpy()
    vif = pd.Series(
        {name: variance_inflation_factor(design, j) for j, name in enumerate(regressors, start=1)},
        name="VIF",
    )
    return vif.rename_axis("variable").reset_index().sort_values("VIF", ascending=False)


def model_selection_tests(results: Dict[str, object], alpha: float = 0.05) -> pd.DataFrame:
    """Chow, Hausman and LM tests in one table with a decision column."""
    rows: List[Dict[str, object]] = []

    try:
        stat, p, df = chow_test(results["FixedEffects"])
        rows.append({"test": "Chow", "comparison": "FE vs pooled", "stat": stat, "p_value": p, "df": df})
    except (AttributeError, KeyError) as exc:
        logger.warning("Chow test skipped: %s", exc)

    try:
        stat, p, dof = hausman_test(results["FixedEffects"], results["RandomEffects"])
        rows.append({"test": "Hausman", "comparison": "FE vs RE", "stat": stat, "p_value": p, "df": f"chi2({dof})"})
    except (KeyError, ValueError) as exc:
        logger.warning("Hausman test skipped: %s", exc)

    try:
        stat, p = breusch_pagan_lm(results["PooledOLS"].resids)
        rows.append({"test": "Breusch-Pagan LM", "comparison": "RE vs pooled", "stat": stat, "p_value": p, "df": "chi2(1)"})
    except (KeyError, ValueError) as exc:
        logger.warning("LM test skipped: %s", exc)

    table = pd.DataFrame(rows, columns=["test", "comparison", "stat", "p_value", "df"])
    table["reject_h0"] = table["p_value"] < alpha
    return table


def recommend_model(tests: pd.DataFrame, alpha: float = 0.05) -> Tuple[str, List[str]]:
    """Rule-based choice among the three classical models."""
    p = {row["test"]: row["p_value"] for _, row in tests.iterrows()}
    chow_p, haus_p, lm_p = p.get("Chow"), p.get("Hausman"), p.get("Breusch-Pagan LM")

    rec = "PooledOLS"
    rationale = []
    if chow_p is not None and not math.isnan(chow_p) and chow_p < alpha:
        rec = "FixedEffects"
        rationale.append("Chow significant: pooled rejected in favour of FE.")
    elif lm_p is not None and not math.isnan(lm_p) and lm_p < alpha:
        rec = "RandomEffects"
        rationale.append("LM significant: pooled rejected in favour of RE.")

    if rec != "PooledOLS" and haus_p is not None and not math.isnan(haus_p):
        if haus_p < alpha:
            rec = "FixedEffects"
            rationale.append("Hausman significant: RE inconsistent, FE chosen.")
        else:
            rec = "RandomEffects"
            rationale.append("Hausman not significant: RE consistent and efficient.")

    return rec, rationale
