import os
import sys
from types import SimpleNamespace

import numpy as np
import pandas as pd
import pytest
from scipy import stats

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from gwpr.data import make_synthetic_panel
from gwpr.models.diagnostics import (
    breusch_pagan_lm,
    hausman_test,
    model_selection_tests,
    recommend_model,
    vif_table,
)
from gwpr.models.panel_data import PanelDataset
from gwpr.models.panel_models import MODEL_NAMES, coefficient_table, fit_panel_models, panel_design


@pytest.fixture(scope="module")
def panel():
    df = make_synthetic_panel(n_locations=12, n_periods=5, noise=0.5, random_seed=1)
    # location-level shift so the fixed effects matter
    df["y"] += df["province"].str[1:].astype(int) * 0.3
    return PanelDataset(
        df,
        feature_cols=["x1", "x2"],
        target_col="y",
        location_col="province",
        time_col="year",
        coord_cols=["longitude", "latitude"],
    )


def test_fit_panel_models_returns_three_models(panel):
    results = fit_panel_models(panel)
    assert set(results) == set(MODEL_NAMES)

    table = coefficient_table(results)
    assert set(table["model"]) == set(MODEL_NAMES)
    assert {"const", "x1", "x2"}.issubset(set(table["term"]))
    pooled = table[(table["model"] == "PooledOLS") & (table["term"] == "x1")]
    assert pooled["coef"].iloc[0] == pytest.approx(3.0, abs=0.5)


def test_model_selection_tests_and_recommendation(panel):
    results = fit_panel_models(panel)
    tests = model_selection_tests(results, alpha=0.05)

    assert list(tests["test"]) == ["Chow", "Hausman", "Breusch-Pagan LM"]
    assert tests["p_value"].between(0.0, 1.0).all()
    # the location shift is strong, so pooled OLS is rejected
    assert tests.set_index("test").loc["Chow", "reject_h0"]

    rec, rationale = recommend_model(tests)
    assert rec in {"FixedEffects", "RandomEffects"}
    assert rationale


def test_breusch_pagan_lm_balanced_formula():
    idx = pd.MultiIndex.from_product([["A", "B"], [1, 2]])
    resid = pd.Series([1.0, 1.0, -1.0, -1.0], index=idx)
    lm, p = breusch_pagan_lm(resid)
    assert lm == pytest.approx(2.0)
    assert p == pytest.approx(stats.chi2.sf(2.0, 1))


def test_breusch_pagan_lm_rejects_unbalanced_panel():
    idx = pd.MultiIndex.from_tuples([("A", 1), ("A", 2), ("B", 1)])
    with pytest.raises(ValueError):
        breusch_pagan_lm(pd.Series([1.0, -1.0, 0.5], index=idx))


def test_hausman_aligns_coefficients_and_drops_constant():
    fe = SimpleNamespace(
        params=pd.Series({"x1": 2.0}),
        cov=pd.DataFrame([[2.0]], index=["x1"], columns=["x1"]),
    )
    re = SimpleNamespace(
        params=pd.Series({"const": 5.0, "x1": 1.0}),
        cov=pd.DataFrame([[1.0, 0.0], [0.0, 1.0]], index=["const", "x1"], columns=["const", "x1"]),
    )
    stat, p, dof = hausman_test(fe, re)
    assert stat == pytest.approx(1.0)
    assert dof == 1
    assert p == pytest.approx(stats.chi2.sf(1.0, 1))


def test_recommend_model_rules():
    tests = pd.DataFrame(
        {"test": ["Chow", "Hausman", "Breusch-Pagan LM"], "p_value": [0.5, 0.5, 0.5]}
    )
    assert recommend_model(tests)[0] == "PooledOLS"

    tests["p_value"] = [0.01, 0.01, 0.01]
    assert recommend_model(tests)[0] == "FixedEffects"

    tests["p_value"] = [0.01, 0.40, 0.01]
    assert recommend_model(tests)[0] == "RandomEffects"


def test_vif_table_flags_collinearity(panel):
    _, X = panel_design(panel)
    vif = vif_table(X)
    assert set(vif["variable"]) == {"x1", "x2"}
    assert (vif["VIF"] >= 1.0).all()

    X_bad = X.copy()
    X_bad["x3"] = X_bad["x1"] * 2.0 + np.random.default_rng(0).normal(scale=1e-3, size=len(X_bad))
    assert vif_table(X_bad)["VIF"].max() > 100


def test_fit_panel_models_subset_and_unknown_name(panel):
    results = fit_panel_models(panel, models=["PooledOLS"])
    assert list(results) == ["PooledOLS"]
    with pytest.raises(ValueError):
        fit_panel_models(panel, models=["BetweenOLS"])
