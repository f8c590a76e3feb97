"""Classical panel estimators (Pooled OLS, Fixed Effects, Random Effects)."""
import logging
from typing import Dict, Sequence

import pandas as pd
import statsmodels.api as sm
from linearmodels.panel import PanelOLS, PooledOLS, RandomEffects

from .panel_data import PanelDataset

logger = logging.getLogger(__name__)

MODEL_NAMES = ("PooledOLS", "FixedEffects", "RandomEffects")

_ESTIMATORS = {
    "PooledOLS": lambda y, X: PooledOLS(y, X),
    "FixedEffects": lambda y, X: PanelOLS(y, X, entity_effects=True, drop_absorbed=True),
    "RandomEffects": lambda y, X: RandomEffects(y, X),
}


def panel_design(panel: PanelDataset):
    """(y, X) indexed by (location, time) with a constant column."""
    frame = panel.to_panel_frame()
    y = frame[panel.target_col]
    X = sm.add_constant(frame[panel.feature_cols], has_constant="add")
    return y, X


def fit_panel_models(
    panel: PanelDataset, cov_type: str = "unadjusted", models: Sequence[str] = MODEL_NAMES
) -> Dict[str, object]:
    """Fit the classical panel models (all three by default) on the same design."""
    unknown = [name for name in models if name not in _ESTIMATORS]
    if unknown:
        raise ValueError(f"Unknown panel model(s) {unknown}; choose from {list(MODEL_NAMES)}")
    y, X = panel_design(panel)

    results = {name: _ESTIMATORS[name](y, X).fit(cov_type=cov_type) for name in models}

    for name, res in results.items():
        logger.info("%s fitted: R2=%.4f, nobs=%d", name, float(res.rsquared), int(res.nobs))
    return results


def coefficient_table(results: Dict[str, object]) -> pd.DataFrame:
    """Long table of coefficients, standard errors and p-values per model."""
    rows = []
    for name, res in results.items():
        for term in res.params.index:
            rows.append(
                {
                    "model": name,
                    "term": term,
                    "coef": float(res.params[term]),
                    "std_error": float(res.std_errors[term]),
                    "t_stat": float(res.tstats[term]),
                    "p_value": float(res.pvalues[term]),
                    "r2": float(res.rsquared),
                }
            )
    return pd.DataFrame(rows)
