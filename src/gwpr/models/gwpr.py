"""
Geographically Weighted Panel Regression.

Every location gets its own weighted least squares fit over the full panel:
each observation (location j, period t) carries the kernel weight of
location j relative to the target location, so all periods of nearby
locations contribute and distant ones fade out. Bandwidths come from
leave-one-location-out cross-validation (see ``bandwidth.py``) unless an
assignment is supplied.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from ..exceptions import SingularDesignError
from .bandwidth import BandwidthAssignment, BandwidthSelector, effective_observations
from .base_model import BaseModel
from .distance import distance_matrix, distance_table
from .gw_base import BaseKernel, BaseLocalEngine
from .gw_engine import LocalFit
from .panel_data import PanelDataset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalModelResult:
    location_id: Any
    params: np.ndarray
    std_errors: np.ndarray
    t_values: np.ndarray
    p_values: np.ndarray
    local_r2: float
    n_effective: float
    bandwidth: float
    singular: bool = False
    exhausted: bool = False

    @classmethod
    def missing(cls, location_id, n_params: int, bandwidth: float, n_effective: float = np.nan, exhausted: bool = False):
        """Placeholder row for a location whose local design could not be solved."""
        nan = np.full(n_params, np.nan)
        return cls(
            location_id=location_id,
            params=nan,
            std_errors=nan.copy(),
            t_values=nan.copy(),
            p_values=nan.copy(),
            local_r2=np.nan,
            n_effective=n_effective,
            bandwidth=bandwidth,
            singular=True,
            exhausted=exhausted,
        )


def local_inference(X: np.ndarray, y: np.ndarray, w: np.ndarray, params: np.ndarray, hat: np.ndarray) -> Dict[str, Any]:
    """
    Standard errors, t/p-values and local R^2 for one local fit.

    Weights are normalised by their maximum, so the effective number of
    observations is sum(w) / max(w) and the residual degrees of freedom are
    n_eff - (K + 1). The covariance is sigma^2 C C' with C = (X'WX)^-1 X'W.
    """
    w_hat = w / w.max()
    n_eff = float(w_hat.sum())
    p = X.shape[1]

    resid = y - X @ params
    wrss = float(np.sum(w_hat * resid**2))
    y_bar = float(np.sum(w_hat * y) / n_eff)
    wtss = float(np.sum(w_hat * (y - y_bar) ** 2))

    df = n_eff - p
    with np.errstate(divide="ignore", invalid="ignore"):
        sigma2 = wrss / df if df > 0 else np.nan
        std_errors = np.sqrt(sigma2 * np.sum(hat**2, axis=1))
        t_values = params / std_errors
        p_values = 2.0 * stats.t.sf(np.abs(t_values), df) if df > 0 else np.full(p, np.nan)
        local_r2 = 1.0 - wrss / wtss if wtss > 0 else np.nan

    return {
        "std_errors": std_errors,
        "t_values": t_values,
        "p_values": p_values,
        "local_r2": local_r2,
        "n_effective": n_eff,
        "df": df,
    }


class GWPRResults:
    """Per-location results plus the matrices that produced them."""

    def __init__(
        self,
        panel: PanelDataset,
        results: List[LocalModelResult],
        weights: np.ndarray,
        distances: np.ndarray,
        bandwidths: BandwidthAssignment,
        fitted: np.ndarray,
        trace_s: float,
        kernel_name: str,
    ):
        self.locations = list(panel.locations)
        self.feature_names = panel.feature_names
        self.observation_labels = panel.observation_labels
        self.results = results
        self.weights = weights
        self.distances = distances
        self.bandwidths = bandwidths
        self.fitted = fitted
        self.y = np.array(panel.y, dtype=float)
        self.trace_s = trace_s
        self.kernel_name = kernel_name

    def __len__(self) -> int:
        return len(self.results)

    @property
    def params(self) -> np.ndarray:
        return np.vstack([r.params for r in self.results])

    @property
    def singular(self) -> np.ndarray:
        return np.array([r.singular for r in self.results])

    def _coefficient_table(self, attr: str, prefix: str = "") -> pd.DataFrame:
        values = np.vstack([getattr(r, attr) for r in self.results])
        table = pd.DataFrame(values, columns=[f"{prefix}{name}" for name in self.feature_names])
        table.insert(0, "location_id", self.locations)
        return table

    def params_table(self) -> pd.DataFrame:
        return self._coefficient_table("params")

    def std_errors_table(self) -> pd.DataFrame:
        return self._coefficient_table("std_errors", "se_")

    def tvalues_table(self) -> pd.DataFrame:
        return self._coefficient_table("t_values", "t_")

    def pvalues_table(self) -> pd.DataFrame:
        return self._coefficient_table("p_values", "p_")

    def local_r2_table(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "location_id": self.locations,
                "local_r2": [r.local_r2 for r in self.results],
                "n_effective": [r.n_effective for r in self.results],
                "singular": [r.singular for r in self.results],
            }
        )

    def bandwidth_table(self) -> pd.DataFrame:
        return self.bandwidths.to_frame()

    def distance_table(self) -> pd.DataFrame:
        return distance_table(self.distances, self.locations)

    def weight_table(self) -> pd.DataFrame:
        table = pd.DataFrame(self.weights, columns=self.observation_labels)
        table.insert(0, "location_id", self.locations)
        return table

    def summary(self) -> Dict[str, float]:
        """Global fit diagnostics over observations of solvable locations."""
        valid = np.isfinite(self.fitted)
        y = self.y[valid]
        n = int(valid.sum())
        rss = float(np.sum((y - self.fitted[valid]) ** 2))
        tss = float(np.sum((y - y.mean()) ** 2)) if n else np.nan
        tr_s = self.trace_s
        with np.errstate(divide="ignore", invalid="ignore"):
            sigma2 = rss / (n - tr_s) if n > tr_s else np.nan
            aicc = (
                n * np.log(rss / n) + n * np.log(2 * np.pi) + n * (n + tr_s) / (n - 2.0 - tr_s)
                if n - 2.0 - tr_s > 0
                else np.nan
            )
            r2 = 1.0 - rss / tss if tss > 0 else np.nan
        return {
            "kernel": self.kernel_name,
            "n_obs": n,
            "n_locations": len(self.locations),
            "n_singular": int(self.singular.sum()),
            "rss": rss,
            "r2": r2,
            "trace_s": tr_s,
            "sigma2": sigma2,
            "aicc": aicc,
        }

    def summary_frame(self) -> pd.DataFrame:
        return pd.DataFrame([self.summary()])


class GWPRModel(BaseModel):
    """
    Geographically weighted panel regression with per-location bandwidths.

    The model is "fitted" by choosing a bandwidth for each location through
    cross-validation (or taking a given assignment) and then solving one
    weighted least squares problem per location with the full weights.
    """

    def __init__(
        self,
        kernel: BaseKernel,
        local_engine: BaseLocalEngine,
        adaptive: bool = True,
        bandwidth_mode: str = "local",
        min_neighbors: int = 0,
        tie_tolerance: float = 0.0,
        n_jobs: int = 1,
        show_progress: bool = False,
    ):
        super().__init__()
        self.kernel = kernel
        self.local_engine = local_engine
        self.adaptive = adaptive
        self.selector = BandwidthSelector(
            kernel=kernel,
            local_engine=local_engine,
            adaptive=adaptive,
            mode=bandwidth_mode,
            min_neighbors=min_neighbors,
            tie_tolerance=tie_tolerance,
            n_jobs=n_jobs,
            show_progress=show_progress,
        )
        self.hyperparams = {
            "kernel": kernel,
            "local_engine": local_engine,
            "adaptive": adaptive,
            "bandwidth_mode": bandwidth_mode,
            "min_neighbors": min_neighbors,
            "tie_tolerance": tie_tolerance,
            "n_jobs": n_jobs,
            "show_progress": show_progress,
        }
        self.results_: GWPRResults | None = None

    def fit(
        self,
        panel: PanelDataset,
        distances: np.ndarray | None = None,
        bandwidths: BandwidthAssignment | Sequence[float] | float | None = None,
    ) -> "GWPRModel":
        """
        Select bandwidths (unless given) and estimate every location.
        """
        D = distance_matrix(panel.coords) if distances is None else np.asarray(distances, dtype=float)
        if bandwidths is None:
            assignment = self.selector.select(panel, D)
        elif isinstance(bandwidths, BandwidthAssignment):
            assignment = bandwidths
        else:
            assignment = BandwidthAssignment.from_values(panel.locations, D, bandwidths, adaptive=self.adaptive)

        self.results_ = self.estimate(panel, D, assignment)
        self._is_fitted = True
        return self

    def weight_matrix(self, panel: PanelDataset, D: np.ndarray, assignment: BandwidthAssignment) -> np.ndarray:
        """(N, n_obs) weights of every observation for every target location."""
        obs_distance = D[:, panel.location_index]
        return self.kernel(obs_distance, assignment.kernel_bandwidths[:, None])

    def estimate(self, panel: PanelDataset, D: np.ndarray, assignment: BandwidthAssignment) -> GWPRResults:
        X = panel.design_matrix()
        y = np.array(panel.y, dtype=float)
        W = self.weight_matrix(panel, D, assignment)
        fit: LocalFit = self.local_engine.fit(X, y, W, with_inference=True)
        n_eff = effective_observations(W)

        results: List[LocalModelResult] = []
        fitted = np.full(panel.n_obs, np.nan)
        trace_s = 0.0
        for i, loc in enumerate(panel.locations):
            try:
                result = self._estimate_location(i, loc, X, y, W[i], fit, assignment)
            except SingularDesignError as exc:
                logger.warning("%s Recording missing values for this location.", exc)
                result = LocalModelResult.missing(
                    loc,
                    X.shape[1],
                    bandwidth=assignment.bandwidths[i],
                    n_effective=float(n_eff[i]),
                    exhausted=bool(assignment.exhausted[i]),
                )
            else:
                own = panel.observations_of(i)
                fitted[own] = X[own] @ result.params
                trace_s += float(np.sum(X[own] * fit.hat[i][:, own].T))
            results.append(result)

        n_singular = sum(r.singular for r in results)
        logger.info(
            "GWPR (%s) estimated %d locations, %d singular.",
            self.kernel.name,
            len(results) - n_singular,
            n_singular,
        )
        return GWPRResults(
            panel=panel,
            results=results,
            weights=W,
            distances=D,
            bandwidths=assignment,
            fitted=fitted,
            trace_s=trace_s,
            kernel_name=self.kernel.name,
        )

    @staticmethod
    def _estimate_location(
        i: int,
        location,
        X: np.ndarray,
        y: np.ndarray,
        w: np.ndarray,
        fit: LocalFit,
        assignment: BandwidthAssignment,
    ) -> LocalModelResult:
        if fit.singular[i]:
            raise SingularDesignError(location, float(fit.rcond[i]))
        params = fit.params[i]
        inference = local_inference(X, y, w, params, fit.hat[i])
        return LocalModelResult(
            location_id=location,
            params=params,
            std_errors=inference["std_errors"],
            t_values=inference["t_values"],
            p_values=inference["p_values"],
            local_r2=inference["local_r2"],
            n_effective=inference["n_effective"],
            bandwidth=assignment.bandwidths[i],
            exhausted=bool(assignment.exhausted[i]),
        )

    def predict(self, panel: PanelDataset) -> np.ndarray:
        """Fitted values using the coefficients of each observation's location."""
        if not self.is_fitted or self.results_ is None:
            raise RuntimeError("GWPRModel must be fitted before calling predict().")
        lookup = {loc: r.params for loc, r in zip(self.results_.locations, self.results_.results)}
        missing = [loc for loc in panel.locations if loc not in lookup]
        if missing:
            raise KeyError(f"No local coefficients for locations {missing}.")
        X = panel.design_matrix()
        params = np.vstack([lookup[loc] for loc in panel.locations])[panel.location_index]
        return np.sum(X * params, axis=1)
