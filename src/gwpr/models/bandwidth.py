"""
Bandwidth selection for the local weighted estimator.

Bandwidths are chosen by leave-one-location-out cross-validation. In the
adaptive scheme a candidate is a neighbour count k; the kernel distance of a
location is the distance to its k-th nearest location (the location itself
counts as the first), stretched by a tiny factor so that the k-th neighbour
lies inside a compact kernel's support. In the fixed scheme a candidate is a
distance shared by all locations.
"""
import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from ..exceptions import BandwidthSearchExhausted
from .gw_base import BaseKernel, BaseLocalEngine
from .panel_data import PanelDataset

logger = logging.getLogger(__name__)

SUPPORT_EPS = 1e-7
BANDWIDTH_MODES = ("local", "global")


def adaptive_kernel_distances(D: np.ndarray, candidates) -> np.ndarray:
    """
    Kernel distance of every location for each candidate neighbour count.

    Args:
        D (np.ndarray): (N, N) distance matrix.
        candidates: (c,) neighbour counts.

    Returns:
        np.ndarray: (N, c) distances to the k-th nearest location, stretched.
    """
    sorted_D = np.sort(np.asarray(D, dtype=float), axis=1)
    k = _check_neighbors(np.atleast_1d(np.asarray(candidates, dtype=int)), sorted_D.shape[0])
    return sorted_D[:, k - 1] * (1.0 + SUPPORT_EPS)


def neighbor_kernel_distances(D: np.ndarray, neighbors) -> np.ndarray:
    """(N,) kernel distance for one neighbour count per location."""
    sorted_D = np.sort(np.asarray(D, dtype=float), axis=1)
    N = sorted_D.shape[0]
    k = _check_neighbors(np.broadcast_to(np.asarray(neighbors, dtype=int), (N,)), N)
    return sorted_D[np.arange(N), k - 1] * (1.0 + SUPPORT_EPS)


def _check_neighbors(k: np.ndarray, N: int) -> np.ndarray:
    if np.any(k < 1) or np.any(k > N):
        raise ValueError(f"Neighbour counts must lie in [1, {N}].")
    return k


def candidate_bandwidths(D: np.ndarray, adaptive: bool = True, min_neighbors: int = 0) -> np.ndarray:
    """
    Ascending candidate grid for cross-validation.

    Adaptive: neighbour counts from max(2, min_neighbors) up to N.
    Fixed: every distinct positive pairwise distance (slightly stretched).
    """
    N = D.shape[0]
    if adaptive:
        start = max(2, int(min_neighbors))
        if start > N:
            raise ValueError(f"min_neighbors={min_neighbors} exceeds the number of locations ({N}).")
        return np.arange(start, N + 1)

    upper = D[np.triu_indices(N, k=1)]
    grid = np.unique(upper[upper > 0])
    if grid.size == 0:
        raise ValueError("All locations share the same coordinates; no fixed bandwidth candidates.")
    return grid * (1.0 + SUPPORT_EPS)


def effective_observations(W: np.ndarray) -> np.ndarray:
    """Row-wise sum(w) / max(w); zero for rows without any weight."""
    W = np.atleast_2d(W)
    w_max = W.max(axis=1)
    with np.errstate(divide="ignore", invalid="ignore"):
        n_eff = np.where(w_max > 0, W.sum(axis=1) / w_max, 0.0)
    return n_eff


@dataclass
class BandwidthAssignment:
    """Selected bandwidth per location (fixed once selected)."""

    locations: List
    bandwidths: np.ndarray
    kernel_bandwidths: np.ndarray
    adaptive: bool
    mode: str = "local"
    cv_scores: np.ndarray | None = None
    exhausted: np.ndarray | None = None
    candidates: np.ndarray | None = None
    cv_table: np.ndarray | None = None

    def __post_init__(self):
        n = len(self.locations)
        if self.cv_scores is None:
            self.cv_scores = np.full(n, np.nan)
        if self.exhausted is None:
            self.exhausted = np.zeros(n, dtype=bool)

    @classmethod
    def from_values(cls, locations: Sequence, D: np.ndarray, bandwidths, adaptive: bool = True) -> "BandwidthAssignment":
        """Build an assignment from preset bandwidths (scalar or one per location)."""
        n = len(locations)
        values = np.broadcast_to(np.asarray(bandwidths), (n,)).copy()
        if adaptive:
            values = values.astype(int)
            kernel_bw = neighbor_kernel_distances(D, values)
        else:
            values = values.astype(float)
            if np.any(values <= 0):
                raise ValueError("Fixed bandwidths must be positive.")
            kernel_bw = values
        return cls(locations=list(locations), bandwidths=values, kernel_bandwidths=kernel_bw, adaptive=adaptive, mode="preset")

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "location_id": self.locations,
                "bandwidth": self.bandwidths,
                "kernel_bandwidth": self.kernel_bandwidths,
                "cv_score": self.cv_scores,
                "search_exhausted": self.exhausted,
            }
        )

    def cv_frame(self) -> pd.DataFrame:
        """location_id x candidate table of CV scores."""
        if self.cv_table is None or self.candidates is None:
            raise ValueError("No cross-validation table for a preset bandwidth assignment.")
        labels = [f"{c:g}" for c in self.candidates]
        table = pd.DataFrame(self.cv_table, columns=labels)
        table.insert(0, "location_id", self.locations)
        return table


class BandwidthSelector:
    """
    Leave-one-location-out cross-validation of kernel bandwidths.

    For location i and candidate b, the observations of i get weight 0, the
    remaining observations are weighted by the kernel of their location's
    distance to i, a weighted least squares model is fitted and used to
    predict the observations of i. The CV score is the sum of squared
    prediction errors over the periods of i.

    A candidate is invalid (score = inf) when its leave-one-out effective
    number of observations is below K + 2 or the weighted design is
    singular. Ties go to the smaller candidate.
    """

    def __init__(
        self,
        kernel: BaseKernel,
        local_engine: BaseLocalEngine,
        adaptive: bool = True,
        mode: str = "local",
        min_neighbors: int = 0,
        tie_tolerance: float = 0.0,
        n_jobs: int = 1,
        show_progress: bool = False,
    ):
        if mode not in BANDWIDTH_MODES:
            raise ValueError(f"mode must be one of {BANDWIDTH_MODES}, got '{mode}'.")
        if tie_tolerance < 0:
            raise ValueError("tie_tolerance cannot be negative.")
        self.kernel = kernel
        self.local_engine = local_engine
        self.adaptive = adaptive
        self.mode = mode
        self.min_neighbors = min_neighbors
        self.tie_tolerance = tie_tolerance
        self.n_jobs = n_jobs
        self.show_progress = show_progress

    def _kernel_distances(self, D: np.ndarray, candidates: np.ndarray) -> np.ndarray:
        """(N, c) kernel distance per location and candidate."""
        if self.adaptive:
            return adaptive_kernel_distances(D, candidates)
        return np.broadcast_to(candidates, (D.shape[0], len(candidates)))

    def score_location(
        self,
        panel: PanelDataset,
        D: np.ndarray,
        i: int,
        kernel_distances: np.ndarray,
    ) -> np.ndarray:
        """CV scores of all candidates for location i."""
        X = panel.design_matrix()
        y = np.array(panel.y, dtype=float)
        own = panel.observations_of(i)

        obs_distance = D[i, panel.location_index]
        W = self.kernel(obs_distance[None, :], kernel_distances[:, None])
        W[:, own] = 0.0

        n_eff = effective_observations(W)
        fit = self.local_engine.fit(X, y, W)

        preds = X[own] @ fit.params.T  # (T, c)
        scores = np.sum((y[own][:, None] - preds) ** 2, axis=0)

        invalid = (n_eff < X.shape[1] + 1) | fit.singular | ~np.isfinite(scores)
        scores[invalid] = np.inf
        return scores

    def _choose(self, scores: np.ndarray, location) -> int:
        finite = np.isfinite(scores)
        if not finite.any():
            raise BandwidthSearchExhausted(location, len(scores))
        best = scores[finite].min()
        threshold = best + self.tie_tolerance * abs(best)
        return int(np.flatnonzero(scores <= threshold)[0])

    def select(self, panel: PanelDataset, D: np.ndarray) -> BandwidthAssignment:
        """Run the cross-validation search for every location."""
        candidates = candidate_bandwidths(D, adaptive=self.adaptive, min_neighbors=self.min_neighbors)
        kernel_distances = self._kernel_distances(D, candidates)
        N = panel.n_locations
        logger.info(
            "Bandwidth search (%s, %s, %s): %d locations x %d candidates.",
            self.kernel.name,
            "adaptive" if self.adaptive else "fixed",
            self.mode,
            N,
            len(candidates),
        )

        rows = Parallel(n_jobs=self.n_jobs, prefer="threads")(
            delayed(self.score_location)(panel, D, i, kernel_distances[i])
            for i in tqdm(range(N), desc=f"CV {self.kernel.name}", disable=not self.show_progress)
        )
        cv_table = np.vstack(rows)

        chosen = np.empty(N, dtype=int)
        exhausted = np.zeros(N, dtype=bool)
        if self.mode == "global":
            total = cv_table.sum(axis=0)
            try:
                chosen[:] = self._choose(total, "<all>")
            except BandwidthSearchExhausted as exc:
                logger.warning("%s Falling back to the largest candidate.", exc)
                chosen[:] = len(candidates) - 1
                exhausted[:] = True
        else:
            for i, loc in enumerate(panel.locations):
                try:
                    chosen[i] = self._choose(cv_table[i], loc)
                except BandwidthSearchExhausted as exc:
                    logger.warning("%s Falling back to the largest candidate.", exc)
                    chosen[i] = len(candidates) - 1
                    exhausted[i] = True

        idx = np.arange(N)
        cv_scores = cv_table[idx, chosen]
        cv_scores = np.where(exhausted, np.nan, cv_scores)
        for i in range(N):
            logger.debug("Location %s: bandwidth %s (CV %.6g).", panel.locations[i], candidates[chosen[i]], cv_scores[i])

        return BandwidthAssignment(
            locations=list(panel.locations),
            bandwidths=candidates[chosen],
            kernel_bandwidths=kernel_distances[idx, chosen],
            adaptive=self.adaptive,
            mode=self.mode,
            cv_scores=cv_scores,
            exhausted=exhausted,
            candidates=candidates,
            cv_table=cv_table,
        )
