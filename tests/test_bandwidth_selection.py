import os
import sys

import numpy as np
import pandas as pd
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from gwpr.models.bandwidth import (
    BandwidthAssignment,
    BandwidthSelector,
    adaptive_kernel_distances,
    candidate_bandwidths,
    effective_observations,
    neighbor_kernel_distances,
)
from gwpr.models.distance import distance_matrix
from gwpr.models.gw_engine import WeightedLeastSquaresEngine
from gwpr.models.gw_kernels import BisquareKernel, GaussianKernel
from gwpr.models.panel_data import PanelDataset

COLS = dict(
    location_col="province",
    time_col="year",
    target_col="y",
    feature_cols=["x1"],
    coord_cols=["longitude", "latitude"],
)


def _panel(n_locations=8, n_periods=4, noise=0.2, seed=0) -> PanelDataset:
    rng = np.random.default_rng(seed)
    coords = rng.uniform(0, 10, size=(n_locations, 2))
    rows = []
    for i in range(n_locations):
        slope = 1.0 + 0.3 * coords[i, 0]
        for t in range(n_periods):
            x = rng.normal()
            rows.append({"province": f"L{i}", "year": 2000 + t, "x1": x,
                         "y": 0.5 + slope * x + rng.normal(scale=noise),
                         "longitude": coords[i, 0], "latitude": coords[i, 1]})
    return PanelDataset(pd.DataFrame(rows), **COLS)


def _selector(**kwargs) -> BandwidthSelector:
    return BandwidthSelector(kernel=kwargs.pop("kernel", BisquareKernel()), local_engine=WeightedLeastSquaresEngine(), **kwargs)


def test_adaptive_candidates_run_from_two_neighbours_to_all():
    D = distance_matrix(np.random.default_rng(0).uniform(size=(6, 2)))
    np.testing.assert_array_equal(candidate_bandwidths(D), [2, 3, 4, 5, 6])
    np.testing.assert_array_equal(candidate_bandwidths(D, min_neighbors=4), [4, 5, 6])
    with pytest.raises(ValueError):
        candidate_bandwidths(D, min_neighbors=7)


def test_fixed_candidates_are_sorted_unique_distances():
    coords = np.array([[0.0, 0.0], [1.0, 0.0], [3.0, 0.0]])
    grid = candidate_bandwidths(distance_matrix(coords), adaptive=False)
    np.testing.assert_allclose(grid, [1.0, 2.0, 3.0], rtol=1e-6)
    assert np.all(np.diff(grid) > 0)


def test_adaptive_kernel_distance_is_kth_nearest_location():
    coords = np.array([[0.0, 0.0], [1.0, 0.0], [3.0, 0.0], [6.0, 0.0]])
    D = distance_matrix(coords)
    grid = adaptive_kernel_distances(D, [2, 4])
    np.testing.assert_allclose(grid[0], [1.0, 6.0], rtol=1e-6)
    assert grid[0, 0] > 1.0  # stretched to keep the k-th neighbour inside the support
    np.testing.assert_allclose(neighbor_kernel_distances(D, [2, 2, 3, 4]), [1.0, 1.0, 3.0, 6.0], rtol=1e-6)


def test_effective_observations():
    W = np.array([[1.0, 0.5, 0.5], [0.0, 0.0, 0.0]])
    np.testing.assert_allclose(effective_observations(W), [2.0, 0.0])


def test_leave_one_out_score_ignores_own_observations():
    panel = _panel()
    D = distance_matrix(panel.coords)
    selector = _selector()
    candidates = candidate_bandwidths(D)
    kd = adaptive_kernel_distances(D, candidates)

    scores = selector.score_location(panel, D, 0, kd[0])

    # changing the target location's own y must not change the fitted models,
    # only the prediction errors, so the scores move while staying finite
    panel.y.iloc[panel.observations_of(0)] += 100.0
    shifted = selector.score_location(panel, D, 0, kd[0])
    finite = np.isfinite(scores)
    assert finite.any()
    np.testing.assert_array_equal(np.isfinite(shifted), finite)
    assert np.all(shifted[finite] > scores[finite])


def test_selection_is_deterministic():
    panel = _panel()
    D = distance_matrix(panel.coords)
    first = _selector().select(panel, D)
    second = _selector().select(panel, D)

    np.testing.assert_array_equal(first.bandwidths, second.bandwidths)
    np.testing.assert_array_equal(first.cv_table, second.cv_table)
    assert len(first.locations) == panel.n_locations
    assert set(first.bandwidths).issubset(set(first.candidates))


def test_selected_bandwidth_minimises_cv_per_location():
    panel = _panel()
    D = distance_matrix(panel.coords)
    assignment = _selector(kernel=GaussianKernel()).select(panel, D)
    for i in range(panel.n_locations):
        row = assignment.cv_table[i]
        chosen = int(np.flatnonzero(assignment.candidates == assignment.bandwidths[i])[0])
        assert row[chosen] == np.min(row[np.isfinite(row)])
        assert assignment.cv_scores[i] == row[chosen]


def test_ties_prefer_the_smaller_bandwidth():
    selector = _selector()
    assert selector._choose(np.array([np.inf, 1.0, 1.0, 2.0]), "L0") == 1

    tolerant = _selector(tie_tolerance=1e-3)
    assert tolerant._choose(np.array([1.0, 0.9999999, 3.0]), "L0") == 0


def test_global_mode_shares_one_bandwidth():
    panel = _panel()
    D = distance_matrix(panel.coords)
    assignment = _selector(mode="global").select(panel, D)

    assert len(set(assignment.bandwidths)) == 1
    totals = assignment.cv_table.sum(axis=0)
    best = int(np.argmin(totals))
    assert assignment.bandwidths[0] == assignment.candidates[best]


def test_fixed_mode_selects_distance_candidates():
    panel = _panel()
    D = distance_matrix(panel.coords)
    assignment = _selector(adaptive=False, kernel=GaussianKernel()).select(panel, D)
    np.testing.assert_array_equal(assignment.bandwidths, assignment.kernel_bandwidths)
    assert not assignment.adaptive


def test_exhausted_search_falls_back_to_largest_candidate():
    # one period and three locations: leave-one-out never has K + 2 effective observations
    panel = _panel(n_locations=3, n_periods=1, seed=4)
    D = distance_matrix(panel.coords)
    assignment = _selector().select(panel, D)

    assert assignment.exhausted.all()
    np.testing.assert_array_equal(assignment.bandwidths, [3, 3, 3])
    assert np.isnan(assignment.cv_scores).all()
    assert assignment.to_frame()["search_exhausted"].all()


def test_preset_assignment_and_frames():
    panel = _panel()
    D = distance_matrix(panel.coords)
    preset = BandwidthAssignment.from_values(panel.locations, D, 4)
    assert preset.mode == "preset"
    np.testing.assert_array_equal(preset.bandwidths, np.full(panel.n_locations, 4))
    assert len(preset.to_frame()) == panel.n_locations
    with pytest.raises(ValueError):
        preset.cv_frame()

    selected = _selector().select(panel, D)
    cv = selected.cv_frame()
    assert list(cv.columns[1:]) == [f"{c:g}" for c in selected.candidates]


def test_invalid_mode_is_rejected():
    with pytest.raises(ValueError):
        _selector(mode="regional")
