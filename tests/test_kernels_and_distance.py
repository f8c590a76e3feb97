import os
import sys

import numpy as np
import pytest
import torch

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from gwpr.models.distance import distance_matrix, distance_table
from gwpr.models.gw_kernels import BisquareKernel, ExponentialKernel, GaussianKernel, get_kernel


ALL_KERNELS = [GaussianKernel(), BisquareKernel(), ExponentialKernel()]


def test_distance_matrix_is_symmetric_with_zero_diagonal():
    rng = np.random.default_rng(7)
    coords = rng.uniform(-5, 5, size=(12, 2))
    D = distance_matrix(coords)

    assert D.shape == (12, 12)
    assert np.array_equal(D, D.T)
    assert np.all(np.diag(D) == 0.0)
    assert np.all(D >= 0.0)
    assert D[0, 1] == pytest.approx(np.linalg.norm(coords[0] - coords[1]))


def test_distance_matrix_rejects_bad_shape():
    with pytest.raises(ValueError):
        distance_matrix(np.zeros((4, 3)))


def test_distance_table_has_one_row_per_location():
    D = distance_matrix(np.array([[0.0, 0.0], [3.0, 4.0], [6.0, 8.0]]))
    table = distance_table(D, ["A", "B", "C"])
    assert list(table["location_id"]) == ["A", "B", "C"]
    assert table.loc[0, "C"] == pytest.approx(10.0)


@pytest.mark.parametrize("kernel", ALL_KERNELS, ids=lambda k: k.name)
def test_kernel_weight_is_one_at_zero_distance(kernel):
    for b in [0.1, 1.0, 25.0]:
        assert kernel(0.0, b) == pytest.approx(1.0)


@pytest.mark.parametrize("kernel", ALL_KERNELS, ids=lambda k: k.name)
def test_kernel_weights_are_non_increasing_in_distance(kernel):
    d = np.linspace(0.0, 5.0, 200)
    w = kernel(d, 2.0)
    assert np.all(np.diff(w) <= 0.0)
    assert np.all((w >= 0.0) & (w <= 1.0))


def test_bisquare_is_exactly_zero_beyond_bandwidth():
    kernel = BisquareKernel()
    b = 2.0
    d = np.array([1.999, 2.0, 2.0001, 10.0])
    w = kernel(d, b)
    assert w[0] > 0.0
    assert np.all(w[1:] == 0.0)


def test_gaussian_and_exponential_formulas():
    u = torch.tensor([0.5, 1.0, 2.0], dtype=torch.float64)
    np.testing.assert_allclose(GaussianKernel().weight(u).numpy(), np.exp(-0.5 * u.numpy() ** 2))
    np.testing.assert_allclose(ExponentialKernel().weight(u).numpy(), np.exp(-u.numpy()))
    # exp(-450) is still a normal float64, unlike exp(-5000)
    assert GaussianKernel()(30.0, 1.0) > 0.0


def test_get_kernel_by_name():
    assert isinstance(get_kernel("Bisquare"), BisquareKernel)
    with pytest.raises(ValueError):
        get_kernel("epanechnikov")
