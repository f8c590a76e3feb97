import os
import sys

import numpy as np

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from gwpr.models.gw_engine import WeightedLeastSquaresEngine


def test_engine_recovers_exact_linear_relationship():
    rng = np.random.default_rng(0)
    x = rng.normal(size=40)
    X = np.column_stack([np.ones_like(x), x])
    y = 2.0 + 3.0 * x
    W = rng.uniform(0.1, 1.0, size=(5, 40))

    fit = WeightedLeastSquaresEngine().fit(X, y, W)

    np.testing.assert_allclose(fit.params, np.tile([2.0, 3.0], (5, 1)), atol=1e-10)
    assert not fit.singular.any()


def test_engine_matches_closed_form_weighted_least_squares():
    rng = np.random.default_rng(1)
    X = np.column_stack([np.ones(30), rng.normal(size=(30, 2))])
    y = rng.normal(size=30)
    w = rng.uniform(0.0, 1.0, size=30)

    fit = WeightedLeastSquaresEngine().fit(X, y, w[None, :], with_inference=True)

    XtW = X.T * w
    expected = np.linalg.solve(XtW @ X, XtW @ y)
    np.testing.assert_allclose(fit.params[0], expected, rtol=1e-10)
    # the hat operator maps y onto the coefficients
    np.testing.assert_allclose(fit.hat[0] @ y, expected, rtol=1e-10)


def test_engine_flags_singular_rows_without_touching_others():
    x = np.array([0.0, 1.0, 2.0, 3.0])
    X = np.column_stack([np.ones(4), x])
    y = 1.0 + x
    W = np.array(
        [
            [1.0, 1.0, 1.0, 1.0],
            [0.0, 0.0, 1.0, 0.0],  # single observation: rank one
            [0.0, 0.0, 0.0, 0.0],  # no weight at all
        ]
    )

    fit = WeightedLeastSquaresEngine().fit(X, y, W, with_inference=True)

    np.testing.assert_array_equal(fit.singular, [False, True, True])
    np.testing.assert_allclose(fit.params[0], [1.0, 1.0], atol=1e-12)
    assert np.isnan(fit.params[1:]).all()
    assert np.isnan(fit.hat[1:]).all()


def test_engine_is_unaffected_by_regressor_units():
    rng = np.random.default_rng(2)
    income = rng.uniform(5e4, 2e5, size=60)  # per-capita output
    share = rng.uniform(0.0, 1e-3, size=60)  # fractions of a percent
    X = np.column_stack([np.ones(60), income, share])
    y = 1.5 + 2e-5 * income - 800.0 * share + rng.normal(scale=0.1, size=60)
    W = rng.uniform(0.05, 1.0, size=(4, 60))

    fit = WeightedLeastSquaresEngine().fit(X, y, W, with_inference=True)

    assert not fit.singular.any()
    for r in range(4):
        XtW = X.T * W[r]
        expected = np.linalg.solve(XtW @ X, XtW @ y)
        np.testing.assert_allclose(fit.params[r], expected, rtol=1e-8)
        np.testing.assert_allclose(fit.hat[r] @ y, expected, rtol=1e-8)

    # the same columns made collinear are still caught at large magnitudes
    X_dup = np.column_stack([np.ones(60), income, 3.0 * income])
    assert WeightedLeastSquaresEngine().fit(X_dup, y, W).singular.all()


def test_engine_accepts_read_only_inputs():
    X = np.column_stack([np.ones(5), np.arange(5.0)])
    y = 1.0 + 2.0 * np.arange(5.0)
    W = np.ones((1, 5))
    for arr in (X, y, W):
        arr.setflags(write=False)

    fit = WeightedLeastSquaresEngine().fit(X, y, W)
    np.testing.assert_allclose(fit.params[0], [1.0, 2.0], atol=1e-12)
