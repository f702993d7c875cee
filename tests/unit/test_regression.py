"""
Unit tests for the batched weighted linear regression engine.
"""

import numpy as np
import pytest
import torch

from patlakpet.engines import weighted_linear_regression


def test_two_point_perfect_fit():
    fit = weighted_linear_regression([1.0, 2.0], [2.0, 4.0], [1.0, 1.0])

    assert fit.slope.item() == pytest.approx(2.0)
    assert fit.intercept.item() == pytest.approx(0.0, abs=1e-12)
    assert fit.chi_square.item() == pytest.approx(0.0, abs=1e-12)


def test_batch_matches_numpy_polyfit():
    rng = np.random.default_rng(0)
    x = np.linspace(1.0, 10.0, 13)
    y = rng.normal(size=(50, 13)) + 3.0 * x - 1.0

    fit = weighted_linear_regression(x, y)

    for row in range(y.shape[0]):
        slope, intercept = np.polyfit(x, y[row], 1)
        assert fit.slope[row].item() == pytest.approx(slope)
        assert fit.intercept[row].item() == pytest.approx(intercept)


def test_chi_square_and_parameter_variances():
    x = np.array([0.0, 1.0, 2.0])
    y = np.array([0.0, 2.0, 1.0])

    fit = weighted_linear_regression(x, y)

    # S=3, Sx=3, Sxx=5, D=6
    assert fit.slope.item() == pytest.approx(0.5)
    assert fit.intercept.item() == pytest.approx(0.5)
    assert fit.chi_square.item() == pytest.approx(1.5)
    assert fit.variance_of_slope.item() == pytest.approx(0.5)
    assert fit.variance_of_intercept.item() == pytest.approx(5.0 / 6.0)
    assert fit.covariance_of_intercept_with_slope.item() == pytest.approx(-0.5)


def test_weights_change_the_fit():
    x = np.array([0.0, 1.0, 2.0])
    y = np.array([0.0, 1.0, 5.0])

    unweighted = weighted_linear_regression(x, y)
    weighted = weighted_linear_regression(x, y, np.array([1.0, 1.0, 0.0]))

    assert weighted.slope.item() == pytest.approx(1.0)
    assert unweighted.slope.item() != pytest.approx(1.0)


def test_constant_abscissa_gives_non_finite_fit():
    fit = weighted_linear_regression([3.0, 3.0, 3.0], [1.0, 2.0, 3.0])

    assert not torch.isfinite(fit.slope).any()


def test_invalid_shapes_are_rejected():
    with pytest.raises(ValueError, match="points"):
        weighted_linear_regression([1.0, 2.0, 3.0], [1.0, 2.0])

    with pytest.raises(ValueError, match="two points"):
        weighted_linear_regression([1.0], [1.0])


def test_single_series_against_per_series_abscissa():
    x = np.array([[0.0, 1.0, 2.0], [0.0, 2.0, 4.0]])
    y = np.array([1.0, 3.0, 5.0])

    fit = weighted_linear_regression(x, y, np.ones_like(x))

    assert fit.slope.shape == (2,)
    np.testing.assert_allclose(fit.slope.numpy(), [2.0, 1.0])
    np.testing.assert_allclose(fit.intercept.numpy(), [1.0, 1.0])
    assert fit.variance_of_slope.shape == (2,)


def test_inconsistent_series_counts_are_rejected():
    with pytest.raises(ValueError, match="series counts"):
        weighted_linear_regression(np.ones((2, 3)) * [0.0, 1.0, 2.0], np.ones((3, 3)))
