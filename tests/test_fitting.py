from __future__ import annotations

import os
import sys

import numpy as np
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from fitting import (FittedCurve, fit_best_polynomial, fit_exponential, fit_linear,
                     fit_polynomial, fit_power, fit_profile, r_squared)


def test_fit_linear():
    x = np.arange(1, 11, dtype=float)
    fit = fit_linear(x, 2 * x + 1)
    assert fit.method == "linear" and fit.degree == 1
    assert np.isclose(fit.slope, 2.0)
    assert np.isclose(fit.intercept, 1.0)
    assert np.isclose(fit.r_squared, 1.0)
    assert np.allclose(fit(x), 2 * x + 1)
    assert fit_linear([1.0], [2.0]) is None
    assert fit_linear([3.0, 3.0, 3.0], [1.0, 2.0, 3.0]) is None


def test_fit_polynomial_recovers_coefficients():
    x = np.linspace(0, 10, 15)
    y = 3.0 - 2.0 * x + 0.5 * x ** 2
    fit = fit_polynomial(x, y, 2)
    assert fit.degree == 2
    assert np.allclose(fit.coefficients, [3.0, -2.0, 0.5], atol=1e-8)
    assert np.isclose(fit.r_squared, 1.0)
    with pytest.raises(ValueError):
        fit_polynomial(x, y, 1)


def test_fit_best_polynomial():
    x = np.arange(1, 21, dtype=float)
    y = 10 * np.exp(-((x - 8) / 5) ** 2) + 1
    best = fit_best_polynomial(x, y)
    assert best.method == "polynomial"
    assert 2 <= best.degree <= 8
    assert best.r_squared >= fit_polynomial(x, y, 2).r_squared


def test_fit_power():
    x = np.linspace(1, 20, 20)
    y = 3.0 * x ** -1.5
    fit = fit_power(x, y)
    assert fit.method == "power" and fit.degree is None
    assert np.allclose(fit.coefficients, [3.0, -1.5], rtol=1e-4)
    assert fit.r_squared > 0.9999


def test_fit_exponential_with_offset():
    x = np.linspace(0, 20, 30)
    y = 5.0 * np.exp(-0.3 * x) + 1.0
    fit = fit_exponential(x, y)
    assert fit.method == "exponential"
    assert np.allclose(fit.coefficients, [5.0, 0.3, 1.0], rtol=1e-3)
    assert np.allclose(fit(x), y, atol=1e-4)


def test_r_squared():
    y = np.array([1.0, 2.0, 3.0])
    assert r_squared(y, y) == 1.0
    assert np.isclose(r_squared(y, np.full(3, 2.0)), 0.0)
    assert np.isnan(r_squared(np.ones(3), np.ones(3)))


def test_fit_profile_refuses_small_datasets():
    x = np.arange(1, 7, dtype=float)
    res = fit_profile(x, x ** 2, "polynomial")
    assert res['valid'] is False
    assert res['reason'] == 'insufficient_points'
    x = np.arange(1, 8, dtype=float)
    res = fit_profile(x, x ** 2, "polynomial", degree=2)
    assert res['valid'] and res['n_points'] == 7
    assert np.allclose(res['fitted'], x ** 2)
    with pytest.raises(ValueError):
        fit_profile(x, x, "spline")


def test_fitted_curve_call():
    curve = FittedCurve("polynomial", (1.0, 0.0, 2.0), 1.0)
    assert np.allclose(curve([0.0, 1.0, 2.0]), [1.0, 3.0, 9.0])
    with pytest.raises(AttributeError):
        curve.slope
