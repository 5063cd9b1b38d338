from __future__ import annotations

import math
import os
import sys

import numpy as np
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import AnalysisConfig
from fitting import FittedCurve, fit_polynomial
import metrics as M


def test_moments_population():
    mean, var, skew, kurt = M.moments([1, 2, 3, 4, 5])
    assert mean == 3.0
    assert var == 2.0
    assert abs(skew) < 1e-12
    assert np.isclose(kurt, 6.8 / 4.0 - 3.0)
    _, _, _, pearson = M.moments([1, 2, 3, 4, 5], excess_kurtosis=False)
    assert np.isclose(pearson, 1.7)


def test_moments_degenerate_variance():
    mean, var, skew, kurt = M.moments([2.0, 2.0, 2.0])
    assert mean == 2.0 and var == 0.0
    assert math.isnan(skew) and math.isnan(kurt)


def test_centroid_closed_triangle():
    cx, cy = M.centroid([0.0, 1.0, 2.0], [0.0, 2.0, 0.0])
    assert np.isclose(cx, 1.0)
    assert np.isclose(cy, 2.0 / 3.0)


def test_centroid_zero_area():
    cx, cy = M.centroid([1.0, 2.0, 3.0], [1.0, 1.0, 1.0])
    assert math.isnan(cx) and math.isnan(cy)


def test_enclosing_radius():
    x = [1.0, 2.0, 3.0, 4.0]
    y = [3.0, 2.0, 1.0, 0.0]
    assert M.enclosing_radius(x, y, 2) == 2.0
    assert M.enclosing_radius(x, y, 1) == 3.0
    assert math.isnan(M.enclosing_radius(x, y, 5))


def test_critical_point_and_mean_value():
    curve = FittedCurve("polynomial", (-15.0, 10.0, -1.0), 1.0)  # -(x-5)^2 + 10
    x = np.arange(0, 11, dtype=float)
    cr, cv = M.critical_point(curve, x, curve(x))
    assert abs(cr - 5.0) < 1e-3
    assert abs(cv - 10.0) < 1e-6
    square = FittedCurve("polynomial", (0.0, 0.0, 1.0), 1.0)
    assert np.isclose(M.mean_value(square, 0.0, 3.0), 3.0)


def test_sampled_descriptors():
    x = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
    y = np.array([2.0, 4.0, 6.0, 4.0, 2.0])
    res = M.sampled_descriptors(x, y, AnalysisConfig(primary_branches=4))
    d = res['descriptors']
    assert res['valid']
    assert d["Intersecting radii"] == 5
    assert d["Sum inters."] == 18
    assert np.isclose(d["Mean inters."], 3.6)
    assert d["Median inters."] == 4
    assert d["Max inters."] == 6 and d["Max inters. radius"] == 3
    assert d["Ramification index (sampled)"] == 1.5
    assert d["I branches (user)"] == 4 and math.isnan(d["I branches (inferred)"])
    assert d["Enclosing radius"] == 5
    assert "Centroid radius" in d

    inferred = M.sampled_descriptors(x, y, AnalysisConfig(infer_primary=True))['descriptors']
    assert inferred["Ramification index (sampled)"] == 3.0
    assert inferred["I branches (inferred)"] == 2.0


def test_sampled_descriptors_flat_profile():
    res = M.sampled_descriptors(np.array([1.0, 2.0, 3.0]), np.ones(3), AnalysisConfig())
    assert res['skipped']["Skewness (sampled)"] == 'degenerate_variance'
    assert res['skipped']["Centroid radius"] == 'zero_area'
    assert "Kurtosis (sampled)" not in res['descriptors']
    empty = M.sampled_descriptors(np.zeros(0), np.zeros(0), AnalysisConfig())
    assert empty['valid'] is False and empty['reason'] == 'all_zero'


def test_polynomial_descriptors():
    x = np.arange(1, 11, dtype=float)
    y = -(x - 5) ** 2 + 30
    fit = fit_polynomial(x, y, 2)
    d = M.polynomial_descriptors(fit, x, y, AnalysisConfig(primary_branches=4))['descriptors']
    assert abs(d["Critical radius"] - 5.0) < 1e-2
    assert np.isclose(d["Critical value"], 30.0, atol=1e-4)
    assert np.isclose(d["Mean value"], 23.0)
    assert np.isclose(d["Ramification index (fit)"], 7.5, atol=1e-4)
    assert d["Polyn. degree"] == 2
    assert np.isclose(d["Polyn. R^2"], 1.0)
    assert "Skewness (fit)" in d and "Kurtosis (fit)" in d


def test_polynomial_descriptors_reject_other_fits():
    with pytest.raises(ValueError):
        M.polynomial_descriptors(FittedCurve("power", (1.0, -1.0), 1.0), [1, 2], [1, 2], AnalysisConfig())


def test_regression_descriptors():
    x = np.arange(1, 21, dtype=float)
    y = -0.5 * x + 3.0
    res = M.regression_descriptors(x, y, M.SEMI_LOG)
    d = res['descriptors']
    assert np.isclose(d["Regression coefficient (Semi-log)"], 0.5)
    assert np.isclose(d["Regression intercept (Semi-log)"], 3.0)
    assert np.isclose(d["Regression R^2 (Semi-log)"], 1.0)
    assert np.isclose(d["Regression coefficient (Semi-log) [P10-P90]"], 0.5)
    assert res['fits']['trimmed'] is not None


def test_trimmed_regression_skipped_on_short_profiles():
    x = np.arange(1, 8, dtype=float)
    res = M.regression_descriptors(x, 2 * x, M.LOG_LOG)
    assert "Regression coefficient (Log-log)" in res['descriptors']
    assert res['skipped']["Regression coefficient (Log-log) [P10-P90]"] == 'insufficient_points'
    assert res['fits']['trimmed'] is None
    x = np.arange(1, 9, dtype=float)
    res = M.regression_descriptors(x, 2 * x, M.LOG_LOG)
    assert "Regression R^2 (Log-log) [P10-P90]" in res['descriptors']


def test_determination_ratio_tie_prefers_semi_log():
    x = np.arange(1, 9, dtype=float)
    y = np.array([1.0, 3.0, 2.0, 5.0, 4.0, 6.0, 8.0, 7.0])
    res = M.determination_ratio(x, y, x, y)
    assert res['ratio'] == 1.0
    assert res['method'] == M.SEMI_LOG


def test_determination_ratio_prefers_log_log_for_power_law():
    r = np.arange(1, 21, dtype=float)
    y = 5.0 * r ** -2.0
    res = M.determination_ratio(r, np.log(y), np.log(r), np.log(y))
    assert res['valid']
    assert res['ratio'] < 1
    assert res['method'] == M.LOG_LOG


def test_determination_ratio_zero_denominator():
    x = np.arange(1, 9, dtype=float)
    res = M.determination_ratio(x, 2 * x, x, np.ones(8))
    assert res['log_log_r2'] == 0.0
    assert res['ratio'] > 1
    assert res['method'] == M.SEMI_LOG
