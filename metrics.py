from __future__ import annotations

import logging

import numpy as np

from config import SMALLEST_DATASET, AnalysisConfig
from fitting import FittedCurve, fit_linear

logger = logging.getLogger(__name__)

# Smallest positive double; floor for the determination ratio denominator
_TINY = float(np.nextafter(0.0, 1.0))

SEMI_LOG = "Semi-log"
LOG_LOG = "Log-log"


def moments(values: np.ndarray, excess_kurtosis: bool = True) -> tuple[float, float, float, float]:
    """Return (mean, variance, skewness, kurtosis) using population formulas.

    Skewness and kurtosis are NaN when the variance is negligible.
    """
    v = np.asarray(values, dtype=np.float64).ravel()
    if v.size == 0:
        nan = float("nan")
        return nan, nan, nan, nan
    mu = float(v.mean())
    xc = v - mu
    var = float(np.mean(xc * xc))
    if var <= (1e-12 * max(1.0, abs(mu))) ** 2:
        return mu, var, float("nan"), float("nan")
    skew = float(np.mean(xc ** 3)) / var ** 1.5
    kurt = float(np.mean(xc ** 4)) / (var * var)
    if excess_kurtosis:
        kurt -= 3.0
    return mu, var, skew, kurt


def centroid(x: np.ndarray, y: np.ndarray) -> tuple[float, float]:
    """Centroid of the closed polygon through (x[i], y[i]) in order.

    The last vertex joins back to the first. Returns (nan, nan) when the
    enclosed area vanishes.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if x.size < 3:
        return float("nan"), float("nan")
    xn = np.roll(x, -1)
    yn = np.roll(y, -1)
    cross = x * yn - xn * y
    area = 0.5 * float(cross.sum())
    if abs(area) < 1e-300:
        return float("nan"), float("nan")
    cx = float(((x + xn) * cross).sum()) / (6.0 * area)
    cy = float(((y + yn) * cross).sum()) / (6.0 * area)
    return cx, cy


def enclosing_radius(x: np.ndarray, y: np.ndarray, cutoff: float = 1) -> float:
    """Largest radius whose count is at least ``cutoff``; NaN if there is none."""
    x = np.asarray(x, dtype=np.float64)
    hits = np.nonzero(np.asarray(y, dtype=np.float64) >= cutoff)[0]
    if hits.size == 0:
        return float("nan")
    return float(x[hits[-1]])


def _primary_divisor(y: np.ndarray, cfg: AnalysisConfig) -> float:
    return float(y[0]) if cfg.infers_primary else float(cfg.primary_branches)


def sampled_descriptors(x: np.ndarray, y: np.ndarray, cfg: AnalysisConfig) -> dict:
    """Summary statistics of the sampled (non-zero, linear) profile.

    Returns a dict with keys:
        valid : bool
        reason : str, only when valid is False
        descriptors : {name: value}
        skipped : {name: reason} for descriptors left out
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if y.size == 0:
        return {'valid': False, 'reason': 'all_zero', 'descriptors': {}, 'skipped': {}}

    out: dict[str, float] = {}
    skipped: dict[str, str] = {}
    imax = int(np.argmax(y))
    mean, _var, skew, kurt = moments(y)

    out["I branches (user)"] = float("nan") if cfg.infers_primary else float(cfg.primary_branches)
    out["I branches (inferred)"] = float(y[0]) if cfg.infers_primary else float("nan")
    out["Intersecting radii"] = float(y.size)
    out["Sum inters."] = float(y.sum())
    out["Mean inters."] = mean
    out["Median inters."] = float(np.median(y))
    if np.isnan(skew):
        skipped["Skewness (sampled)"] = skipped["Kurtosis (sampled)"] = 'degenerate_variance'
    else:
        out["Skewness (sampled)"] = skew
        out["Kurtosis (sampled)"] = kurt
    out["Max inters."] = float(y[imax])
    out["Max inters. radius"] = float(x[imax])
    out["Ramification index (sampled)"] = float(y[imax]) / _primary_divisor(y, cfg)

    cx, cy = centroid(x, y)
    if np.isnan(cx):
        skipped["Centroid radius"] = skipped["Centroid value"] = 'zero_area'
    else:
        out["Centroid radius"] = cx
        out["Centroid value"] = cy

    out["Enclosing radius"] = enclosing_radius(x, y, cfg.enclosing_cutoff)
    return {'valid': True, 'descriptors': out, 'skipped': skipped}


def critical_point(curve: FittedCurve, x: np.ndarray, fitted: np.ndarray,
                   iterations: int = 1000) -> tuple[float, float]:
    """(critical radius, critical value) of a fitted profile.

    The fit is scanned at ``iterations`` evenly spaced points between the
    midpoints flanking the largest fitted value. Only the neighborhood of the
    discrete maximum is searched.
    """
    x = np.asarray(x, dtype=np.float64)
    i = int(np.argmax(fitted))
    n = x.size
    left = (x[max(i - 1, 0)] + x[i]) / 2.0
    right = (x[min(i + 1, n - 1)] + x[i]) / 2.0
    xs = left + np.arange(iterations, dtype=np.float64) * ((right - left) / iterations)
    ys = curve(xs)
    j = int(np.argmax(ys))
    return float(xs[j]), float(ys[j])


def mean_value(curve: FittedCurve, xmin: float, xmax: float) -> float:
    """Average of a polynomial fit over [xmin, xmax] (exact integral / width)."""
    if xmax <= xmin:
        return float(curve(xmin))
    P = np.polynomial.polynomial
    antideriv = P.polyint(np.asarray(curve.coefficients, dtype=np.float64))
    area = P.polyval(xmax, antideriv) - P.polyval(xmin, antideriv)
    return float(area) / (xmax - xmin)


def polynomial_descriptors(curve: FittedCurve, x: np.ndarray, y: np.ndarray,
                           cfg: AnalysisConfig) -> dict:
    """Critical point, mean value, ramification index and shape of a polynomial fit.

    ``x``, ``y`` are the non-zero linear profile the polynomial was fit to.
    """
    if curve.method != "polynomial":
        raise ValueError(f"polynomial descriptors need a polynomial fit, got {curve.method!r}")
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    fitted = curve(x)
    cr, cv = critical_point(curve, x, fitted)

    out: dict[str, float] = {}
    skipped: dict[str, str] = {}
    out["Critical value"] = cv
    out["Critical radius"] = cr
    out["Mean value"] = mean_value(curve, float(x.min()), float(x.max()))
    out["Ramification index (fit)"] = cv / _primary_divisor(y, cfg)
    _mu, _var, skew, kurt = moments(fitted)
    if np.isnan(skew):
        skipped["Skewness (fit)"] = skipped["Kurtosis (fit)"] = 'degenerate_variance'
    else:
        out["Skewness (fit)"] = skew
        out["Kurtosis (fit)"] = kurt
    out["Polyn. degree"] = float(curve.degree)
    out["Polyn. R^2"] = curve.r_squared
    return {'valid': True, 'descriptors': out, 'skipped': skipped}


def regression_descriptors(x: np.ndarray, y: np.ndarray, label: str) -> dict:
    """Straight-line regressions over the full profile and its P10-P90 slice.

    The slope is reported negated. The trimmed fit is skipped when it would
    end at or below index SMALLEST_DATASET.
    Returns a dict with keys valid, descriptors, skipped and fits
    ({'full': FittedCurve, 'trimmed': FittedCurve or None}).
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    suffix = f" ({label})"
    names = ("Regression coefficient", "Regression intercept", "Regression R^2")
    out: dict[str, float] = {}
    skipped: dict[str, str] = {}
    fits = {'full': None, 'trimmed': None}

    full = fit_linear(x, y)
    if full is None:
        for name in names:
            skipped[name + suffix] = 'insufficient_points'
        return {'valid': False, 'reason': 'insufficient_points',
                'descriptors': out, 'skipped': skipped, 'fits': fits}
    fits['full'] = full
    out["Regression coefficient" + suffix] = -full.slope
    out["Regression intercept" + suffix] = full.intercept
    out["Regression R^2" + suffix] = full.r_squared

    n = x.size
    start = int(n * 0.10)
    end = n - 1 - start
    tsuffix = f" ({label}) [P10-P90]"
    trimmed = fit_linear(x[start:end], y[start:end]) if end > SMALLEST_DATASET else None
    if trimmed is None:
        for name in names:
            skipped[name + tsuffix] = 'insufficient_points'
    else:
        fits['trimmed'] = trimmed
        out["Regression coefficient" + tsuffix] = -trimmed.slope
        out["Regression intercept" + tsuffix] = trimmed.intercept
        out["Regression R^2" + tsuffix] = trimmed.r_squared
    return {'valid': True, 'descriptors': out, 'skipped': skipped, 'fits': fits}


def determination_ratio(semi_log_x, semi_log_y, log_log_x, log_log_y) -> dict:
    """Compare straight-line fits of the semi-log and log-log profiles.

    ratio = R^2(semi-log) / max(R^2(log-log), smallest positive double);
    ratio >= 1 selects Semi-log, otherwise Log-log.
    """
    sl = fit_linear(semi_log_x, semi_log_y)
    ll = fit_linear(log_log_x, log_log_y)
    if sl is None or ll is None:
        return {'valid': False, 'reason': 'insufficient_points'}
    ratio = sl.r_squared / max(_TINY, ll.r_squared)
    method = SEMI_LOG if ratio >= 1 else LOG_LOG
    logger.debug("Semi-log R^2=%.5f, Log-log R^2=%.5f, ratio=%.5f -> %s",
                 sl.r_squared, ll.r_squared, ratio, method)
    return {
        'valid': True,
        'ratio': float(ratio),
        'method': method,
        'semi_log_r2': sl.r_squared,
        'log_log_r2': ll.r_squared,
    }


__all__ = [
    "SEMI_LOG",
    "LOG_LOG",
    "moments",
    "centroid",
    "enclosing_radius",
    "sampled_descriptors",
    "critical_point",
    "mean_value",
    "polynomial_descriptors",
    "regression_descriptors",
    "determination_ratio",
]
