"""
fitting.py

Curve fits used on Sholl profiles.

- fit_linear: straight line, scipy.stats.linregress
- fit_polynomial / fit_best_polynomial: degrees 2..8, least squares
- fit_power: y = a * x**b
- fit_exponential: y = a * exp(-b * x) + c

Each returns a FittedCurve (or None when the data cannot be fit).
``fit_profile`` wraps them with the minimum dataset check and returns a
result dict in the usual {'valid': ..., 'reason': ...} form.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Union

import numpy as np
from scipy import stats
from scipy.optimize import curve_fit

from config import POLY_DEGREES, SMALLEST_DATASET

logger = logging.getLogger(__name__)

FIT_METHODS = ("polynomial", "power", "exponential", "linear")


@dataclass(frozen=True)
class FittedCurve:
    """Coefficients plus goodness of fit.

    Coefficient layout per method:
      linear      (intercept, slope)
      polynomial  (c0, c1, ..., cN), ascending powers
      power       (a, b)
      exponential (a, b, c)
    """

    method: str
    coefficients: tuple
    r_squared: float

    @property
    def degree(self) -> Optional[int]:
        if self.method == "polynomial":
            return len(self.coefficients) - 1
        if self.method == "linear":
            return 1
        return None

    @property
    def slope(self) -> float:
        if self.method != "linear":
            raise AttributeError("slope is only defined for linear fits")
        return self.coefficients[1]

    @property
    def intercept(self) -> float:
        if self.method != "linear":
            raise AttributeError("intercept is only defined for linear fits")
        return self.coefficients[0]

    def __call__(self, x) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        c = self.coefficients
        if self.method in ("linear", "polynomial"):
            return np.polynomial.polynomial.polyval(x, c)
        if self.method == "power":
            return _power(x, *c)
        if self.method == "exponential":
            return _exp_offset(x, *c)
        raise ValueError(f"Unknown fit method {self.method!r}")


def _power(x, a, b):
    return a * np.power(x, b)


def _exp_offset(x, a, b, c):
    return a * np.exp(-b * x) + c


def r_squared(y: np.ndarray, fy: np.ndarray) -> float:
    """Coefficient of determination 1 - SSE/SSD; NaN when y is constant."""
    y = np.asarray(y, dtype=np.float64)
    fy = np.asarray(fy, dtype=np.float64)
    ssd = float(np.sum((y - y.mean()) ** 2))
    if ssd < 1e-300:
        return float("nan")
    sse = float(np.sum((y - fy) ** 2))
    return 1.0 - sse / ssd


def fit_linear(x, y) -> Optional[FittedCurve]:
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if x.size < 2 or np.ptp(x) == 0:
        return None
    slope, intercept, r_value, p_value, std_err = stats.linregress(x, y)
    return FittedCurve("linear", (float(intercept), float(slope)), float(r_value ** 2))


def fit_polynomial(x, y, degree: int) -> Optional[FittedCurve]:
    if degree not in POLY_DEGREES:
        raise ValueError(f"polynomial degree must be within {POLY_DEGREES[0]}..{POLY_DEGREES[-1]}")
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if x.size <= degree:
        return None
    coeffs = np.polynomial.polynomial.polyfit(x, y, degree)
    fy = np.polynomial.polynomial.polyval(x, coeffs)
    return FittedCurve("polynomial", tuple(float(c) for c in coeffs), r_squared(y, fy))


def fit_best_polynomial(x, y) -> Optional[FittedCurve]:
    """Polynomial of degree 2..8 with the highest R^2.

    Only a strictly higher R^2 replaces the current choice, so ties keep the
    lower degree; degree 2 is kept when no fit beats R^2 = 0.
    """
    fits = {}
    best_degree, best_r2 = POLY_DEGREES[0], 0.0
    for degree in POLY_DEGREES:
        fit = fit_polynomial(x, y, degree)
        if fit is None:
            continue
        fits[degree] = fit
        logger.debug("poly%d: R^2=%.5f", degree, fit.r_squared)
        if fit.r_squared > best_r2:
            best_degree, best_r2 = degree, fit.r_squared
    return fits.get(best_degree)


def fit_power(x, y) -> Optional[FittedCurve]:
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    p0 = [1.0, -1.0]
    if np.all(x > 0) and np.all(y > 0):
        guess = fit_linear(np.log(x), np.log(y))
        if guess is not None:
            p0 = [float(np.exp(guess.intercept)), guess.slope]
    try:
        popt, _ = curve_fit(_power, x, y, p0=p0, maxfev=10000)
    except (RuntimeError, ValueError) as e:
        logger.warning("Power fit failed: %s", e)
        return None
    return FittedCurve("power", tuple(float(p) for p in popt), r_squared(y, _power(x, *popt)))


def fit_exponential(x, y) -> Optional[FittedCurve]:
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    span = float(np.ptp(x)) or 1.0
    p0 = [float(y[0] - y[-1]) or 1.0, 1.0 / span, float(y[-1])]
    try:
        popt, _ = curve_fit(_exp_offset, x, y, p0=p0, maxfev=10000)
    except (RuntimeError, ValueError) as e:
        logger.warning("Exponential fit failed: %s", e)
        return None
    return FittedCurve("exponential", tuple(float(p) for p in popt), r_squared(y, _exp_offset(x, *popt)))


def fit_profile(x, y, method: str = "polynomial",
                degree: Union[int, str] = "best") -> Dict:
    """Fit a profile, refusing datasets of SMALLEST_DATASET points or fewer.

    Returns a dict with keys:
        valid : bool
        reason : str, only when valid is False
        curve : FittedCurve
        fitted : fitted y at x
        n_points : int
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    n = int(x.size)
    if n <= SMALLEST_DATASET:
        return {'valid': False, 'reason': 'insufficient_points', 'n_points': n}
    if method not in FIT_METHODS:
        raise ValueError(f"fit method must be one of {FIT_METHODS} (got {method!r})")

    if method == "polynomial":
        curve = fit_best_polynomial(x, y) if degree == "best" else fit_polynomial(x, y, int(degree))
    elif method == "power":
        curve = fit_power(x, y)
    elif method == "exponential":
        curve = fit_exponential(x, y)
    else:
        curve = fit_linear(x, y)

    if curve is None:
        return {'valid': False, 'reason': 'fit_failed', 'n_points': n}
    return {
        'valid': True,
        'curve': curve,
        'fitted': curve(x),
        'n_points': n,
    }


__all__ = [
    "FittedCurve",
    "FIT_METHODS",
    "r_squared",
    "fit_linear",
    "fit_polynomial",
    "fit_best_polynomial",
    "fit_power",
    "fit_exponential",
    "fit_profile",
]
