"""
profiles.py

Sholl profile container and the transforms applied before fitting.

Every transform returns a new Profile; inputs are never modified.

    raw    = sampler.sample()
    linear = filter_non_zero(raw)
    ns     = normalize(linear, "area", is_3d=False, step_radius=1.0)
    slog   = log_transform(ns, on_x=False, on_y=True)
    llog   = log_transform(slog, on_x=True, on_y=False)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from config import NORMALIZERS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Profile:
    """Ordered (radius, count) pairs, one per scheduled radius."""

    radii: np.ndarray
    counts: np.ndarray

    def __post_init__(self):
        radii = np.array(self.radii, dtype=np.float64).ravel()
        counts = np.array(self.counts, dtype=np.float64).ravel()
        if radii.shape != counts.shape:
            raise ValueError(f"radii ({radii.size}) and counts ({counts.size}) differ in length")
        radii.flags.writeable = False
        counts.flags.writeable = False
        object.__setattr__(self, "radii", radii)
        object.__setattr__(self, "counts", counts)

    def __len__(self) -> int:
        return int(self.radii.size)

    def as_array(self) -> np.ndarray:
        """(N, 2) array of [radius, count] rows."""
        return np.column_stack([self.radii, self.counts])

    @property
    def is_empty(self) -> bool:
        return self.radii.size == 0


def filter_non_zero(profile: Profile) -> Profile:
    """Keep pairs where both radius and count are strictly positive."""
    keep = (profile.radii > 0) & (profile.counts > 0)
    return Profile(profile.radii[keep], profile.counts[keep])


def _normalizer_values(r: np.ndarray, normalizer: str, is_3d: bool, step_radius: float) -> np.ndarray:
    if normalizer == "area":
        return (4.0 / 3.0) * np.pi * r ** 3 if is_3d else np.pi * r ** 2
    if normalizer == "perimeter":
        return 4.0 * np.pi * r ** 2 if is_3d else 2.0 * np.pi * r
    r1 = r - step_radius / 2.0
    r2 = r + step_radius / 2.0
    if is_3d:
        return (4.0 / 3.0) * np.pi * (r2 ** 3 - r1 ** 3)
    return np.pi * (r2 ** 2 - r1 ** 2)


def normalize(profile: Profile, normalizer: str = "area", is_3d: bool = False,
              step_radius: float = float("nan")) -> Profile:
    """Divide each count by the area/volume, perimeter/surface or annulus/shell at its radius."""
    key = NORMALIZERS.get(str(normalizer).lower())
    if key is None:
        raise ValueError(f"Unknown normalizer {normalizer!r}; expected one of {sorted(NORMALIZERS)}")
    if key == "annulus" and (step_radius is None or math.isnan(step_radius)):
        logger.warning("Annulus/shell normalization requested without a step radius; values will be NaN")
        step_radius = float("nan")
    with np.errstate(divide="ignore", invalid="ignore"):
        counts = profile.counts / _normalizer_values(profile.radii, key, is_3d, step_radius)
    return Profile(profile.radii, counts)


def log_transform(profile: Profile, on_x: bool = False, on_y: bool = True) -> Profile:
    """Natural log of the requested axes."""
    with np.errstate(divide="ignore", invalid="ignore"):
        x = np.log(profile.radii) if on_x else profile.radii
        y = np.log(profile.counts) if on_y else profile.counts
    return Profile(x, y)


def infer_step_radius(radii: np.ndarray) -> float:
    """Spacing of an imported profile, taken from its first two radii (NaN if unknown)."""
    radii = np.asarray(radii, dtype=np.float64)
    if radii.size < 2:
        return float("nan")
    return float(abs(radii[1] - radii[0]))


__all__ = ["Profile", "filter_non_zero", "normalize", "log_transform", "infer_step_radius"]
