"""
radial_sampler.py

Walks the radius schedule and counts intersections at every radius.

- 2D: ``n_spans`` circles per radius at successively smaller pixel radii,
  combined with mean, median or mode.
- 3D: one spherical shell per radius, no binning.

Cancellation is polled between radii (and between bin samples in 2D). A
cancelled run returns the profile collected so far; the remaining entries
stay at zero.

    sampler = RadialSampler(cfg, image, progress=lambda i, n: ..., cancel=lambda: False)
    profile = sampler.sample()
    sampler.cancelled, sampler.completed
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

import numpy as np

from config import SamplingConfig, round_half_up
from io_bridge import ThresholdedImage
from local_label import count_groups, count_groups_3d
from profiles import Profile
from shell_geometry import circumference_points, shell_points

logger = logging.getLogger(__name__)


def combine_samples(samples: Sequence[int], mode: str = "mean") -> float:
    """Merge the bin samples taken for one radius into a single count.

    - mean: arithmetic average
    - median: central value, or the average of the two central values
    - mode: most frequent value; the first one scanned wins a tie
    """
    samples = list(samples)
    n = len(samples)
    if n == 0:
        raise ValueError("combine_samples needs at least one sample")
    if n == 1:
        return float(samples[0])
    if mode == "mean":
        return float(sum(samples)) / n
    if mode == "median":
        s = sorted(samples)
        if n % 2 == 0:
            return (s[n // 2] + s[n // 2 - 1]) / 2.0
        return float(s[n // 2])
    if mode == "mode":
        best, best_count = samples[0], 0
        for value in samples:
            c = samples.count(value)
            if c > best_count:
                best, best_count = value, c
        return float(best)
    raise ValueError(f"Unknown bin mode {mode!r}")


class RadialSampler:
    """Sample intersections for every radius of a SamplingConfig."""

    def __init__(self, config: SamplingConfig, image: ThresholdedImage,
                 progress: Optional[Callable[[int, int], None]] = None,
                 cancel: Optional[Callable[[], bool]] = None):
        if config.is_3d != image.is_3d:
            raise ValueError(
                f"Configuration is {'3D' if config.is_3d else '2D'} but image has shape {image.shape}"
            )
        self.config = config
        self.image = image
        self.progress = progress
        self.cancel = cancel
        self.cancelled = False
        self.completed = 0

    def _should_stop(self) -> bool:
        if self.cancel is not None and self.cancel():
            self.cancelled = True
        return self.cancelled

    def _report(self, index: int, total: int) -> None:
        if self.progress is not None:
            self.progress(index, total)

    def sample(self) -> Profile:
        radii = self.config.radii()
        counts = np.zeros(radii.size, dtype=np.float64)
        self.cancelled = False
        self.completed = 0
        if self.config.is_3d:
            self._sample_3d(radii, counts)
        else:
            self._sample_2d(radii, counts)
        if self.cancelled:
            logger.info("Sampling cancelled after %d of %d radii", self.completed, radii.size)
        return Profile(radii, counts)

    def _sample_2d(self, radii: np.ndarray, counts: np.ndarray) -> None:
        cfg = self.config
        cx, cy, _ = cfg.center
        spans = cfg.n_spans
        total = radii.size * spans
        for i, r in enumerate(radii):
            if self._should_stop():
                return
            rbin = round_half_up(r / cfg.pixel_size + spans // 2)
            samples = []
            for j in range(spans):
                if j and self._should_stop():
                    return
                points = circumference_points((cx, cy), max(rbin, 0), cfg.bounds_2d)
                samples.append(count_groups(points, self.image.is_foreground, cfg.spike_suppression))
                rbin -= 1
                self._report(i * spans + j + 1, total)
            counts[i] = combine_samples(samples, cfg.bin_mode)
            self.completed = i + 1
            logger.debug("r=%g: %s -> %g", r, samples, counts[i])

    def _sample_3d(self, radii: np.ndarray, counts: np.ndarray) -> None:
        cfg = self.config
        for i, r in enumerate(radii):
            if self._should_stop():
                return
            voxels = shell_points(cfg.center, float(r), cfg.bounds, cfg.pixel_size, cfg.voxel_depth)
            counts[i] = count_groups_3d(voxels, self.image.is_foreground, cfg.skip_isolated_voxels)
            self.completed = i + 1
            self._report(i + 1, radii.size)
            logger.debug("r=%g: %d shell voxels -> %g", r, voxels.shape[0], counts[i])


def sample_profile(config: SamplingConfig, image: ThresholdedImage,
                   progress: Optional[Callable[[int, int], None]] = None,
                   cancel: Optional[Callable[[], bool]] = None) -> Profile:
    """Convenience wrapper around ``RadialSampler(...).sample()``."""
    return RadialSampler(config, image, progress=progress, cancel=cancel).sample()


__all__ = ["RadialSampler", "combine_samples", "sample_profile"]
