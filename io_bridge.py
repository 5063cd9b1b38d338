"""
io_bridge.py

Thin wrapper that exposes an in-memory segmented image to the Sholl core.

- Axis order of the wrapped array is numpy order: [y, x] for 2D, [z, y, x] for 3D.
- Coordinates passed in and out of the core are (x, y) or (x, y, z) rows.
- Foreground is the inclusive intensity range [lower, upper].
- Positions outside the image read as background; nothing here writes to the data.

Primary API
-----------

    from io_bridge import ThresholdedImage

    image = ThresholdedImage(stack, lower=120, upper=255)
    image.intensity(10, 20, 3)                 # raw value at x=10, y=20, z=3
    image.is_foreground(np.array([[10, 20, 3]]))  # -> array([ True])

Binary images (background 0) can use ``ThresholdedImage.from_binary``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np


@dataclass
class ThresholdedImage:
    """Pixel/voxel accessor plus classify predicate.

    - data: 2D [y, x] or 3D [z, y, x] array of intensities
    - lower, upper: inclusive threshold range defining the arbor
    """

    data: np.ndarray
    lower: float
    upper: float
    _mask: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        self.data = np.asarray(self.data)
        if self.data.ndim not in (2, 3):
            raise ValueError(f"Expected a 2D or 3D image, got array with shape {self.data.shape}")
        if self.lower > self.upper:
            raise ValueError(f"lower threshold ({self.lower}) exceeds upper threshold ({self.upper})")
        self._mask = self.classify(self.data)

    @classmethod
    def from_binary(cls, data: np.ndarray) -> "ThresholdedImage":
        """Binary images: background is 0, the arbor is the highest value."""
        data = np.asarray(data)
        top = float(data.max()) if data.size else 1.0
        if top <= 0:
            top = 1.0
        return cls(data, lower=top, upper=top)

    @property
    def is_3d(self) -> bool:
        return self.data.ndim == 3

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.data.shape

    @property
    def foreground(self) -> np.ndarray:
        """Boolean mask of thresholded pixels, same shape as data (read-only view)."""
        view = self._mask.view()
        view.flags.writeable = False
        return view

    def classify(self, values) -> np.ndarray:
        values = np.asarray(values)
        return (values >= self.lower) & (values <= self.upper)

    def intensity(self, x: int, y: int, z: Optional[int] = None) -> float:
        if self.is_3d:
            return float(self.data[0 if z is None else z, y, x])
        return float(self.data[y, x])

    def contains(self, coords: np.ndarray) -> np.ndarray:
        """Return a bool per (x, y[, z]) row telling whether it lies inside the image."""
        coords = np.asarray(coords, dtype=np.int64).reshape(-1, self.data.ndim)
        inside = np.ones(coords.shape[0], dtype=bool)
        # coordinate column c maps to array axis ndim-1-c
        for c in range(self.data.ndim):
            n = self.data.shape[self.data.ndim - 1 - c]
            inside &= (coords[:, c] >= 0) & (coords[:, c] < n)
        return inside

    def is_foreground(self, coords: np.ndarray) -> np.ndarray:
        """Classify (x, y[, z]) rows; out-of-image positions are background."""
        coords = np.asarray(coords, dtype=np.int64).reshape(-1, self.data.ndim)
        out = np.zeros(coords.shape[0], dtype=bool)
        inside = self.contains(coords)
        if not inside.any():
            return out
        c = coords[inside]
        if self.is_3d:
            out[inside] = self._mask[c[:, 2], c[:, 1], c[:, 0]]
        else:
            out[inside] = self._mask[c[:, 1], c[:, 0]]
        return out

    def max_projection(self, z0: int = 0, z1: Optional[int] = None) -> "ThresholdedImage":
        """Maximum-intensity projection over slices [z0, z1] (inclusive) with the same thresholds."""
        if not self.is_3d:
            return self
        z1 = self.data.shape[0] - 1 if z1 is None else z1
        proj = self.data[max(z0, 0):z1 + 1].max(axis=0)
        return ThresholdedImage(proj, self.lower, self.upper)


__all__ = ["ThresholdedImage"]
