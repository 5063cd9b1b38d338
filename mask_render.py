"""
mask_render.py

Heat-map overlay of a Sholl profile: every foreground pixel lying on a
sampled circle is painted with the value of its radius.

- make_mask: float [y, x] mask, 0 where nothing was painted
- render_mask: RGB uint8 image via a matplotlib colormap, grey background

3D stacks are drawn on the maximum-intensity projection of the sampled
z-range.
"""

from __future__ import annotations

import logging

import numpy as np
import matplotlib
matplotlib.use("agg")
from matplotlib.colors import Normalize

from config import SamplingConfig, round_half_up
from io_bridge import ThresholdedImage
from shell_geometry import circumference_points

logger = logging.getLogger(__name__)


def make_mask(image: ThresholdedImage, config: SamplingConfig,
              radii: np.ndarray, values: np.ndarray) -> np.ndarray:
    """Paint ``values[i]`` onto foreground pixels of the circles around ``radii[i]``.

    Each radius paints a band of max(1, round(step / pixel_size)) circles
    starting at its own pixel radius. Negative values (polynomial undershoot)
    are painted as 0.
    """
    radii = np.asarray(radii, dtype=np.float64)
    values = np.asarray(values, dtype=np.float64)
    if radii.shape != values.shape:
        raise ValueError("radii and values must have the same length")

    plane = image
    if image.is_3d:
        (_, _), (_, _), (z0, z1) = config.bounds
        plane = image.max_projection(z0, z1)

    mask = np.zeros(plane.shape, dtype=np.float64)
    cx, cy, _ = config.center
    width = max(1, round_half_up(config.step_radius / config.pixel_size))
    for r, v in zip(radii, values):
        r0 = round_half_up(r / config.pixel_size)
        for k in range(width):
            pts = circumference_points((cx, cy), max(r0 + k, 0), config.bounds_2d)
            if pts.shape[0] == 0:
                continue
            fg = pts[plane.is_foreground(pts)]
            mask[fg[:, 1], fg[:, 0]] = max(float(v), 0.0) if np.isfinite(v) else 0.0
    logger.debug("Mask painted for %d radii (band width %d px)", radii.size, width)
    return mask


def render_mask(mask: np.ndarray, background: int = 228, cmap: str = "jet") -> np.ndarray:
    """Map a float mask to an (H, W, 3) uint8 RGB image.

    Values are scaled over [0, max(mask)]; unpainted pixels get the grey
    level ``background``.
    """
    if not 0 <= background <= 255:
        raise ValueError("background must be within 0..255")
    mask = np.asarray(mask, dtype=np.float64)
    vmax = float(mask.max()) if mask.size else 0.0
    norm = Normalize(vmin=0.0, vmax=vmax if vmax > 0 else 1.0)
    rgba = matplotlib.colormaps[cmap](norm(mask))
    rgb = np.round(rgba[..., :3] * 255.0).astype(np.uint8)
    rgb[mask <= 0] = background
    return rgb


__all__ = ["make_mask", "render_mask"]
