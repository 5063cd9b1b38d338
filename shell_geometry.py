"""
shell_geometry.py

Lattice sampling geometry for Sholl analysis.

- circumference_points: digital circle of integer radius, one pixel wide,
  built from one octant and mirrored eight ways. Each lattice point appears
  once and points outside the (inclusive) bounds are dropped.
- shell_points: voxels whose calibrated distance to the center lies within
  half a unit of the radius, scanned plane by plane inside the radius box.

All coordinates are (x, y) or (x, y, z) int64 rows.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from config import round_half_up


def _octant(radius: int) -> np.ndarray:
    """First 1/8 of the circle relative to the center, from (0, r) toward the diagonal.

    At each step move right or down, whichever keeps x^2 + y^2 - r^2 closer to zero.
    """
    pts = []
    x, y, err = 0, radius, 0
    while True:
        pts.append((x, y))
        err_r = err + 2 * x + 1
        err_d = err - 2 * y + 1
        if abs(err_d) < abs(err_r):
            y -= 1
            err = err_d
        else:
            x += 1
            err = err_r
        if x > y:
            break
    return np.asarray(pts, dtype=np.int64)


def _mirror(octant: np.ndarray) -> np.ndarray:
    """Expand one octant into the full circumference, walking around the circle."""
    ox, oy = octant[:, 0], octant[:, 1]
    rx, ry = ox[::-1], oy[::-1]
    blocks = (
        (ox, oy), (ry, rx),
        (oy, -ox), (rx, -ry),
        (-ox, -oy), (-ry, -rx),
        (-oy, ox), (-rx, ry),
    )
    return np.concatenate([np.stack(b, axis=1) for b in blocks], axis=0)


def _unique_rows(points: np.ndarray) -> np.ndarray:
    """Drop repeated rows, keeping the first occurrence and the input order."""
    if points.shape[0] == 0:
        return points
    _, idx = np.unique(points, axis=0, return_index=True)
    return points[np.sort(idx)]


def circumference_points(center: Tuple[int, int],
                         radius: int,
                         bounds: Tuple[Tuple[int, int], Tuple[int, int]]) -> np.ndarray:
    """Return the (N, 2) lattice points of the digital circle of ``radius``.

    Every returned point lies within one pixel of the true circle and inside
    ``bounds`` = ((xmin, xmax), (ymin, ymax)). Radius 0 yields the center.
    An empty array is a valid result when the circle misses the bounds.
    """
    radius = int(radius)
    if radius < 0:
        raise ValueError(f"radius must be >= 0 (got {radius})")
    cx, cy = int(center[0]), int(center[1])
    (xmin, xmax), (ymin, ymax) = bounds

    pts = _unique_rows(_mirror(_octant(radius)))
    pts = pts + np.array([cx, cy], dtype=np.int64)
    keep = (pts[:, 0] >= xmin) & (pts[:, 0] <= xmax) & (pts[:, 1] >= ymin) & (pts[:, 1] <= ymax)
    return pts[keep]


def shell_points(center: Tuple[int, int, int],
                 radius: float,
                 bounds: Tuple[Tuple[int, int], Tuple[int, int], Tuple[int, int]],
                 pixel_size: float = 1.0,
                 voxel_depth: float = 1.0) -> np.ndarray:
    """Return the (N, 3) voxels forming the spherical shell at ``radius``.

    ``radius`` is in physical units. A voxel belongs to the shell when
    |distance - radius| < 0.5 with distances scaled by (pixel_size, pixel_size,
    voxel_depth). The scan is limited to the radius box intersected with ``bounds``.
    """
    cx, cy, cz = (int(c) for c in center)
    (xmin, xmax), (ymin, ymax), (zmin, zmax) = bounds
    xy_reach = round_half_up(radius / pixel_size)
    z_reach = round_half_up(radius / voxel_depth)

    x0, x1 = max(cx - xy_reach, xmin), min(cx + xy_reach, xmax)
    y0, y1 = max(cy - xy_reach, ymin), min(cy + xy_reach, ymax)
    z0, z1 = max(cz - z_reach, zmin), min(cz + z_reach, zmax)
    if x0 > x1 or y0 > y1 or z0 > z1:
        return np.zeros((0, 3), dtype=np.int64)

    xs = np.arange(x0, x1 + 1, dtype=np.int64)
    ys = np.arange(y0, y1 + 1, dtype=np.int64)
    YY, XX = np.meshgrid(ys, xs, indexing="ij")
    d2_xy = ((XX - cx) * pixel_size) ** 2 + ((YY - cy) * pixel_size) ** 2

    parts = []
    for z in range(z0, z1 + 1):
        dz = (z - cz) * voxel_depth
        dist = np.sqrt(d2_xy + dz * dz)
        sel = np.abs(dist - radius) < 0.5
        if not sel.any():
            continue
        n = int(sel.sum())
        parts.append(np.stack([XX[sel], YY[sel], np.full(n, z, dtype=np.int64)], axis=1))

    if not parts:
        return np.zeros((0, 3), dtype=np.int64)
    return np.concatenate(parts, axis=0)


__all__ = ["circumference_points", "shell_points"]
