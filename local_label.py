"""
local_label.py

Connected-component counting over the sparse point sets sampled on one
circle (2D, 8-connectivity) or one spherical shell (3D, 26-connectivity).

Points are keyed by their linear cell index, sorted once, and merged with a
numba union-find that looks up each half-neighborhood offset by binary
search, so every pair of points at Chebyshev distance 1 ends up in the same
group. Memory scales with the number of points, not their bounding box.
"""

from __future__ import annotations

from typing import Callable

import numpy as np
from numba import njit


# Neighbor order for the staircase test, as (dx, dy):
#   0 1 2
#   3 . 4
#   5 6 7
_RING8 = np.array(
    [(-1, 1), (0, 1), (1, 1), (-1, 0), (1, 0), (-1, -1), (0, -1), (1, -1)],
    dtype=np.int64,
)

# (foreground, background) neighbor indices of an isolated stair-edge pixel
_STAIR_PATTERNS = (
    ((0, 1, 3), (4, 6, 7)),
    ((1, 2, 4), (3, 5, 6)),
    ((4, 6, 7), (0, 1, 3)),
    ((3, 5, 6), (1, 2, 4)),
)

_FACE6 = np.array(
    [(-1, 0, 0), (1, 0, 0), (0, -1, 0), (0, 1, 0), (0, 0, -1), (0, 0, 1)],
    dtype=np.int64,
)


@njit(inline='always')
def uf_find(parent, x):
    while parent[x] != x:
        parent[x] = parent[parent[x]]
        x = parent[x]
    return x


@njit(inline='always')
def uf_union(parent, a, b):
    ra = uf_find(parent, a)
    rb = uf_find(parent, b)
    if ra != rb:
        parent[rb] = ra


def _neighbor_offsets(connectivity: int) -> np.ndarray:
    """Return half-neighborhood offsets (dx, dy, dz) for the requested connectivity.

    8 is the in-plane neighborhood used for circles (dz always 0); 26 is the
    full 3x3x3 neighborhood used for shells. The mirrored half is covered by
    visiting every point.
    """
    if connectivity == 8:
        offs = [(-1, 0, 0), (0, -1, 0), (-1, -1, 0), (1, -1, 0)]
    elif connectivity == 26:
        offs = [
            # same slice (dz=0)
            (-1, 0, 0), (0, -1, 0), (-1, -1, 0), (1, -1, 0),
            # previous slice (dz=-1), all 3x3 neighbors
            (-1, -1, -1), (0, -1, -1), (1, -1, -1),
            (-1, 0, -1),  (0, 0, -1),  (1, 0, -1),
            (-1, 1, -1),  (0, 1, -1),  (1, 1, -1),
        ]
    else:
        raise ValueError("connectivity must be 8 or 26")
    return np.asarray(offs, dtype=np.int64)


@njit
def _union_neighbors(keys: np.ndarray, order: np.ndarray, local: np.ndarray,
                     dims: np.ndarray, neigh: np.ndarray) -> np.ndarray:
    """Union every point with the points found at its neighbor offsets.

    keys holds the sorted linear cell keys of all points and order maps each
    sorted key back to its point index. Returns the root index of every point.
    """
    n = local.shape[0]
    ny = dims[1]
    nz = dims[2]
    parent = np.arange(n, dtype=np.int64)
    for p in range(n):
        for t in range(neigh.shape[0]):
            di = local[p, 0] + neigh[t, 0]
            dj = local[p, 1] + neigh[t, 1]
            dk = local[p, 2] + neigh[t, 2]
            k = (di * ny + dj) * nz + dk
            j = np.searchsorted(keys, k)
            if j < n and keys[j] == k:
                uf_union(parent, p, order[j])
    roots = np.empty(n, dtype=np.int64)
    for p in range(n):
        roots[p] = uf_find(parent, p)
    return roots


def label_points(coords: np.ndarray, connectivity: int = 8) -> np.ndarray:
    """Label (N, 2) or (N, 3) integer points into groups 1..K.

    Two points share a label when a chain of neighbors (Chebyshev distance 1
    in the plane for 8, in space for 26) joins them. Returns int64 labels in
    input order; labels are compact and numbered by first appearance order of
    their smallest member index.
    """
    coords = np.asarray(coords, dtype=np.int64)
    if coords.shape[0] == 0:
        return np.zeros(0, dtype=np.int64)
    if coords.shape[1] == 2:
        coords = np.column_stack([coords, np.zeros(coords.shape[0], dtype=np.int64)])

    # one cell of margin on every side keeps neighbor keys unambiguous
    local = coords - coords.min(axis=0) + 1
    dims = local.max(axis=0) + 2
    keys = (local[:, 0] * dims[1] + local[:, 1]) * dims[2] + local[:, 2]
    order = np.argsort(keys, kind="stable")

    roots = _union_neighbors(keys[order], order.astype(np.int64), np.ascontiguousarray(local),
                             dims.astype(np.int64), _neighbor_offsets(connectivity))
    _, first, inverse = np.unique(roots, return_index=True, return_inverse=True)
    # renumber so that group order follows the point order
    order = np.argsort(np.argsort(first))
    return order[inverse].astype(np.int64) + 1


def count_single_pixels(points: np.ndarray, labels: np.ndarray,
                        classify: Callable[[np.ndarray], np.ndarray]) -> int:
    """Count one-pixel groups sitting on the edge of a staircase of foreground pixels.

    Neighbors are classified directly from the image (not from ``points``);
    positions outside the image count as background.
    """
    if labels.size == 0:
        return 0
    sizes = np.bincount(labels)
    single = sizes[labels] == 1
    if not single.any():
        return 0
    lonely = np.asarray(points, dtype=np.int64)[single]
    ring = (lonely[:, None, :] + _RING8[None, :, :]).reshape(-1, 2)
    nb = np.asarray(classify(ring), dtype=bool).reshape(-1, 8)

    hit = np.zeros(lonely.shape[0], dtype=bool)
    for on, off in _STAIR_PATTERNS:
        hit |= nb[:, list(on)].all(axis=1) & ~nb[:, list(off)].any(axis=1)
    return int(hit.sum())


def count_groups(points: np.ndarray,
                 classify: Callable[[np.ndarray], np.ndarray],
                 spike_suppression: bool = True) -> int:
    """Number of 8-connected foreground groups among circle ``points``.

    ``classify`` maps an (N, 2) array of (x, y) rows to a boolean array.
    With ``spike_suppression`` one group is subtracted per isolated pixel
    that matches a staircase pattern. The four patterns do not cover every
    staircase orientation.
    """
    points = np.asarray(points, dtype=np.int64).reshape(-1, 2)
    if points.shape[0] == 0:
        return 0
    fg = points[np.asarray(classify(points), dtype=bool)]
    if fg.shape[0] == 0:
        return 0
    labels = label_points(fg, connectivity=8)
    groups = int(labels.max())
    if spike_suppression:
        groups -= count_single_pixels(fg, labels, classify)
    return groups


def has_neighbors(voxels: np.ndarray, classify: Callable[[np.ndarray], np.ndarray]) -> np.ndarray:
    """True for each (x, y, z) voxel with at least one foreground face neighbor."""
    voxels = np.asarray(voxels, dtype=np.int64).reshape(-1, 3)
    if voxels.shape[0] == 0:
        return np.zeros(0, dtype=bool)
    faces = (voxels[:, None, :] + _FACE6[None, :, :]).reshape(-1, 3)
    return np.asarray(classify(faces), dtype=bool).reshape(-1, 6).any(axis=1)


def count_groups_3d(voxels: np.ndarray,
                    classify: Callable[[np.ndarray], np.ndarray],
                    skip_isolated: bool = False) -> int:
    """Number of 26-connected foreground groups among shell ``voxels``.

    With ``skip_isolated`` a foreground voxel is dropped unless one of its six
    face neighbors in the image is also foreground.
    """
    voxels = np.asarray(voxels, dtype=np.int64).reshape(-1, 3)
    if voxels.shape[0] == 0:
        return 0
    fg = voxels[np.asarray(classify(voxels), dtype=bool)]
    if skip_isolated and fg.shape[0]:
        fg = fg[has_neighbors(fg, classify)]
    if fg.shape[0] == 0:
        return 0
    return int(label_points(fg, connectivity=26).max())


__all__ = [
    "label_points",
    "count_groups",
    "count_single_pixels",
    "has_neighbors",
    "count_groups_3d",
]
