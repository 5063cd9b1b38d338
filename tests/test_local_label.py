from __future__ import annotations

import os
import sys
import tracemalloc

import numpy as np

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from io_bridge import ThresholdedImage
from local_label import (count_groups, count_groups_3d, count_single_pixels, has_neighbors,
                         label_points)
from shell_geometry import shell_points


def _all_foreground(pts):
    return np.ones(np.asarray(pts).shape[0], dtype=bool)


def test_chebyshev_distance_one_joins():
    assert count_groups(np.array([[0, 0], [1, 1]]), _all_foreground, spike_suppression=False) == 1
    assert count_groups(np.array([[0, 0], [1, 0]]), _all_foreground, spike_suppression=False) == 1


def test_chebyshev_distance_two_separates():
    assert count_groups(np.array([[0, 0], [2, 0]]), _all_foreground, spike_suppression=False) == 2
    assert count_groups(np.array([[0, 0], [2, 2]]), _all_foreground, spike_suppression=False) == 2


def test_empty_input():
    assert count_groups(np.zeros((0, 2), dtype=np.int64), _all_foreground) == 0
    assert count_groups_3d(np.zeros((0, 3), dtype=np.int64), _all_foreground) == 0


def test_label_points_order_and_chains():
    pts = np.array([[0, 0], [1, 0], [5, 5], [6, 6], [9, 0], [2, 1]])
    labels = label_points(pts, connectivity=8)
    assert labels.tolist() == [1, 1, 2, 2, 3, 1]


def test_label_points_negative_coordinates():
    pts = np.array([[-3, -3], [-2, -2], [4, -3]])
    assert label_points(pts).tolist() == [1, 1, 2]


def test_label_points_26_connectivity():
    pts = np.array([[0, 0, 0], [1, 1, 1], [3, 3, 3], [3, 3, 5]])
    assert label_points(pts, connectivity=26).tolist() == [1, 1, 2, 3]


def test_label_points_far_apart_stays_small():
    label_points(np.array([[0, 0, 0], [1, 1, 1]]), connectivity=26)
    tracemalloc.start()
    try:
        labels = label_points(np.array([[0, 0, 0], [500, 500, 100]]), connectivity=26)
        _, peak = tracemalloc.get_traced_memory()
    finally:
        tracemalloc.stop()
    assert labels.tolist() == [1, 2]
    assert peak < 5 * 1024 * 1024


def _staircase_image():
    img = np.zeros((20, 20), dtype=np.uint8)
    # img[y, x]
    for x, y in [(10, 10), (9, 11), (10, 11), (9, 10), (15, 15)]:
        img[y, x] = 1
    return ThresholdedImage(img, 1, 1)


def test_spike_suppression_removes_staircase_pixel():
    image = _staircase_image()
    pts = np.array([[10, 10], [15, 15]])
    assert count_groups(pts, image.is_foreground, spike_suppression=False) == 2
    assert count_groups(pts, image.is_foreground, spike_suppression=True) == 1
    labels = label_points(pts)
    assert count_single_pixels(pts, labels, image.is_foreground) == 1


def test_spike_suppression_noop_without_staircase():
    img = np.zeros((20, 20), dtype=np.uint8)
    img[3, 3] = img[15, 15] = img[8, 2] = 1
    image = ThresholdedImage(img, 1, 1)
    pts = np.array([[3, 3], [15, 15], [2, 8], [5, 5]])
    assert count_groups(pts, image.is_foreground, True) == count_groups(pts, image.is_foreground, False) == 3


def test_spike_suppression_at_image_edge():
    # neighbors outside the image are background
    img = np.zeros((5, 5), dtype=np.uint8)
    img[0, 0] = 1
    image = ThresholdedImage(img, 1, 1)
    assert count_groups(np.array([[0, 0]]), image.is_foreground) == 1


def _ball(n=32, r=8.0):
    z, y, x = np.indices((n, n, n))
    c = n // 2
    return ((x - c) ** 2 + (y - c) ** 2 + (z - c) ** 2 <= r * r).astype(np.uint8)


def test_3d_ball_shells():
    image = ThresholdedImage(_ball(), 1, 1)
    bounds = ((0, 31), (0, 31), (0, 31))
    for r, expected in [(3.0, 1), (6.0, 1), (12.0, 0)]:
        shell = shell_points((16, 16, 16), r, bounds)
        assert count_groups_3d(shell, image.is_foreground) == expected, f"r={r}"


def test_3d_rod_and_isolated_voxel():
    vol = np.zeros((32, 32, 32), dtype=np.uint8)
    vol[16, 16, :] = 1          # rod along x
    vol[16, 22, 16] = 1         # lone voxel at x=16, y=22, z=16
    image = ThresholdedImage(vol, 1, 1)
    shell = shell_points((16, 16, 16), 6.0, ((0, 31), (0, 31), (0, 31)))
    assert count_groups_3d(shell, image.is_foreground, skip_isolated=False) == 3
    assert count_groups_3d(shell, image.is_foreground, skip_isolated=True) == 2


def test_has_neighbors():
    vol = np.zeros((5, 5, 5), dtype=np.uint8)
    vol[2, 2, 2] = vol[2, 2, 3] = 1
    vol[0, 0, 0] = 1
    image = ThresholdedImage(vol, 1, 1)
    out = has_neighbors(np.array([[2, 2, 2], [0, 0, 0], [3, 2, 2]]), image.is_foreground)
    assert out.tolist() == [True, False, True]
