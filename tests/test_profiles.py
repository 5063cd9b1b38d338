from __future__ import annotations

import os
import sys

import numpy as np
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from profiles import Profile, filter_non_zero, infer_step_radius, log_transform, normalize


def test_profile_copies_and_validates():
    r = np.array([1.0, 2.0, 3.0])
    c = np.array([4.0, 5.0, 6.0])
    p = Profile(r, c)
    r[0] = 100.0
    assert p.radii[0] == 1.0
    assert len(p) == 3
    assert p.as_array().shape == (3, 2)
    with pytest.raises(ValueError):
        p.radii[0] = 5.0
    with pytest.raises(ValueError):
        Profile([1, 2], [1])


def test_filter_non_zero_and_idempotent():
    p = Profile([0, 1, 2, 3, 4], [5, 0, 2, 3, 0])
    f = filter_non_zero(p)
    assert f.radii.tolist() == [2.0, 3.0]
    assert f.counts.tolist() == [2.0, 3.0]
    ff = filter_non_zero(f)
    assert np.array_equal(ff.radii, f.radii) and np.array_equal(ff.counts, f.counts)
    assert p.counts.tolist() == [5.0, 0.0, 2.0, 3.0, 0.0]


def test_normalize_2d():
    p = Profile([1.0, 2.0], [2.0, 4.0])
    area = normalize(p, "area", is_3d=False)
    assert np.allclose(area.counts, [2.0 / np.pi, 4.0 / (4 * np.pi)])
    perim = normalize(p, "perimeter", is_3d=False)
    assert np.allclose(perim.counts, [2.0 / (2 * np.pi), 4.0 / (4 * np.pi)])
    ann = normalize(p, "annulus", is_3d=False, step_radius=0.5)
    # pi * ((r + s/2)^2 - (r - s/2)^2) = 2 pi r s
    assert np.allclose(ann.counts, [2.0 / (2 * np.pi * 1.0 * 0.5), 4.0 / (2 * np.pi * 2.0 * 0.5)])
    assert np.array_equal(area.radii, p.radii)


def test_normalize_3d():
    p = Profile([1.0, 3.0], [1.0, 9.0])
    vol = normalize(p, "volume", is_3d=True)
    assert np.allclose(vol.counts, [1.0 / (4 / 3 * np.pi), 9.0 / (4 / 3 * np.pi * 27)])
    surf = normalize(p, "surface", is_3d=True)
    assert np.allclose(surf.counts, [1.0 / (4 * np.pi), 9.0 / (4 * np.pi * 9)])
    s = 0.2
    shell = normalize(p, "shell", is_3d=True, step_radius=s)
    expected = 4 * np.pi * p.radii ** 2 * s + np.pi * s ** 3 / 3
    assert np.allclose(shell.counts, p.counts / expected)


def test_annulus_approaches_perimeter_times_step():
    p = Profile([5.0, 10.0], [3.0, 6.0])
    perim = normalize(p, "perimeter", is_3d=True)
    for s in (1e-1, 1e-3):
        ann = normalize(p, "annulus", is_3d=True, step_radius=s)
        assert np.allclose(ann.counts * s, perim.counts, rtol=1e-2)


def test_annulus_without_step_is_nan():
    p = Profile([1.0, 2.0], [1.0, 1.0])
    out = normalize(p, "annulus")
    assert np.all(np.isnan(out.counts))


def test_unknown_normalizer():
    with pytest.raises(ValueError):
        normalize(Profile([1.0], [1.0]), "diameter")


def test_log_transform_chain():
    p = Profile([1.0, np.e, np.e ** 2], [np.e, np.e ** 2, np.e ** 3])
    slog = log_transform(p, on_x=False, on_y=True)
    assert np.allclose(slog.radii, p.radii)
    assert np.allclose(slog.counts, [1, 2, 3])
    llog = log_transform(slog, on_x=True, on_y=False)
    assert np.allclose(llog.radii, [0, 1, 2])
    assert np.allclose(llog.counts, [1, 2, 3])


def test_infer_step_radius():
    assert infer_step_radius(np.array([2.0, 4.5, 7.0])) == 2.5
    assert np.isnan(infer_step_radius(np.array([2.0])))
