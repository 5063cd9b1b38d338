"""
config.py

Run configuration for Sholl sampling and profile analysis.

Two frozen dataclasses carry everything a run needs:

- SamplingConfig: center, radius schedule, voxel calibration, threshold range,
  bounding box and the 2D/3D sampling options. Built once per run (usually via
  ``resolve_sampling_config``) and never mutated while sampling.
- AnalysisConfig: curve fitting, normalization and descriptor options.

Both can be loaded from a YAML file:

    cfg = parse_config("run.yaml")
    sampling = sampling_config_from_dict(cfg, image.shape)
    analysis = analysis_config_from_dict(cfg)

Image axes follow numpy order: 2D arrays are [y, x], 3D stacks are [z, y, x].
Center coordinates and bounds are given as (x, y, z) with inclusive bounds.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np
import yaml


BIN_MODES = ("mean", "median", "mode")
HEMISPHERES = ("above", "below", "left", "right")
NORMALIZERS = {
    "area": "area",
    "volume": "area",
    "perimeter": "perimeter",
    "surface": "perimeter",
    "annulus": "annulus",
    "shell": "annulus",
}
POLY_DEGREES = (2, 3, 4, 5, 6, 7, 8)
MAX_SPANS = 10

# Fits on fewer than SMALLEST_DATASET + 1 points are refused
SMALLEST_DATASET = 6

Bounds = Tuple[Tuple[int, int], Tuple[int, int], Tuple[int, int]]


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from -inf (floor(v + 0.5))."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class SamplingConfig:
    """Immutable sampling parameters for one run.

    - center: (x, y, z) pixel/voxel coordinates; z is 0 for 2D images
    - start_radius, end_radius, step_radius: physical units, step already
      clamped to at least one voxel
    - pixel_size, voxel_depth: lateral and axial voxel scale
    - lower_threshold, upper_threshold: inclusive foreground range
    - bounds: ((xmin, xmax), (ymin, ymax), (zmin, zmax)), inclusive
    - n_spans, bin_mode: 2D multi-sampling per radius
    - skip_isolated_voxels: 3D noise filter (6-connected)
    - spike_suppression: 2D staircase artifact correction
    - hemisphere: bounds restriction that was applied, kept for provenance
    """

    center: Tuple[int, int, int]
    start_radius: float
    end_radius: float
    step_radius: float
    bounds: Bounds
    pixel_size: float = 1.0
    voxel_depth: float = 1.0
    lower_threshold: float = 1.0
    upper_threshold: float = 255.0
    is_3d: bool = False
    n_spans: int = 1
    bin_mode: str = "mean"
    skip_isolated_voxels: bool = False
    spike_suppression: bool = True
    hemisphere: Optional[str] = None

    def __post_init__(self):
        if self.pixel_size <= 0 or self.voxel_depth <= 0:
            raise ValueError("pixel_size and voxel_depth must be > 0")
        if self.start_radius < 0:
            raise ValueError(f"start_radius must be >= 0 (got {self.start_radius})")
        if not self.step_radius > 0:
            raise ValueError(f"step_radius must be > 0 (got {self.step_radius})")
        if not self.end_radius > self.start_radius:
            raise ValueError(
                f"end_radius ({self.end_radius}) must be larger than start_radius ({self.start_radius})"
            )
        if self.n_samples <= 1:
            raise ValueError(
                "Radius schedule is empty: start_radius must be smaller than end_radius "
                "and step_radius must be within range"
            )
        if self.lower_threshold > self.upper_threshold:
            raise ValueError("lower_threshold must be <= upper_threshold")
        if not 1 <= self.n_spans <= MAX_SPANS:
            raise ValueError(f"n_spans must be within 1..{MAX_SPANS} (got {self.n_spans})")
        if self.bin_mode not in BIN_MODES:
            raise ValueError(f"bin_mode must be one of {BIN_MODES} (got {self.bin_mode!r})")
        if self.hemisphere is not None and self.hemisphere not in HEMISPHERES:
            raise ValueError(f"hemisphere must be one of {HEMISPHERES} or None")
        for axis, (c, (lo, hi)) in enumerate(zip(self.center, self.bounds)):
            if not lo <= c <= hi:
                raise ValueError(f"center {self.center} lies outside bounds {self.bounds} (axis {axis})")

    @property
    def voxel_size(self) -> float:
        if self.is_3d:
            return (self.pixel_size * self.pixel_size * self.voxel_depth) ** (1.0 / 3.0)
        return self.pixel_size

    @property
    def n_samples(self) -> int:
        return int((self.end_radius - self.start_radius) / self.step_radius) + 1

    def radii(self) -> np.ndarray:
        """Ordered radius schedule in physical units."""
        return self.start_radius + np.arange(self.n_samples, dtype=np.float64) * self.step_radius

    @property
    def bounds_2d(self) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        return self.bounds[0], self.bounds[1]


@dataclass(frozen=True)
class AnalysisConfig:
    """Options for profile transforms, curve fitting and descriptors."""

    fit_curve: bool = True
    poly_degree: Union[int, str] = "best"
    normalizer: str = "area"
    enclosing_cutoff: float = 1
    primary_branches: int = 4
    infer_primary: bool = False
    choose_log: bool = True

    def __post_init__(self):
        if self.poly_degree != "best" and self.poly_degree not in POLY_DEGREES:
            raise ValueError(f"poly_degree must be 2..8 or 'best' (got {self.poly_degree!r})")
        key = str(self.normalizer).lower()
        if key not in NORMALIZERS:
            raise ValueError(f"normalizer must be one of {sorted(NORMALIZERS)} (got {self.normalizer!r})")
        object.__setattr__(self, "normalizer", NORMALIZERS[key])
        if self.enclosing_cutoff < 1:
            raise ValueError("enclosing_cutoff must be >= 1")
        if self.primary_branches < 0:
            raise ValueError("primary_branches must be >= 0")

    @property
    def infers_primary(self) -> bool:
        return self.infer_primary or self.primary_branches == 0


def max_end_radius(shape: Tuple[int, ...], center: Tuple[int, int, int],
                   pixel_size: float = 1.0, voxel_depth: float = 1.0) -> float:
    """Distance from center to the farthest image corner, in physical units."""
    if len(shape) == 3:
        depth, height, width = shape
    else:
        (height, width), depth = shape, 1
    x, y, z = center
    dx = (width - 1 - x) if x <= width / 2 else x
    dy = (height - 1 - y) if y <= height / 2 else y
    dz = ((depth - 1 - z) if z <= depth / 2 else z) if depth > 1 else 0
    return math.sqrt((dx * pixel_size) ** 2 + (dy * pixel_size) ** 2 + (dz * voxel_depth) ** 2)


def resolve_sampling_config(shape: Tuple[int, ...],
                            center: Tuple[int, ...],
                            start_radius: float = 10.0,
                            end_radius: Optional[float] = None,
                            step_radius: Optional[float] = None,
                            pixel_size: float = 1.0,
                            voxel_depth: float = 1.0,
                            lower_threshold: float = 1.0,
                            upper_threshold: float = 255.0,
                            n_spans: int = 1,
                            bin_mode: str = "mean",
                            skip_isolated_voxels: bool = False,
                            spike_suppression: bool = True,
                            hemisphere: Optional[str] = None,
                            bounds: Optional[Bounds] = None) -> SamplingConfig:
    """Build a SamplingConfig for an image of the given shape.

    Fills in what the caller left open: the end radius defaults to (and is
    capped at) the distance to the farthest corner, a missing step means
    continuous sampling, and the bounding box defaults to the largest sampled
    radius around the center clipped to the image, optionally trimmed to one
    side of the center (hemicircle / hemisphere analysis).
    """
    if len(shape) not in (2, 3):
        raise ValueError(f"Expected a 2D or 3D image shape, got {shape}")
    is_3d = len(shape) == 3
    cx, cy = int(center[0]), int(center[1])
    cz = int(center[2]) if (is_3d and len(center) > 2) else 0
    center3 = (cx, cy, cz)

    if is_3d:
        depth, height, width = shape
    else:
        (height, width), depth = shape, 1
    if not (0 <= cx < width and 0 <= cy < height and 0 <= cz < depth):
        raise ValueError(f"center {center3} lies outside image of shape {shape}")

    if pixel_size <= 0 or voxel_depth <= 0:
        raise ValueError("pixel_size and voxel_depth must be > 0")
    voxel_size = (pixel_size * pixel_size * voxel_depth) ** (1.0 / 3.0) if is_3d else pixel_size

    if step_radius is None:
        step = voxel_size
    elif step_radius <= 0:
        raise ValueError(f"step_radius must be > 0 (got {step_radius})")
    else:
        step = max(voxel_size, float(step_radius))

    far = max_end_radius(shape, center3, pixel_size, voxel_depth if is_3d else 1.0)
    end = far if end_radius is None else min(float(end_radius), far)
    start = float(start_radius)
    if start < 0:
        raise ValueError(f"start_radius must be >= 0 (got {start})")
    if end <= start:
        raise ValueError(
            f"end_radius ({end:g}) must be larger than start_radius ({start:g}); "
            f"the farthest image corner lies at {far:g}"
        )

    n = int((end - start) / step) + 1
    last = start + (n - 1) * step
    # 2D bin samples reach n_spans // 2 pixels past the last radius
    xy_reach = round_half_up(last / pixel_size) + (0 if is_3d else int(n_spans) // 2)
    z_reach = round_half_up(last / voxel_depth)

    if bounds is None:
        xmin, xmax = max(cx - xy_reach, 0), min(cx + xy_reach, width - 1)
        ymin, ymax = max(cy - xy_reach, 0), min(cy + xy_reach, height - 1)
        if is_3d:
            zmin, zmax = max(cz - z_reach, 0), min(cz + z_reach, depth - 1)
        else:
            zmin = zmax = 0
    else:
        (xmin, xmax), (ymin, ymax), (zmin, zmax) = bounds

    if hemisphere == "above":
        ymax = min(ymax, cy)
    elif hemisphere == "below":
        ymin = max(ymin, cy)
    elif hemisphere == "left":
        xmax = min(xmax, cx)
    elif hemisphere == "right":
        xmin = max(xmin, cx)

    return SamplingConfig(
        center=center3,
        start_radius=start,
        end_radius=end,
        step_radius=step,
        bounds=((int(xmin), int(xmax)), (int(ymin), int(ymax)), (int(zmin), int(zmax))),
        pixel_size=float(pixel_size),
        voxel_depth=float(voxel_depth),
        lower_threshold=float(lower_threshold),
        upper_threshold=float(upper_threshold),
        is_3d=is_3d,
        n_spans=int(n_spans),
        bin_mode=str(bin_mode).lower(),
        skip_isolated_voxels=bool(skip_isolated_voxels),
        spike_suppression=bool(spike_suppression),
        hemisphere=hemisphere,
    )


def parse_config(path: str) -> dict:
    with open(path, "r") as f:
        cfg = yaml.safe_load(f)
    return cfg or {}


def sampling_config_from_dict(cfg: dict, shape: Tuple[int, ...]) -> SamplingConfig:
    if "center" not in cfg:
        raise ValueError("center must be provided as [x, y] or [x, y, z]")
    bounds = cfg.get("bounds")
    if bounds is not None:
        bounds = tuple(tuple(int(v) for v in axis) for axis in bounds)
    end = cfg.get("end_radius")
    step = cfg.get("step_radius")
    return resolve_sampling_config(
        shape,
        tuple(int(v) for v in cfg["center"]),
        start_radius=float(cfg.get("start_radius", 10.0)),
        end_radius=None if end is None else float(end),
        step_radius=None if step is None else float(step),
        pixel_size=float(cfg.get("pixel_size", 1.0)),
        voxel_depth=float(cfg.get("voxel_depth", 1.0)),
        lower_threshold=float(cfg.get("lower_threshold", 1.0)),
        upper_threshold=float(cfg.get("upper_threshold", 255.0)),
        n_spans=int(cfg.get("n_spans", 1)),
        bin_mode=str(cfg.get("bin_mode", "mean")),
        skip_isolated_voxels=bool(cfg.get("skip_isolated_voxels", False)),
        spike_suppression=bool(cfg.get("spike_suppression", True)),
        hemisphere=cfg.get("hemisphere"),
        bounds=bounds,
    )


def analysis_config_from_dict(cfg: dict) -> AnalysisConfig:
    degree = cfg.get("poly_degree", "best")
    if degree != "best":
        degree = int(degree)
    return AnalysisConfig(
        fit_curve=bool(cfg.get("fit_curve", True)),
        poly_degree=degree,
        normalizer=str(cfg.get("normalizer", "area")),
        enclosing_cutoff=float(cfg.get("enclosing_cutoff", 1)),
        primary_branches=int(cfg.get("primary_branches", 4)),
        infer_primary=bool(cfg.get("infer_primary", False)),
        choose_log=bool(cfg.get("choose_log", True)),
    )
