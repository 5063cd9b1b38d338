from __future__ import annotations

import argparse
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Union

import numpy as np

from config import (AnalysisConfig, SamplingConfig, analysis_config_from_dict,
                    parse_config, sampling_config_from_dict)
from fitting import FittedCurve, fit_profile
from io_bridge import ThresholdedImage
from logging_config import setup_logging
from mask_render import make_mask
import metrics as M
from profiles import Profile, filter_non_zero, infer_step_radius, log_transform, normalize
from radial_sampler import RadialSampler

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Everything produced by one Sholl run.

    Profiles are keyed by stage; ``fits`` and ``fitted_values`` by the
    profile they were fit to ('Linear', 'Normalized', 'Semi-log', 'Log-log',
    plus ' [P10-P90]' for trimmed regressions). ``skipped`` maps a
    descriptor or fit name to the reason it is absent.
    """

    analysis: AnalysisConfig
    raw: Profile
    sampling: Optional[SamplingConfig] = None
    linear: Optional[Profile] = None
    normalized: Optional[Profile] = None
    semi_log: Optional[Profile] = None
    log_log: Optional[Profile] = None
    fits: Dict[str, FittedCurve] = field(default_factory=dict)
    fitted_values: Dict[str, np.ndarray] = field(default_factory=dict)
    descriptors: Dict[str, float] = field(default_factory=dict)
    skipped: Dict[str, str] = field(default_factory=dict)
    most_informative: Optional[str] = None
    cancelled: bool = False
    mask: Optional[np.ndarray] = None
    timings: Dict[str, float] = field(default_factory=dict)

    def _merge(self, part: dict) -> None:
        self.descriptors.update(part.get('descriptors', {}))
        self.skipped.update(part.get('skipped', {}))


def analyze_profile(profile: Profile,
                    analysis_cfg: Optional[AnalysisConfig] = None,
                    is_3d: bool = False,
                    step_radius: Optional[float] = None) -> AnalysisResult:
    """Transform a (radius, count) profile and compute its descriptors.

    Works on sampled profiles and on imported tables alike. When
    ``step_radius`` is None it is taken from the spacing of the first two radii.
    """
    cfg = analysis_cfg or AnalysisConfig()
    res = AnalysisResult(analysis=cfg, raw=profile)

    linear = filter_non_zero(profile)
    res.linear = linear
    if len(linear) == 0:
        logger.warning("All intersection counts are zero; nothing to analyze")
        res.skipped['Profile'] = 'all_zero'
        return res

    res._merge(M.sampled_descriptors(linear.radii, linear.counts, cfg))

    step = infer_step_radius(profile.radii) if step_radius is None else float(step_radius)
    res.normalized = normalize(linear, cfg.normalizer, is_3d, step)
    res.semi_log = log_transform(res.normalized, on_x=False, on_y=True)
    res.log_log = log_transform(res.semi_log, on_x=True, on_y=False)

    if cfg.fit_curve:
        poly = fit_profile(linear.radii, linear.counts, "polynomial", cfg.poly_degree)
        if poly['valid']:
            res.fits['Linear'] = poly['curve']
            res.fitted_values['Linear'] = poly['fitted']
            res._merge(M.polynomial_descriptors(poly['curve'], linear.radii, linear.counts, cfg))
        else:
            logger.warning("Polynomial fit skipped: %s (%d points)", poly['reason'], poly['n_points'])
            res.skipped['Polynomial fit'] = poly['reason']

    if not np.all(np.isfinite(res.normalized.counts)):
        logger.warning("Normalized profile is not finite; skipping log-profile analysis")
        res.skipped['Normalized profile'] = 'fit_failed'
        return res

    if cfg.fit_curve:
        power = fit_profile(res.normalized.radii, res.normalized.counts, "power")
        if power['valid']:
            res.fits['Normalized'] = power['curve']
            res.fitted_values['Normalized'] = power['fitted']
        else:
            res.skipped['Power fit'] = power['reason']

    if cfg.choose_log:
        dr = M.determination_ratio(res.semi_log.radii, res.semi_log.counts,
                                   res.log_log.radii, res.log_log.counts)
        if dr['valid']:
            res.descriptors['Determination ratio'] = dr['ratio']
            res.most_informative = dr['method']
        else:
            res.skipped['Determination ratio'] = dr['reason']

    for label, prof in ((M.SEMI_LOG, res.semi_log), (M.LOG_LOG, res.log_log)):
        reg = M.regression_descriptors(prof.radii, prof.counts, label)
        res._merge(reg)
        for key, suffix in (('full', ''), ('trimmed', ' [P10-P90]')):
            curve = reg['fits'][key]
            if curve is not None:
                res.fits[label + suffix] = curve
                res.fitted_values[label + suffix] = curve(prof.radii)
    return res


def run_analysis(image: Union[ThresholdedImage, np.ndarray],
                 sampling_cfg: SamplingConfig,
                 analysis_cfg: Optional[AnalysisConfig] = None,
                 progress: Optional[Callable[[int, int], None]] = None,
                 cancel: Optional[Callable[[], bool]] = None,
                 with_mask: bool = False) -> AnalysisResult:
    """Sample an image and analyze the resulting profile.

    A bare array is thresholded with the configured range. A cancelled run
    still analyzes the radii sampled before the cancellation.
    """
    if not isinstance(image, ThresholdedImage):
        image = ThresholdedImage(image, sampling_cfg.lower_threshold, sampling_cfg.upper_threshold)

    t0 = time.time()
    sampler = RadialSampler(sampling_cfg, image, progress=progress, cancel=cancel)
    raw = sampler.sample()
    t_sample = time.time()
    logger.info("Sampled %d/%d radii in %.2fs", sampler.completed, len(raw), t_sample - t0)

    res = analyze_profile(raw, analysis_cfg, is_3d=sampling_cfg.is_3d,
                          step_radius=sampling_cfg.step_radius)
    res.sampling = sampling_cfg
    res.cancelled = sampler.cancelled
    t_analyze = time.time()

    if with_mask and res.linear is not None and len(res.linear):
        if 'Linear' in res.fitted_values:
            radii, values = res.linear.radii, res.fitted_values['Linear']
        else:
            radii, values = raw.radii, raw.counts
        res.mask = make_mask(image, sampling_cfg, radii, values)
    t_done = time.time()

    res.timings = {
        'sample': t_sample - t0,
        'analyze': t_analyze - t_sample,
        'mask': t_done - t_analyze,
        'total': t_done - t0,
    }
    return res


def _log_descriptors(res: AnalysisResult) -> None:
    for name, value in res.descriptors.items():
        logger.info("%-40s %.6g", name, value)
    for name, reason in res.skipped.items():
        logger.info("%-40s skipped (%s)", name, reason)
    if res.most_informative:
        logger.info("Most informative method: %s", res.most_informative)


def main():
    ap = argparse.ArgumentParser(description="Sholl analysis of a segmented 2D/3D image or a tabulated profile.")
    ap.add_argument("--config", required=True)
    ap.add_argument("--verbose", action="store_true", help="Log per-radius counts and fit details.")
    args = ap.parse_args()

    cfg = parse_config(args.config)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, cfg.get("log_file"))
    analysis = analysis_config_from_dict(cfg)

    if cfg.get("profile_path"):
        table = np.loadtxt(str(cfg["profile_path"]), delimiter=cfg.get("delimiter"), ndmin=2)
        if table.shape[1] < 2:
            raise ValueError("profile_path must hold at least two columns (radius, count)")
        rcol = int(cfg.get("radius_column", 0))
        ccol = int(cfg.get("count_column", 1))
        profile = Profile(table[:, rcol], table[:, ccol])
        step = cfg.get("step_radius")
        res = analyze_profile(profile, analysis, is_3d=bool(cfg.get("is_3d", False)),
                              step_radius=None if step is None else float(step))
    elif cfg.get("image_path"):
        data = np.load(str(cfg["image_path"]))
        sampling = sampling_config_from_dict(cfg, data.shape)
        logger.info("Center %s, radii %g..%g step %g (%d samples)",
                    sampling.center, sampling.start_radius, sampling.end_radius,
                    sampling.step_radius, sampling.n_samples)
        res = run_analysis(data, sampling, analysis, with_mask=bool(cfg.get("mask", False)))
        if res.mask is not None:
            logger.info("Mask: %d painted pixels, max value %.4g",
                        int(np.count_nonzero(res.mask)), float(res.mask.max()))
    else:
        raise ValueError("Config must provide image_path or profile_path")

    _log_descriptors(res)


if __name__ == "__main__":
    main()
