from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from shotlist.detect.scene_detector import (
    SceneDetector,
    clamp_threshold,
    clear_extracted_frames,
    detect_scene_cuts,
)
from shotlist.models import DetectionPass

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_THRESHOLDS = (0.20, 0.15, 0.12, 0.10)
DEFAULT_MIN_CUTS = 8
DEFAULT_MAX_ATTEMPTS = 6
RELAXATION_FACTOR = 0.75


def build_threshold_ladder(
    threshold: float,
    fallback_thresholds: Sequence[float] = DEFAULT_FALLBACK_THRESHOLDS,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> list[float]:
    """Ordered, deduplicated thresholds to try, most preferred first."""

    requested = clamp_threshold(threshold)
    candidates = [requested, requested * RELAXATION_FACTOR, *fallback_thresholds]

    ladder: list[float] = []
    for candidate in candidates:
        value = round(clamp_threshold(candidate), 4)
        if value not in ladder:
            ladder.append(value)

    return ladder[: max(max_attempts, 1)]


def has_enough_cuts(detection: DetectionPass, min_cuts: int = DEFAULT_MIN_CUTS) -> bool:
    return detection.cut_count >= min_cuts


def detect_cuts_adaptive(
    detector: SceneDetector,
    video_path: Path,
    out_dir: Path,
    threshold: float,
    *,
    fallback_thresholds: Sequence[float] = DEFAULT_FALLBACK_THRESHOLDS,
    min_cuts: int = DEFAULT_MIN_CUTS,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> DetectionPass:
    """Walk the threshold ladder until a pass yields enough cuts.

    Returns the first pass with at least ``min_cuts`` candidates. When no pass
    qualifies, returns the pass with the most candidates; ties keep the earlier
    ladder entry. The returned pass's ``threshold`` is the one actually used.
    """

    ladder = build_threshold_ladder(threshold, fallback_thresholds, max_attempts)
    best = DetectionPass(threshold=ladder[0])
    detection = best

    for attempt, candidate in enumerate(ladder, start=1):
        clear_extracted_frames(out_dir)
        detection = detect_scene_cuts(detector, video_path, out_dir, candidate)
        logger.info(
            "Scene detection attempt %d/%d at threshold %.3f found %d cuts",
            attempt,
            len(ladder),
            candidate,
            detection.cut_count,
        )

        if attempt == 1 or detection.cut_count > best.cut_count:
            best = detection

        if has_enough_cuts(detection, min_cuts):
            return detection

    if best is not detection:
        # frames of earlier passes were cleared before the later ones ran
        best = DetectionPass(threshold=best.threshold, cut_times=best.cut_times)

    logger.info(
        "No threshold reached %d cuts; using best threshold %.3f with %d cuts",
        min_cuts,
        best.threshold,
        best.cut_count,
    )
    return best
