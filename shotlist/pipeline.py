from __future__ import annotations

import logging
import math
import shutil
import tempfile
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from functools import partial
from pathlib import Path

from shotlist.config import Settings
from shotlist.detect.adaptive import detect_cuts_adaptive
from shotlist.detect.scene_detector import FFmpegSceneDetector, SceneDetector, clamp_threshold
from shotlist.errors import InputVideoError, OCREngineUnavailable, ScratchStorageError
from shotlist.ingest.probe import probe_duration
from shotlist.models import BUCKET_NAMES, Shot, ShotlistResult, VideoAsset
from shotlist.shots.intervals import build_shot_intervals
from shotlist.shots.keyframes import FrameExtractor, extract_frame, extract_keyframes, to_data_url
from shotlist.text.buckets import BucketRules, bucket_text, clean_line, parse_bucket_names
from shotlist.text.ocr import OCREngineFactory, open_ocr_engine, recognize_keyframes
from shotlist.timecode import seconds_to_timecode

logger = logging.getLogger(__name__)

SCRATCH_PREFIX = "shotlist-"


@contextmanager
def scratch_directory(root: str | Path | None = None) -> Iterator[Path]:
    """Create a uniquely named scratch directory and always remove it."""

    try:
        if root is not None:
            Path(root).mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=SCRATCH_PREFIX, dir=str(root) if root is not None else None))
    except OSError as exc:
        raise ScratchStorageError(f"Unable to create scratch directory: {exc}") from exc

    logger.debug("Created scratch directory %s", path)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        logger.debug("Removed scratch directory %s", path)


def parse_threshold(raw_value: str | float | None, default: float = 0.35) -> float:
    """Clamp a caller-supplied sensitivity, falling back to ``default`` when unparsable."""

    try:
        value = float(raw_value) if raw_value not in (None, "") else default
    except (TypeError, ValueError):
        value = default
    if math.isnan(value):
        value = default
    return clamp_threshold(value)


def build_shotlist(
    video_path: str | Path,
    *,
    threshold: float | None = None,
    settings: Settings | None = None,
    prober: Callable[[Path], float | None] = probe_duration,
    detector: SceneDetector | None = None,
    frame_extractor: FrameExtractor = extract_frame,
    ocr_engine_factory: OCREngineFactory | None = None,
    include_stills: bool = True,
) -> ShotlistResult:
    """Run the full shot breakdown for one materialized video file."""

    settings = settings or Settings()
    source_path = Path(video_path).expanduser().resolve()
    if not source_path.is_file():
        raise InputVideoError(f"Video file not found: {source_path}")

    requested_threshold = parse_threshold(threshold, default=settings.detection.default_threshold)
    detector = detector or FFmpegSceneDetector()
    ocr_engine_factory = ocr_engine_factory or partial(open_ocr_engine, settings.ocr)
    rules = BucketRules.from_settings(settings.buckets)
    fps = settings.shots.fps

    with scratch_directory(settings.pipeline.scratch_root) as scratch_dir:
        asset = VideoAsset(path=source_path, duration_seconds=prober(source_path))
        duration = asset.duration_seconds or 0.0
        if asset.duration_seconds is None:
            logger.warning("Duration unknown for %s; treating video as a single shot", source_path)

        detection = detect_cuts_adaptive(
            detector,
            source_path,
            scratch_dir,
            requested_threshold,
            fallback_thresholds=settings.detection.fallback_thresholds,
            min_cuts=settings.detection.min_cuts,
            max_attempts=settings.detection.max_attempts,
        )

        intervals = build_shot_intervals(
            duration,
            detection.cut_times,
            max_shots=settings.shots.max_shots,
            epsilon=settings.shots.boundary_epsilon,
        )
        keyframes = extract_keyframes(
            source_path,
            intervals,
            scratch_dir,
            frame_extractor,
            width=settings.keyframes.width,
            quality=settings.keyframes.jpeg_quality,
        )

        try:
            with ocr_engine_factory() as engine:
                ocr_lines = recognize_keyframes(
                    engine,
                    keyframes,
                    min_length=settings.ocr.min_line_length,
                    max_lines=settings.ocr.max_lines_per_frame,
                )
        except OCREngineUnavailable as exc:
            logger.warning("OCR unavailable; shots will carry no text: %s", exc)
            ocr_lines = [[] for _ in keyframes]

        shots: list[Shot] = []
        pooled_text: list[str] = []
        for interval, keyframe, lines in zip(intervals, keyframes, ocr_lines):
            text = lines[: settings.ocr.max_lines_per_shot]
            pooled_text.extend(text)
            shots.append(
                Shot(
                    index=interval.index,
                    tc_in=seconds_to_timecode(interval.start_seconds, fps),
                    tc_out=seconds_to_timecode(interval.end_seconds, fps),
                    start_seconds=interval.start_seconds,
                    end_seconds=interval.end_seconds,
                    text=text,
                    still=to_data_url(keyframe.image_bytes) if include_stills else None,
                )
            )

    result = ShotlistResult(
        duration_seconds=duration,
        used_threshold=detection.threshold,
        shots=shots,
        text_buckets=bucket_text(pooled_text, rules),
    )
    logger.info(
        "Built shotlist for %s: %d shots, threshold %.3f, %d text lines",
        source_path.name,
        len(shots),
        detection.threshold,
        len(pooled_text),
    )
    return result


def filter_shots(
    result: ShotlistResult,
    *,
    only_with_text: bool = False,
    include_buckets: str | Iterable[str] | None = None,
) -> ShotlistResult:
    """Keep shots whose text landed in one of the allowed whole-video buckets.

    Applied only after the full result is assembled; ``text_buckets`` is left
    untouched so it still describes the whole video.
    """

    if not only_with_text:
        return result

    allowed = parse_bucket_names(include_buckets) or list(BUCKET_NAMES)
    members = {line for name in allowed for line in result.text_buckets.get(name)}
    kept = [shot for shot in result.shots if any(clean_line(line) in members for line in shot.text)]
    return replace(result, shots=kept)
