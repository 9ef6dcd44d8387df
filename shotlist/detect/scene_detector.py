from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import Protocol

from shotlist.models import DetectionPass

logger = logging.getLogger(__name__)

MIN_THRESHOLD = 0.05
MAX_THRESHOLD = 0.95
FRAME_PREFIX = "frame_"
FRAME_SUFFIX = ".jpg"

_PTS_TIME_PATTERN = re.compile(r"pts_time:([0-9]+\.?[0-9]*)")


class SceneDetector(Protocol):
    """Runs one scene-difference pass and returns its diagnostic text.

    Implementations write one numbered ``frame_XXXX.jpg`` per detected cut into
    ``out_dir`` and embed each cut's timestamp as ``pts_time:<seconds>``.
    """

    def run(self, video_path: Path, threshold: float, out_dir: Path) -> str: ...


class FFmpegSceneDetector:
    """Scene detector backed by ffmpeg's ``select`` + ``showinfo`` filters."""

    def __init__(self, ffmpeg_binary: str = "ffmpeg", jpeg_quality: int = 3) -> None:
        self.ffmpeg_binary = ffmpeg_binary
        self.jpeg_quality = jpeg_quality

    def run(self, video_path: Path, threshold: float, out_dir: Path) -> str:
        frame_pattern = out_dir / f"{FRAME_PREFIX}%04d{FRAME_SUFFIX}"
        command = [
            self.ffmpeg_binary,
            "-hide_banner",
            "-i",
            str(video_path),
            "-vf",
            f"select='gt(scene,{threshold})',showinfo",
            "-vsync",
            "vfr",
            "-q:v",
            str(self.jpeg_quality),
            str(frame_pattern),
        ]
        logger.debug("Running %s", " ".join(command))

        try:
            completed = subprocess.run(
                command,
                check=True,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError as exc:
            raise RuntimeError(
                "ffmpeg executable was not found. Install FFmpeg so ffmpeg is available on PATH."
            ) from exc
        except OSError as exc:
            raise RuntimeError(f"ffmpeg could not be started: {exc}") from exc
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip().splitlines()
            tail = stderr[-1] if stderr else "no stderr output"
            raise RuntimeError(f"ffmpeg scene detection failed (exit {exc.returncode}): {tail}") from exc

        return completed.stderr or ""


def clamp_threshold(threshold: float) -> float:
    return min(MAX_THRESHOLD, max(MIN_THRESHOLD, float(threshold)))


def parse_cut_times(diagnostic_text: str) -> list[float]:
    """Extract deduplicated, ascending cut timestamps from showinfo output."""

    times = {float(match) for match in _PTS_TIME_PATTERN.findall(diagnostic_text or "")}
    return sorted(times)


def list_extracted_frames(out_dir: Path) -> list[Path]:
    return sorted(out_dir.glob(f"{FRAME_PREFIX}*{FRAME_SUFFIX}"))


def clear_extracted_frames(out_dir: Path) -> int:
    removed = 0
    for frame_path in list_extracted_frames(out_dir):
        frame_path.unlink(missing_ok=True)
        removed += 1
    return removed


def detect_scene_cuts(
    detector: SceneDetector,
    video_path: Path,
    out_dir: Path,
    threshold: float,
) -> DetectionPass:
    """Run one detection pass; a failing pass counts as zero candidates."""

    resolved_threshold = clamp_threshold(threshold)
    try:
        diagnostic_text = detector.run(video_path, resolved_threshold, out_dir)
    except (RuntimeError, OSError) as exc:
        logger.warning("Scene detection at threshold %.3f failed: %s", resolved_threshold, exc)
        return DetectionPass(threshold=resolved_threshold)

    cut_times = parse_cut_times(diagnostic_text)
    frame_paths = list_extracted_frames(out_dir)
    logger.debug(
        "Threshold %.3f produced %d cut candidates and %d frames",
        resolved_threshold,
        len(cut_times),
        len(frame_paths),
    )
    return DetectionPass(threshold=resolved_threshold, cut_times=cut_times, frame_paths=frame_paths)
