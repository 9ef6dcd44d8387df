from __future__ import annotations

import base64
import logging
import subprocess
from pathlib import Path
from typing import Protocol

from shotlist.models import Keyframe, ShotInterval

logger = logging.getLogger(__name__)

DEFAULT_STILL_WIDTH = 360
DEFAULT_JPEG_QUALITY = 6
MIN_MIDPOINT_OFFSET = 0.01


class FrameExtractor(Protocol):
    def __call__(
        self,
        video_path: Path,
        at_seconds: float,
        out_path: Path,
        *,
        width: int = DEFAULT_STILL_WIDTH,
        quality: int = DEFAULT_JPEG_QUALITY,
    ) -> None: ...


def shot_midpoint(interval: ShotInterval) -> float:
    return interval.start_seconds + max(MIN_MIDPOINT_OFFSET, interval.duration_seconds / 2)


def extract_frame(
    video_path: Path,
    at_seconds: float,
    out_path: Path,
    *,
    width: int = DEFAULT_STILL_WIDTH,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> None:
    """Decode a single downscaled JPEG still at ``at_seconds``."""

    out_path.parent.mkdir(parents=True, exist_ok=True)
    command = [
        "ffmpeg",
        "-hide_banner",
        "-v",
        "error",
        "-y",
        "-ss",
        f"{max(0.0, at_seconds):.3f}",
        "-i",
        str(video_path),
        "-frames:v",
        "1",
        "-vf",
        f"scale={width}:-2",
        "-q:v",
        str(quality),
        str(out_path),
    ]
    logger.debug("Running %s", " ".join(command))

    try:
        subprocess.run(
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
        stderr = (exc.stderr or "").strip()
        details = f" ffmpeg stderr: {stderr}" if stderr else ""
        raise RuntimeError(f"ffmpeg failed to extract frame at {at_seconds:.3f}s.{details}") from exc

    # seeking past the last decodable frame exits cleanly without output
    if not out_path.exists() or out_path.stat().st_size == 0:
        raise RuntimeError(f"ffmpeg produced no frame at {at_seconds:.3f}s")


def extract_keyframes(
    video_path: Path,
    intervals: list[ShotInterval],
    out_dir: Path,
    extractor: FrameExtractor = extract_frame,
    *,
    width: int = DEFAULT_STILL_WIDTH,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> list[Keyframe]:
    """Extract one midpoint still per interval, in shot order.

    A failing shot gets an empty keyframe; the remaining shots still run.
    """

    keyframes: list[Keyframe] = []
    for interval in intervals:
        out_path = out_dir / f"shot_{interval.index:04d}.jpg"
        at_seconds = shot_midpoint(interval)
        try:
            extractor(video_path, at_seconds, out_path, width=width, quality=quality)
            image_bytes = out_path.read_bytes()
        except (RuntimeError, OSError) as exc:
            logger.warning("Keyframe extraction failed for shot %d: %s", interval.index, exc)
            keyframes.append(Keyframe(shot_index=interval.index))
            continue

        keyframes.append(Keyframe(shot_index=interval.index, image_bytes=image_bytes, image_path=out_path))

    failed = sum(1 for keyframe in keyframes if keyframe.image_bytes is None)
    if failed:
        logger.info("Extracted %d/%d keyframes", len(keyframes) - failed, len(keyframes))
    return keyframes


def to_data_url(image_bytes: bytes | None, mime_type: str = "image/jpeg") -> str | None:
    if not image_bytes:
        return None
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"
