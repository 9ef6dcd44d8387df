from __future__ import annotations

import math
import re

DEFAULT_FPS = 30

_TIMECODE_PATTERN = re.compile(r"^(\d{2,}):(\d{2}):(\d{2}):(\d{2})$")


def seconds_to_timecode(seconds: float, fps: int = DEFAULT_FPS) -> str:
    """Render an offset in seconds as HH:MM:SS:FF at a fixed frame rate."""

    if fps <= 0:
        raise ValueError(f"fps must be positive, got {fps}")

    # round half up so 0.5 frame boundaries do not flip with banker's rounding
    total_frames = int(math.floor(max(0.0, float(seconds)) * fps + 0.5))
    frames = total_frames % fps
    total_seconds = total_frames // fps
    secs = total_seconds % 60
    minutes = (total_seconds // 60) % 60
    hours = total_seconds // 3600
    return f"{hours:02d}:{minutes:02d}:{secs:02d}:{frames:02d}"


def timecode_to_seconds(timecode: str, fps: int = DEFAULT_FPS) -> float:
    """Parse an HH:MM:SS:FF timecode back into seconds."""

    if fps <= 0:
        raise ValueError(f"fps must be positive, got {fps}")

    match = _TIMECODE_PATTERN.match(timecode.strip())
    if match is None:
        raise ValueError(f"Invalid timecode: {timecode!r}")

    hours, minutes, secs, frames = (int(part) for part in match.groups())
    if minutes >= 60 or secs >= 60 or frames >= fps:
        raise ValueError(f"Timecode field out of range: {timecode!r}")

    return hours * 3600 + minutes * 60 + secs + frames / fps
