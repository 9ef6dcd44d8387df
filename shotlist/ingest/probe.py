from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_SHARED_LIBRARY_MARKER = "error while loading shared libraries"


def probe_duration(video_path: str | Path) -> float | None:
    """Return the container duration in seconds, or None when probing fails.

    Failures are logged and absorbed; the caller treats an unknown duration as
    a single shot of unknown length.
    """

    source_path = Path(video_path).expanduser().resolve()
    try:
        payload = _run_ffprobe(source_path)
    except RuntimeError as exc:
        logger.warning("Duration probe failed for %s: %s", source_path, exc)
        return None

    format_entry = payload.get("format") if isinstance(payload, dict) else None
    if not isinstance(format_entry, dict):
        logger.warning("ffprobe returned no format section for %s", source_path)
        return None

    duration = _to_float(format_entry.get("duration"))
    if duration is None or duration <= 0:
        logger.warning("ffprobe reported no usable duration for %s", source_path)
        return None
    return duration


def _run_ffprobe(video_path: Path) -> dict[str, Any]:
    command = [
        "ffprobe",
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_entries",
        "format=duration",
        str(video_path),
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
            "ffprobe executable was not found. Install FFmpeg so ffprobe is available on PATH."
        ) from exc
    except OSError as exc:
        raise RuntimeError(f"ffprobe could not be started: {exc}") from exc
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        if _SHARED_LIBRARY_MARKER in stderr:
            raise RuntimeError(
                "ffprobe is installed but failed to start because required shared libraries are missing. "
                f"ffprobe stderr: {stderr}"
            ) from exc
        details = f" ffprobe stderr: {stderr}" if stderr else ""
        raise RuntimeError(
            f"ffprobe failed while probing media file: {video_path}.{details}"
        ) from exc

    try:
        return json.loads(completed.stdout or "{}")
    except json.JSONDecodeError as exc:
        raise RuntimeError("ffprobe returned invalid JSON output.") from exc


def _to_float(raw_value: Any) -> float | None:
    if raw_value in (None, "N/A", ""):
        return None
    try:
        return float(raw_value)
    except (TypeError, ValueError):
        return None
