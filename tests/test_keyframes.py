from __future__ import annotations

import base64
import os
import subprocess
from pathlib import Path

import pytest

from shotlist.models import ShotInterval
from shotlist.shots.keyframes import extract_frame, extract_keyframes, shot_midpoint, to_data_url


def test_shot_midpoint_uses_half_duration_with_minimum_offset() -> None:
    assert shot_midpoint(ShotInterval(index=1, start_seconds=10.0, end_seconds=30.0)) == 20.0
    assert shot_midpoint(ShotInterval(index=1, start_seconds=0.0, end_seconds=0.0)) == pytest.approx(0.01)


def test_extract_keyframes_isolates_failures(tmp_path: Path) -> None:
    intervals = [
        ShotInterval(index=1, start_seconds=0.0, end_seconds=10.0),
        ShotInterval(index=2, start_seconds=10.0, end_seconds=30.0),
        ShotInterval(index=3, start_seconds=30.0, end_seconds=45.0),
    ]
    requested: list[float] = []

    def _extractor(video_path: Path, at_seconds: float, out_path: Path, *, width: int, quality: int) -> None:
        requested.append(at_seconds)
        if at_seconds == 20.0:
            raise RuntimeError("ffmpeg failed to extract frame")
        out_path.write_bytes(f"jpeg@{at_seconds}".encode())

    keyframes = extract_keyframes(tmp_path / "video.mp4", intervals, tmp_path, _extractor)

    assert requested == [5.0, 20.0, 37.5]
    assert [k.shot_index for k in keyframes] == [1, 2, 3]
    assert keyframes[0].image_bytes == b"jpeg@5.0"
    assert keyframes[0].image_path == tmp_path / "shot_0001.jpg"
    assert keyframes[1].image_bytes is None
    assert keyframes[1].image_path is None
    assert keyframes[2].image_bytes == b"jpeg@37.5"


def test_extract_frame_builds_scaled_seek_command(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, list[str]] = {}
    out_path = tmp_path / "stills" / "shot_0001.jpg"

    def _fake_run(command: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        captured["command"] = command
        Path(command[-1]).write_bytes(b"\xff\xd8jpeg")
        return subprocess.CompletedProcess(command, 0, stdout="", stderr="")

    monkeypatch.setattr(subprocess, "run", _fake_run)

    extract_frame(tmp_path / "video.mp4", 12.5, out_path, width=360, quality=6)

    command = captured["command"]
    assert command[command.index("-ss") + 1] == "12.500"
    assert command[command.index("-vf") + 1] == "scale=360:-2"
    assert command[command.index("-frames:v") + 1] == "1"
    assert out_path.exists()


def test_extract_frame_raises_when_no_frame_written(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        subprocess,
        "run",
        lambda command, **_: subprocess.CompletedProcess(command, 0, stdout="", stderr=""),
    )

    with pytest.raises(RuntimeError, match="produced no frame"):
        extract_frame(tmp_path / "video.mp4", 99.0, tmp_path / "shot_0001.jpg")


def test_extract_frame_wraps_missing_binary(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _raise_missing(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
        raise FileNotFoundError("ffmpeg")

    monkeypatch.setattr(subprocess, "run", _raise_missing)

    with pytest.raises(RuntimeError, match="ffmpeg executable was not found"):
        extract_frame(tmp_path / "video.mp4", 1.0, tmp_path / "shot_0001.jpg")


def test_to_data_url_encodes_jpeg_bytes() -> None:
    url = to_data_url(b"\xff\xd8\xff")

    assert url == "data:image/jpeg;base64," + base64.b64encode(b"\xff\xd8\xff").decode("ascii")
    assert to_data_url(None) is None
    assert to_data_url(b"") is None


def test_extract_frame_reports_failure_with_non_utf8_stderr(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    executable = bin_dir / "ffmpeg"
    executable.write_text("#!/bin/sh\nprintf 'stream \\377\\376 corrupt\\n' >&2\nexit 1\n", encoding="utf-8")
    executable.chmod(0o755)
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    intervals = [ShotInterval(index=1, start_seconds=0.0, end_seconds=4.0)]

    with pytest.raises(RuntimeError, match="failed to extract frame at 2.000s"):
        extract_frame(tmp_path / "video.mp4", 2.0, tmp_path / "stills" / "shot_0001.jpg")

    keyframes = extract_keyframes(tmp_path / "video.mp4", intervals, tmp_path / "stills")
    assert keyframes[0].image_bytes is None


def test_extract_frame_wraps_permission_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _raise_denied(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
        raise PermissionError(13, "Permission denied", "ffmpeg")

    monkeypatch.setattr(subprocess, "run", _raise_denied)

    with pytest.raises(RuntimeError, match="ffmpeg could not be started"):
        extract_frame(tmp_path / "video.mp4", 1.0, tmp_path / "shot_0001.jpg")
