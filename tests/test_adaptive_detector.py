from __future__ import annotations

from pathlib import Path

import pytest

from shotlist.detect.adaptive import build_threshold_ladder, detect_cuts_adaptive, has_enough_cuts
from shotlist.models import DetectionPass


class _OracleDetector:
    """Fake detector whose cut count per threshold comes from a lookup table."""

    def __init__(self, counts: dict[float, int]) -> None:
        self.counts = counts
        self.calls: list[float] = []
        self.leftover_frames: list[list[str]] = []

    def run(self, video_path: Path, threshold: float, out_dir: Path) -> str:
        self.calls.append(threshold)
        self.leftover_frames.append(sorted(p.name for p in out_dir.glob("frame_*.jpg")))
        count = self.counts.get(threshold, 0)
        lines = []
        for idx in range(count):
            (out_dir / f"frame_{idx + 1:04d}.jpg").write_bytes(b"jpg")
            lines.append(f"[Parsed_showinfo_1 @ 0x1] n:{idx} pts:{idx} pts_time:{idx + 1}.5")
        return "\n".join(lines)


def test_build_threshold_ladder_orders_clamps_and_dedupes() -> None:
    assert build_threshold_ladder(0.35) == [0.35, 0.2625, 0.2, 0.15, 0.12, 0.1]
    assert build_threshold_ladder(0.2) == [0.2, 0.15, 0.12, 0.1]
    assert build_threshold_ladder(0.01) == [0.05, 0.2, 0.15, 0.12, 0.1]
    assert build_threshold_ladder(2.0) == [0.95, 0.7125, 0.2, 0.15, 0.12, 0.1]


def test_build_threshold_ladder_respects_attempt_bound() -> None:
    ladder = build_threshold_ladder(0.5, fallback_thresholds=[0.3, 0.25, 0.2, 0.15, 0.1, 0.05], max_attempts=6)

    assert len(ladder) == 6
    assert ladder[:2] == [0.5, 0.375]


def test_has_enough_cuts_predicate() -> None:
    assert has_enough_cuts(DetectionPass(threshold=0.3, cut_times=[float(i) for i in range(8)]))
    assert not has_enough_cuts(DetectionPass(threshold=0.3, cut_times=[float(i) for i in range(7)]))


def test_adaptive_detector_stops_at_first_sufficient_threshold(tmp_path: Path) -> None:
    detector = _OracleDetector({0.35: 2, 0.2625: 5, 0.2: 9, 0.15: 12})

    detection = detect_cuts_adaptive(detector, tmp_path / "video.mp4", tmp_path, 0.35)

    assert detector.calls == [0.35, 0.2625, 0.2]
    assert detection.threshold == 0.2
    assert detection.cut_count == 9


def test_adaptive_detector_accepts_requested_threshold_when_enough(tmp_path: Path) -> None:
    detector = _OracleDetector({0.35: 8})

    detection = detect_cuts_adaptive(detector, tmp_path / "video.mp4", tmp_path, 0.35)

    assert detector.calls == [0.35]
    assert detection.threshold == 0.35


def test_adaptive_detector_falls_back_to_maximum_count(tmp_path: Path) -> None:
    detector = _OracleDetector({0.35: 1, 0.2625: 3, 0.2: 6, 0.15: 4, 0.12: 6, 0.1: 2})

    detection = detect_cuts_adaptive(detector, tmp_path / "video.mp4", tmp_path, 0.35)

    assert detector.calls == [0.35, 0.2625, 0.2, 0.15, 0.12, 0.1]
    assert detection.threshold == 0.2
    assert detection.cut_count == 6
    assert detection.frame_paths == []


def test_adaptive_detector_reports_first_threshold_when_nothing_found(tmp_path: Path) -> None:
    detector = _OracleDetector({})

    detection = detect_cuts_adaptive(detector, tmp_path / "video.mp4", tmp_path, 0.4)

    assert detection.threshold == 0.4
    assert detection.cut_times == []


def test_adaptive_detector_clears_frames_between_passes(tmp_path: Path) -> None:
    (tmp_path / "frame_0099.jpg").write_bytes(b"stale")
    detector = _OracleDetector({0.35: 3, 0.2625: 1})

    detect_cuts_adaptive(detector, tmp_path / "video.mp4", tmp_path, 0.35)

    assert all(frames == [] for frames in detector.leftover_frames)


@pytest.mark.parametrize(
    ("counts", "expected_threshold"),
    [
        ({0.35: 10, 0.2625: 20}, 0.35),
        ({0.2625: 8, 0.2: 30}, 0.2625),
        ({0.12: 8, 0.1: 8}, 0.12),
        ({0.2: 7, 0.1: 7}, 0.2),
    ],
)
def test_adaptive_detector_oracle_selection(
    tmp_path: Path, counts: dict[float, int], expected_threshold: float
) -> None:
    detection = detect_cuts_adaptive(_OracleDetector(counts), tmp_path / "video.mp4", tmp_path, 0.35)

    assert detection.threshold == expected_threshold
