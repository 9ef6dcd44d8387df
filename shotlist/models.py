from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

BUCKET_NAMES = ("titles", "lower_thirds", "locations", "other")
BUCKET_CONTRACT_KEYS = {
    "titles": "titles",
    "lower_thirds": "lowerThirds",
    "locations": "locations",
    "other": "other",
}


@dataclass(slots=True)
class VideoAsset:
    """A materialized input video and its probed duration."""

    path: Path
    duration_seconds: float | None = None


@dataclass(slots=True)
class DetectionPass:
    """Outcome of one scene-detection pass at a single threshold."""

    threshold: float
    cut_times: list[float] = field(default_factory=list)
    frame_paths: list[Path] = field(default_factory=list)

    @property
    def cut_count(self) -> int:
        return len(self.cut_times)


@dataclass(slots=True)
class ShotInterval:
    index: int
    start_seconds: float
    end_seconds: float

    @property
    def duration_seconds(self) -> float:
        return self.end_seconds - self.start_seconds


@dataclass(slots=True)
class Keyframe:
    """Representative still for one shot; empty when extraction failed."""

    shot_index: int
    image_bytes: bytes | None = None
    image_path: Path | None = None


@dataclass(slots=True)
class TextLine:
    raw: str
    cleaned: str
    bucket: str


@dataclass(slots=True)
class TextBuckets:
    titles: list[str] = field(default_factory=list)
    lower_thirds: list[str] = field(default_factory=list)
    locations: list[str] = field(default_factory=list)
    other: list[str] = field(default_factory=list)

    def get(self, bucket: str) -> list[str]:
        return getattr(self, bucket)

    def to_dict(self) -> dict[str, list[str]]:
        return {BUCKET_CONTRACT_KEYS[name]: list(self.get(name)) for name in BUCKET_NAMES}


@dataclass(slots=True)
class Shot:
    index: int
    tc_in: str
    tc_out: str
    start_seconds: float
    end_seconds: float
    text: list[str] = field(default_factory=list)
    still: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "index": self.index,
            "tcIn": self.tc_in,
            "tcOut": self.tc_out,
            "text": list(self.text),
        }
        if self.still is not None:
            payload["still"] = self.still
        return payload


@dataclass(slots=True)
class ShotlistResult:
    """Final shot breakdown handed to downstream tooling."""

    duration_seconds: float
    used_threshold: float
    shots: list[Shot]
    text_buckets: TextBuckets

    def to_dict(self) -> dict[str, Any]:
        return {
            "durationSeconds": self.duration_seconds,
            "usedThreshold": self.used_threshold,
            "shots": [shot.to_dict() for shot in self.shots],
            "textBuckets": self.text_buckets.to_dict(),
        }
