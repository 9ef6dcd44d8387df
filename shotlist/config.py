from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = Path("configs/default.yaml")
ENV_PREFIX = "SHOTLIST_"


class DetectionSettings(BaseModel):
    default_threshold: float = 0.35
    fallback_thresholds: list[float] = Field(default_factory=lambda: [0.20, 0.15, 0.12, 0.10])
    min_cuts: int = 8
    max_attempts: int = 6


class ShotSettings(BaseModel):
    max_shots: int = 220
    boundary_epsilon: float = 0.05
    fps: int = 30


class KeyframeSettings(BaseModel):
    width: int = 360
    jpeg_quality: int = 6


class OCRSettings(BaseModel):
    language: str = "eng"
    tesseract_config: str = "--psm 6"
    min_line_length: int = 3
    max_lines_per_frame: int = 8
    max_lines_per_shot: int = 6
    upscale_min_width: int = 720


class BucketSettings(BaseModel):
    max_per_bucket: int = 50
    title_markers: list[str] = Field(default_factory=lambda: ["PRESENTS", "A FILM"])
    title_min_length: int = 45
    region_codes: list[str] = Field(
        default_factory=lambda: ["AZ", "CA", "NY", "TX", "FL", "WA", "OR", "NV", "UT", "CO", "IL", "MA", "NJ", "PA"]
    )
    lower_third_max_words: int = 4


class PipelineSettings(BaseModel):
    scratch_root: Path | None = None
    output_dir: Path = Path("data/outputs")


class LoggingSettings(BaseModel):
    level: str = "INFO"


class Settings(BaseModel):
    detection: DetectionSettings = Field(default_factory=DetectionSettings)
    shots: ShotSettings = Field(default_factory=ShotSettings)
    keyframes: KeyframeSettings = Field(default_factory=KeyframeSettings)
    ocr: OCRSettings = Field(default_factory=OCRSettings)
    buckets: BucketSettings = Field(default_factory=BucketSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load typed settings from YAML with environment-variable overrides."""

    resolved_path = Path(
        config_path
        or os.getenv(f"{ENV_PREFIX}CONFIG")
        or DEFAULT_CONFIG_PATH
    )
    raw_config = yaml.safe_load(resolved_path.read_text(encoding="utf-8")) or {}
    data = Settings.model_validate(raw_config).model_dump(mode="python")

    for key, raw_value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        suffix = key[len(ENV_PREFIX) :]
        if suffix == "CONFIG":
            continue

        path = [part.lower() for part in suffix.split("__")]
        _apply_override(data, path, raw_value)

    return Settings.model_validate(data)


def _apply_override(data: dict[str, Any], path: list[str], raw_value: str) -> None:
    current: Any = data
    for segment in path[:-1]:
        if not isinstance(current, dict) or segment not in current:
            return
        current = current[segment]

    if not isinstance(current, dict):
        return

    final_key = path[-1]
    if final_key not in current:
        return

    current[final_key] = _coerce_value(raw_value, current[final_key])


def _coerce_value(raw_value: str, existing_value: Any) -> Any:
    if isinstance(existing_value, bool):
        return raw_value.lower() in {"1", "true", "yes", "on"}
    if isinstance(existing_value, int) and not isinstance(existing_value, bool):
        return int(raw_value)
    if isinstance(existing_value, float):
        return float(raw_value)
    if isinstance(existing_value, list | dict):
        return json.loads(raw_value)
    if isinstance(existing_value, Path) or existing_value is None:
        return Path(raw_value) if raw_value else None
    return raw_value
