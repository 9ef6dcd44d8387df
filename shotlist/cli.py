from __future__ import annotations

import json
import logging
from pathlib import Path
from time import perf_counter
from typing import Callable, TypeVar

import typer

from shotlist.config import Settings, load_settings
from shotlist.detect.adaptive import detect_cuts_adaptive
from shotlist.detect.scene_detector import FFmpegSceneDetector
from shotlist.exporter import export_shotlist
from shotlist.ingest.probe import probe_duration
from shotlist.logging_config import configure_logging
from shotlist.pipeline import build_shotlist, filter_shots, parse_threshold, scratch_directory
from shotlist.text.buckets import parse_bucket_names

app = typer.Typer(help="Video shotlist extraction: cuts, keyframes and on-screen text.")
config_app = typer.Typer(help="Configuration commands.")
ingest_app = typer.Typer(help="Ingest commands.")
detect_app = typer.Typer(help="Scene detection commands.")

app.add_typer(config_app, name="config")
app.add_typer(ingest_app, name="ingest")
app.add_typer(detect_app, name="detect")

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONFIG_OPTION = typer.Option(
    Path("configs/default.yaml"),
    "--config",
    "-c",
    envvar="SHOTLIST_CONFIG",
    help="Path to YAML configuration file.",
)


def _run_with_progress(step_index: int, total_steps: int, label: str, work: Callable[[], T]) -> T:
    typer.echo(f"[{step_index}/{total_steps}] {label}...", err=True)
    started_at = perf_counter()
    try:
        result = work()
    except Exception:
        elapsed = perf_counter() - started_at
        typer.echo(f"[{step_index}/{total_steps}] {label} failed after {elapsed:.1f}s", err=True)
        raise
    elapsed = perf_counter() - started_at
    typer.echo(f"[{step_index}/{total_steps}] {label} done in {elapsed:.1f}s", err=True)
    return result


def _bootstrap(config_path: Path) -> Settings:
    settings = load_settings(config_path)
    configure_logging(settings.logging)
    logger.debug("Loaded runtime settings from %s", config_path)
    return settings


@config_app.command("show")
def show_config(config_path: Path = CONFIG_OPTION) -> None:
    """Print resolved runtime configuration."""

    settings = _bootstrap(config_path)
    typer.echo(json.dumps(settings.model_dump(mode="json"), indent=2))


@ingest_app.command("probe")
def probe(video_path: str, config_path: Path = CONFIG_OPTION) -> None:
    """Probe the duration of a video and print it as JSON."""

    _bootstrap(config_path)
    duration = probe_duration(video_path)
    typer.echo(
        json.dumps(
            {
                "status": "ok" if duration is not None else "unknown_duration",
                "video_path": str(Path(video_path).expanduser().resolve()),
                "duration_seconds": duration,
            },
            indent=2,
        )
    )


@detect_app.command("cuts")
def detect_cuts(
    video_path: str,
    threshold: float | None = typer.Option(None, help="Scene threshold 0.05-0.95 (lower detects more cuts)."),
    config_path: Path = CONFIG_OPTION,
) -> None:
    """Run adaptive scene-cut detection only and print the cut timestamps."""

    settings = _bootstrap(config_path)
    resolved_video_path = Path(video_path).expanduser().resolve()
    if not resolved_video_path.is_file():
        typer.echo(f"Error: Video file not found: {resolved_video_path}", err=True)
        raise typer.Exit(code=1)

    requested = parse_threshold(threshold, default=settings.detection.default_threshold)
    with scratch_directory(settings.pipeline.scratch_root) as scratch_dir:
        detection = detect_cuts_adaptive(
            FFmpegSceneDetector(),
            resolved_video_path,
            scratch_dir,
            requested,
            fallback_thresholds=settings.detection.fallback_thresholds,
            min_cuts=settings.detection.min_cuts,
            max_attempts=settings.detection.max_attempts,
        )

    typer.echo(
        json.dumps(
            {
                "requested_threshold": requested,
                "used_threshold": detection.threshold,
                "cut_count": detection.cut_count,
                "cut_times": detection.cut_times,
            },
            indent=2,
        )
    )


@app.command("run")
def run_pipeline(
    video_path: str,
    threshold: float | None = typer.Option(None, help="Scene threshold 0.05-0.95 (lower detects more cuts)."),
    only_with_text: bool = typer.Option(False, help="Keep only shots whose text falls into the included buckets."),
    include_buckets: str | None = typer.Option(
        None,
        help="Comma-separated buckets for --only-with-text: titles, lowerThirds, locations, other.",
    ),
    stills: bool = typer.Option(True, help="Embed a base64 JPEG still per shot."),
    output_dir: Path | None = typer.Option(None, "--output-dir", "-o", help="Directory for JSON/CSV outputs."),
    basename: str | None = typer.Option(None, help="Base filename for exported artifacts. Defaults to the video stem."),
    config_path: Path = CONFIG_OPTION,
) -> None:
    """Build the shotlist for a video file and export it."""

    settings = _bootstrap(config_path)
    resolved_video_path = Path(video_path).expanduser().resolve()
    total_steps = 3

    try:
        buckets = parse_bucket_names(include_buckets)
        result = _run_with_progress(
            1,
            total_steps,
            "Build shotlist",
            lambda: build_shotlist(
                resolved_video_path,
                threshold=threshold,
                settings=settings,
                include_stills=stills,
            ),
        )
        filtered = _run_with_progress(
            2,
            total_steps,
            "Filter shots",
            lambda: filter_shots(result, only_with_text=only_with_text, include_buckets=buckets),
        )
        exported = _run_with_progress(
            3,
            total_steps,
            "Export outputs",
            lambda: export_shotlist(
                filtered,
                output_dir or settings.pipeline.output_dir,
                basename=basename or f"{resolved_video_path.stem}_shotlist",
            ),
        )
    except (RuntimeError, ValueError) as exc:
        logger.error("Pipeline failed: %s", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(
        json.dumps(
            {
                "status": "ok",
                "video_path": str(resolved_video_path),
                "duration_seconds": filtered.duration_seconds,
                "used_threshold": filtered.used_threshold,
                "shot_count": len(result.shots),
                "kept_shot_count": len(filtered.shots),
                "text_bucket_sizes": {key: len(lines) for key, lines in filtered.text_buckets.to_dict().items()},
                "outputs": {key: str(path) for key, path in exported.items()},
            },
            indent=2,
        )
    )


if __name__ == "__main__":
    app()
