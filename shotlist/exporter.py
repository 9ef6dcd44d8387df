from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

from shotlist.models import BUCKET_CONTRACT_KEYS, BUCKET_NAMES, Shot, ShotlistResult, TextBuckets
from shotlist.timecode import timecode_to_seconds


def export_shotlist(
    result: ShotlistResult,
    output_dir: str | Path,
    *,
    basename: str = "shotlist",
) -> dict[str, Path]:
    """Write the JSON contract and a flat CSV view of a shotlist."""

    resolved_output_dir = Path(output_dir)
    resolved_output_dir.mkdir(parents=True, exist_ok=True)

    json_path = resolved_output_dir / f"{basename}.json"
    csv_path = resolved_output_dir / f"{basename}.csv"

    json_path.write_text(json.dumps(result.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    _write_csv(result.shots, csv_path)

    return {
        "json": json_path,
        "csv": csv_path,
    }


def load_shotlist(path: str | Path, fps: int = 30) -> ShotlistResult:
    """Load a shotlist back from the exported JSON contract."""

    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Shotlist contract must be a JSON object.")

    raw_shots = payload.get("shots", [])
    if not isinstance(raw_shots, list):
        raise ValueError("Shotlist 'shots' must be a JSON array.")

    shots: list[Shot] = []
    for idx, row in enumerate(raw_shots, start=1):
        if not isinstance(row, dict):
            raise ValueError(f"Shot row {idx} must be an object.")
        shots.append(
            Shot(
                index=int(row["index"]),
                tc_in=str(row["tcIn"]),
                tc_out=str(row["tcOut"]),
                start_seconds=timecode_to_seconds(str(row["tcIn"]), fps),
                end_seconds=timecode_to_seconds(str(row["tcOut"]), fps),
                text=[str(line) for line in row.get("text", [])],
                still=str(row["still"]) if row.get("still") is not None else None,
            )
        )

    raw_buckets: dict[str, Any] = payload.get("textBuckets") or {}
    buckets = TextBuckets(
        **{name: [str(line) for line in raw_buckets.get(BUCKET_CONTRACT_KEYS[name], [])] for name in BUCKET_NAMES}
    )

    return ShotlistResult(
        duration_seconds=float(payload.get("durationSeconds", 0.0)),
        used_threshold=float(payload.get("usedThreshold", 0.0)),
        shots=shots,
        text_buckets=buckets,
    )


def _write_csv(shots: list[Shot], path: Path) -> None:
    fields = [
        "index",
        "tc_in",
        "tc_out",
        "start_seconds",
        "end_seconds",
        "text",
        "has_still",
    ]

    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=fields)
        writer.writeheader()
        for shot in shots:
            writer.writerow(
                {
                    "index": shot.index,
                    "tc_in": shot.tc_in,
                    "tc_out": shot.tc_out,
                    "start_seconds": f"{shot.start_seconds:.3f}",
                    "end_seconds": f"{shot.end_seconds:.3f}",
                    "text": "|".join(shot.text),
                    "has_still": "yes" if shot.still else "no",
                }
            )
