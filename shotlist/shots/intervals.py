from __future__ import annotations

import logging
from collections.abc import Iterable

from shotlist.models import ShotInterval

logger = logging.getLogger(__name__)

DEFAULT_MAX_SHOTS = 220
DEFAULT_BOUNDARY_EPSILON = 0.05


def build_shot_intervals(
    duration_seconds: float,
    cut_times: Iterable[float],
    max_shots: int = DEFAULT_MAX_SHOTS,
    epsilon: float = DEFAULT_BOUNDARY_EPSILON,
) -> list[ShotInterval]:
    """Partition [0, duration] at the given cuts into ordered shot intervals.

    Cuts within ``epsilon`` of either end are ignored. Only the first
    ``max_shots`` intervals are kept; later shots of very long or cut-dense
    footage are dropped rather than merged.
    """

    duration = max(float(duration_seconds or 0.0), 0.0)
    inner_cuts = sorted({float(t) for t in cut_times if epsilon < float(t) < duration - epsilon})
    boundaries = [0.0, *inner_cuts, duration]

    intervals = [
        ShotInterval(index=idx, start_seconds=start, end_seconds=end)
        for idx, (start, end) in enumerate(zip(boundaries, boundaries[1:]), start=1)
    ]

    if len(intervals) > max_shots:
        logger.info("Capping %d shots at %d; trailing shots dropped", len(intervals), max_shots)
        intervals = intervals[: max(max_shots, 0)]

    return intervals
