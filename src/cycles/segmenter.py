"""Split a user's period-flow days into discrete menstrual cycles.

Flow days (period measurements with a light, medium or heavy option) are
sorted by date and walked pairwise.  A gap strictly greater than
``minimum_gap_between_periods_days`` starts a new segment.

Cycle length is measured start-to-start, so only segments followed by another
segment are closed cycles.  The last segment is the open, current cycle and
is not returned by ``segment_cycles``; use ``current_cycle_start`` for it.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable
from dataclasses import dataclass
from datetime import date

from src.cycles.config_loader import CycleConfig, get_cycle_config
from src.cycles.dates import add_days, days_between
from src.models.measurements import (
    MeasurementBase,
    PeriodMeasurement,
    creation_order,
    is_flow_day,
)

logger = logging.getLogger("spottify.cycles.segmenter")


@dataclass
class Cycle:
    """A closed menstrual cycle derived from flow measurements.

    Attributes:
        cycle_number:         1-based position, oldest first.
        start_date:           First flow day of the cycle.
        end_date:             Day before the next cycle's first flow day.
        period_end:           Last flow day logged in this cycle's period.
        cycle_length:         Days from this start to the next start.
        period_length:        Number of flow measurements in the segment.
        first_measurement_id: Id of the first flow measurement; anchors the
                              cycle for exclusions.
        is_excluded:          User override: leave out of statistics.
    """

    cycle_number: int
    start_date: date
    end_date: date
    period_end: date
    cycle_length: int
    period_length: int
    first_measurement_id: str | None = None
    is_excluded: bool = False


def flow_measurements(measurements: Iterable[MeasurementBase]) -> list[PeriodMeasurement]:
    """Return the flow-day period measurements sorted oldest first.

    Same-day records are ordered earliest-created first, so a cycle is
    anchored to the record the dedup pass keeps.
    """
    return sorted(
        (m for m in measurements if is_flow_day(m)),
        key=lambda m: (m.date, *creation_order(m)),
    )


def split_segments(
    flows: list[PeriodMeasurement], gap_days: int
) -> list[list[PeriodMeasurement]]:
    """Group sorted flow measurements into segments separated by gaps > gap_days."""
    if not flows:
        return []
    segments: list[list[PeriodMeasurement]] = [[flows[0]]]
    for previous, current in zip(flows, flows[1:]):
        if days_between(previous.date, current.date) > gap_days:
            segments.append([current])
        else:
            segments[-1].append(current)
    return segments


def segment_cycles(
    measurements: Iterable[MeasurementBase],
    excluded_ids: Collection[str] = (),
    config: CycleConfig | None = None,
) -> list[Cycle]:
    """Segment measurements into closed cycles, oldest first.

    Args:
        measurements: Every measurement for the user, in any order.
        excluded_ids: First-measurement ids of cycles the user excluded.
        config:       Engine config (defaults to the cached one).

    Returns:
        Closed cycles.  Empty when fewer than two segments exist.
    """
    cfg = config or get_cycle_config()
    segments = split_segments(
        flow_measurements(measurements), cfg.minimum_gap_between_periods_days
    )

    cycles: list[Cycle] = []
    for number, (segment, following) in enumerate(zip(segments, segments[1:]), start=1):
        start = segment[0].date
        next_start = following[0].date
        first_id = segment[0].id
        cycles.append(
            Cycle(
                cycle_number=number,
                start_date=start,
                end_date=add_days(next_start, -1),
                period_end=segment[-1].date,
                cycle_length=days_between(start, next_start),
                period_length=len(segment),
                first_measurement_id=first_id,
                is_excluded=first_id is not None and first_id in excluded_ids,
            )
        )

    logger.debug(
        "Segmented %d flow segment(s) into %d closed cycle(s)",
        len(segments), len(cycles),
    )
    return cycles


def current_cycle_start(
    measurements: Iterable[MeasurementBase],
    config: CycleConfig | None = None,
) -> date | None:
    """First flow day of the open (most recent) segment, or None without flow data."""
    cfg = config or get_cycle_config()
    segments = split_segments(
        flow_measurements(measurements), cfg.minimum_gap_between_periods_days
    )
    return segments[-1][0].date if segments else None
