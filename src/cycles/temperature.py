"""Align basal body temperature readings to cycle days.

Each BBT reading is placed in the cycle whose window contains it and given a
1-indexed cycle day (day 1 = first flow day of that cycle).  Closed cycles
cover ``[start, next_start)``; the open, current cycle covers
``[start, today]``.

Two series share the cycle-day x-axis for overlay charting:

- historical average: closed-cycle readings grouped by cycle day and averaged
  where at least ``bbt_min_samples_per_day`` readings exist;
- current cycle: the open cycle's readings, unaveraged.

Readings before the first logged period belong to no cycle and are ignored.
"""

from __future__ import annotations

import bisect
import logging
import statistics
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from src.cycles.config_loader import CycleConfig, get_cycle_config
from src.cycles.dates import days_between
from src.cycles.segmenter import flow_measurements, split_segments
from src.models.measurements import BbtMeasurement, MeasurementBase

logger = logging.getLogger("spottify.cycles.temperature")


@dataclass
class HistoricalBbtPoint:
    cycle_day: int
    avg_temperature: float
    samples: int


@dataclass
class CurrentBbtPoint:
    cycle_day: int
    temperature: float
    date: date


@dataclass
class _PlacedReading:
    cycle_index: int
    cycle_day: int
    reading: BbtMeasurement


def _place_readings(
    measurements: list[MeasurementBase], cfg: CycleConfig
) -> tuple[list[_PlacedReading], int]:
    """Assign each BBT reading to a cycle.

    Returns:
        Tuple of (placed readings, index of the open cycle).  The open index
        is -1 when no flow data exists.
    """
    segments = split_segments(
        flow_measurements(measurements), cfg.minimum_gap_between_periods_days
    )
    starts = [segment[0].date for segment in segments]

    placed: list[_PlacedReading] = []
    for m in measurements:
        if not isinstance(m, BbtMeasurement):
            continue
        idx = bisect.bisect_right(starts, m.date) - 1
        if idx < 0:
            continue
        placed.append(
            _PlacedReading(
                cycle_index=idx,
                cycle_day=days_between(starts[idx], m.date) + 1,
                reading=m,
            )
        )
    return placed, len(starts) - 1


def get_historical_bbt_average(
    measurements: Iterable[MeasurementBase],
    config: CycleConfig | None = None,
) -> list[HistoricalBbtPoint]:
    """Average closed-cycle temperatures per cycle day, sorted by cycle day.

    Cycle days with fewer than ``bbt_min_samples_per_day`` readings are
    omitted.  Averages are rounded to ``bbt_round_digits`` decimals.
    """
    cfg = config or get_cycle_config()
    placed, open_index = _place_readings(list(measurements), cfg)

    by_day: dict[int, list[float]] = defaultdict(list)
    for p in placed:
        if p.cycle_index < open_index:
            by_day[p.cycle_day].append(p.reading.value.temperature)

    points = [
        HistoricalBbtPoint(
            cycle_day=day,
            avg_temperature=round(statistics.mean(temps), cfg.bbt_round_digits),
            samples=len(temps),
        )
        for day, temps in sorted(by_day.items())
        if len(temps) >= cfg.bbt_min_samples_per_day
    ]
    logger.debug(
        "Historical BBT: %d cycle day(s) with data, %d averaged",
        len(by_day), len(points),
    )
    return points


def get_current_cycle_bbt(
    measurements: Iterable[MeasurementBase],
    today: date | None = None,
    config: CycleConfig | None = None,
) -> list[CurrentBbtPoint]:
    """Readings in the open cycle up to and including ``today``, sorted by cycle day."""
    cfg = config or get_cycle_config()
    today = today or date.today()
    placed, open_index = _place_readings(list(measurements), cfg)

    points = [
        CurrentBbtPoint(
            cycle_day=p.cycle_day,
            temperature=p.reading.value.temperature,
            date=p.reading.date,
        )
        for p in placed
        if p.cycle_index == open_index and p.reading.date <= today
    ]
    points.sort(key=lambda p: p.cycle_day)
    return points
