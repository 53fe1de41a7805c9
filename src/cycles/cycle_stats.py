"""Recency-weighted cycle statistics.

Lengths are averaged with exponential recency weighting: for ``n`` values
ordered oldest to newest, value ``i`` gets weight ``decay ** (n - 1 - i)``.
With the default decay of 0.8 the newest cycle dominates while older cycles
still smooth out a single outlier.

Variation is the population standard deviation of cycle lengths and is only
shown to the user.  Nothing here is rounded; callers convert with
``src.cycles.dates.whole_days`` before doing date arithmetic.
"""

from __future__ import annotations

import logging
import statistics
from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass

from src.cycles.config_loader import CycleConfig, get_cycle_config
from src.cycles.segmenter import Cycle, segment_cycles
from src.models.measurements import MeasurementBase

logger = logging.getLogger("spottify.cycles.cycle_stats")


@dataclass
class CycleStats:
    """Statistics over the user's closed, non-excluded cycles.

    Attributes:
        average_cycle_length:  Recency-weighted mean cycle length (days).
        cycle_variation:       Population std dev of cycle lengths (days).
        average_period_length: Recency-weighted mean period length (days).
        cycles_used:           Number of cycles the figures are based on.
    """

    average_cycle_length: float
    cycle_variation: float
    average_period_length: float
    cycles_used: int


def weighted_average(values: Sequence[float], decay: float = 0.8) -> float:
    """Recency-weighted mean of ``values`` (oldest first).

    Raises:
        ValueError: If ``values`` is empty.
    """
    n = len(values)
    if n == 0:
        raise ValueError("weighted_average requires at least one value")
    weights = [decay ** (n - 1 - i) for i in range(n)]
    return sum(v * w for v, w in zip(values, weights)) / sum(weights)


def population_std(values: Sequence[float]) -> float:
    """Population standard deviation (divide by n); 0.0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    return statistics.pstdev(values)


def stats_from_cycles(
    cycles: Iterable[Cycle],
    config: CycleConfig | None = None,
) -> CycleStats | None:
    """Compute statistics from already-segmented cycles.

    Excluded cycles are ignored.  Returns None ("not enough data") when fewer
    than ``minimum_cycles_for_predictions`` cycles remain.
    """
    cfg = config or get_cycle_config()
    included = [c for c in cycles if not c.is_excluded]

    if len(included) < cfg.minimum_cycles_for_predictions:
        logger.debug(
            "Statistics unavailable: %d cycle(s), need %d",
            len(included), cfg.minimum_cycles_for_predictions,
        )
        return None

    cycle_lengths = [c.cycle_length for c in included]
    period_lengths = [c.period_length for c in included]

    avg_cycle = weighted_average(cycle_lengths, cfg.recency_decay)
    avg_period = weighted_average(period_lengths, cfg.recency_decay)
    return CycleStats(
        average_cycle_length=avg_cycle,
        cycle_variation=population_std(cycle_lengths),
        average_period_length=avg_period,
        cycles_used=len(included),
    )


def calculate_cycle_stats(
    measurements: Iterable[MeasurementBase],
    excluded_ids: Collection[str] = (),
    config: CycleConfig | None = None,
) -> CycleStats | None:
    """Segment ``measurements`` and compute statistics over the closed cycles."""
    cfg = config or get_cycle_config()
    return stats_from_cycles(segment_cycles(measurements, excluded_ids, cfg), cfg)
