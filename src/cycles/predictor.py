"""Next-cycle projection and per-day calendar queries.

Predictions are anchored on the first day of the most recent unbroken run of
flow days (``last_period_start``) and project forward by the rounded average
cycle length:

    next period   = anchor + C
    ovulation     = next period − days_before_period_for_ovulation
    fertile window = [ovulation − before, ovulation + after]   (inclusive)

where ``C`` and the period length ``P`` are the weighted averages converted
with ``whole_days``.  Later cycles repeat every ``C`` days, so the calendar
queries locate a date's projected cycle with modular arithmetic instead of
walking cycle by cycle.

No stats or no flow data means no prediction: every query answers False and
``prediction`` is None.  There are no fallback 28-day defaults.

Usage::

    stats = calculate_cycle_stats(measurements)
    predictor = CyclePredictor.from_measurements(measurements, stats)
    for day in month_days:
        cell.period = predictor.is_predicted_period(day)
        cell.ovulation = predictor.is_predicted_ovulation(day)
        cell.fertile = predictor.is_in_fertile_window(day)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from src.cycles.config_loader import CycleConfig, get_cycle_config
from src.cycles.cycle_stats import CycleStats
from src.cycles.dates import add_days, days_between, whole_days
from src.cycles.segmenter import flow_measurements
from src.models.measurements import MeasurementBase, PeriodMeasurement, PeriodOption

logger = logging.getLogger("spottify.cycles.predictor")


@dataclass
class Prediction:
    """Projected dates for the user's next cycle."""

    next_period_start: date
    ovulation_date: date
    fertile_window_start: date
    fertile_window_end: date


@dataclass
class CurrentPeriodInfo:
    """Dashboard status for today.

    Attributes:
        is_in_period:            Today falls inside the ongoing period window.
        days_left_in_period:     Days remaining including today, None outside a period.
        is_period_expected_today: The projected next period starts today and no
                                 period entry has been logged for today yet.
    """

    is_in_period: bool
    days_left_in_period: int | None
    is_period_expected_today: bool


@dataclass
class CurrentCycleDay:
    cycle_day: int
    cycle_length: int | None


def last_period_start(measurements: Iterable[MeasurementBase]) -> date | None:
    """First day of the most recent unbroken run of flow days.

    Starting from the latest flow day, walks back while consecutive flow days
    are at most one day apart.
    """
    flows = flow_measurements(measurements)
    if not flows:
        return None

    start = flows[-1].date
    for earlier in reversed(flows[:-1]):
        if days_between(earlier.date, start) > 1:
            break
        start = earlier.date
    return start


class CyclePredictor:
    """Projection plus cheap per-date queries for calendar rendering.

    Build one per render (``from_measurements``); every query is O(1).
    """

    def __init__(
        self,
        anchor: date | None,
        stats: CycleStats | None,
        logged_period_dates: frozenset[date] = frozenset(),
        config: CycleConfig | None = None,
    ) -> None:
        self._config = config or get_cycle_config()
        self._anchor = anchor
        self._stats = stats
        self._logged_period_dates = logged_period_dates

        if anchor is not None and stats is not None:
            cfg = self._config
            self._cycle_len = max(1, whole_days(stats.average_cycle_length))
            self._period_len = whole_days(stats.average_period_length)
            self._ovulation_offset = self._cycle_len - cfg.days_before_period_for_ovulation
            self._fertile_offset = (
                self._ovulation_offset - cfg.fertile_window_start_days_before_ovulation
            )
        else:
            self._cycle_len = self._period_len = 0
            self._ovulation_offset = self._fertile_offset = 0

    @classmethod
    def from_measurements(
        cls,
        measurements: Iterable[MeasurementBase],
        stats: CycleStats | None,
        config: CycleConfig | None = None,
    ) -> "CyclePredictor":
        measurements = list(measurements)
        logged = frozenset(
            m.date
            for m in measurements
            if isinstance(m, PeriodMeasurement) and m.value.option != PeriodOption.none
        )
        return cls(last_period_start(measurements), stats, logged, config)

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    @property
    def is_available(self) -> bool:
        return self._anchor is not None and self._stats is not None

    @property
    def cycle_length(self) -> int | None:
        return self._cycle_len if self.is_available else None

    @property
    def prediction(self) -> Prediction | None:
        if self._anchor is None or self._stats is None:
            return None
        cfg = self._config
        next_start = add_days(self._anchor, self._cycle_len)
        ovulation = add_days(next_start, -cfg.days_before_period_for_ovulation)
        return Prediction(
            next_period_start=next_start,
            ovulation_date=ovulation,
            fertile_window_start=add_days(
                ovulation, -cfg.fertile_window_start_days_before_ovulation
            ),
            fertile_window_end=add_days(
                ovulation, cfg.fertile_window_end_days_after_ovulation
            ),
        )

    # ------------------------------------------------------------------
    # Per-date queries
    # ------------------------------------------------------------------

    def _days_since_anchor(self, day: date) -> int | None:
        if self._anchor is None or self._stats is None:
            return None
        return days_between(self._anchor, day)

    def is_predicted_period(self, day: date) -> bool:
        """Day lies in the ongoing period or in a projected future period."""
        k = self._days_since_anchor(day)
        if k is None or k < 0:
            return False
        return k % self._cycle_len < self._period_len

    def is_predicted_ovulation(self, day: date) -> bool:
        """Day is exactly the ovulation day of the current or a later cycle."""
        k = self._days_since_anchor(day)
        if k is None:
            return False
        offset = k - self._ovulation_offset
        return offset >= 0 and offset % self._cycle_len == 0

    def is_in_fertile_window(self, day: date) -> bool:
        """Day lies in the fertile window (both ends inclusive) of the current or a later cycle."""
        k = self._days_since_anchor(day)
        if k is None:
            return False
        offset = k - self._fertile_offset
        return offset >= 0 and offset % self._cycle_len <= self._config.fertile_window_span_days

    @staticmethod
    def is_today(day: date, today: date | None = None) -> bool:
        return day == (today or date.today())

    # ------------------------------------------------------------------
    # Today status
    # ------------------------------------------------------------------

    def current_period_info(self, today: date | None = None) -> CurrentPeriodInfo:
        today = today or date.today()
        k = self._days_since_anchor(today)

        in_period = k is not None and 0 <= k < self._period_len
        days_left = self._period_len - k if in_period and k is not None else None

        prediction = self.prediction
        expected_today = (
            prediction is not None
            and prediction.next_period_start == today
            and today not in self._logged_period_dates
        )
        return CurrentPeriodInfo(
            is_in_period=in_period,
            days_left_in_period=days_left,
            is_period_expected_today=expected_today,
        )

    def current_cycle_day(self, today: date | None = None) -> CurrentCycleDay | None:
        """Day number within the current cycle (day 1 = last period start)."""
        if self._anchor is None:
            return None
        today = today or date.today()
        return CurrentCycleDay(
            cycle_day=days_between(self._anchor, today) + 1,
            cycle_length=self.cycle_length,
        )


def predict_next_cycle(
    measurements: Iterable[MeasurementBase],
    stats: CycleStats | None,
    config: CycleConfig | None = None,
) -> Prediction | None:
    """Project the next period, ovulation day and fertile window.

    Returns None when stats are unavailable or no flow day has been logged.
    """
    prediction = CyclePredictor.from_measurements(measurements, stats, config).prediction
    if prediction is None:
        logger.debug("Prediction unavailable (stats=%s)", stats is not None)
    return prediction


def get_current_period_info(
    measurements: Iterable[MeasurementBase],
    stats: CycleStats | None,
    today: date | None = None,
    config: CycleConfig | None = None,
) -> CurrentPeriodInfo:
    return CyclePredictor.from_measurements(measurements, stats, config).current_period_info(today)


def get_current_cycle_day(
    measurements: Iterable[MeasurementBase],
    stats: CycleStats | None,
    today: date | None = None,
    config: CycleConfig | None = None,
) -> CurrentCycleDay | None:
    return CyclePredictor.from_measurements(measurements, stats, config).current_cycle_day(today)
