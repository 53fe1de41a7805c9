"""Tests for BBT cycle-day alignment and overlays."""

from __future__ import annotations

from datetime import date

import pytest

from src.cycles.config_loader import CycleConfig, _validate_and_build
from src.cycles.temperature import get_current_cycle_bbt, get_historical_bbt_average
from src.models.measurements import MeasurementBase
from src.cycles.tests.conftest import AS_OF, bbt, three_period_history


@pytest.fixture
def readings() -> list[MeasurementBase]:
    """Three-period history (cycles start Jan 1, Jan 29, Feb 26) with BBT logged."""
    return [
        *three_period_history(),
        bbt("2023-12-30", 36.2),     # before first period
        bbt("2024-01-05", 36.4),     # cycle 1, day 5
        bbt("2024-02-02", 36.6),     # cycle 2, day 5
        bbt("2024-01-07", 36.123),   # cycle 1, day 7
        bbt("2024-02-04", 36.456),   # cycle 2, day 7
        bbt("2024-01-10", 36.7),     # cycle 1, day 10, single sample
        bbt("2024-01-28", 36.9),     # cycle 1, day 28
        bbt("2024-02-27", 36.3),     # open cycle, day 2
        bbt("2024-02-29", 36.5),     # open cycle, day 4
        bbt("2024-03-05", 36.8),     # open cycle, after AS_OF
    ]


class TestHistoricalAverage:
    def test_days_with_enough_samples(
        self, readings: list[MeasurementBase], cycle_config: CycleConfig
    ) -> None:
        points = get_historical_bbt_average(readings, cycle_config)
        assert [p.cycle_day for p in points] == [5, 7]
        day5, day7 = points
        assert day5.avg_temperature == pytest.approx(36.5)
        assert day5.samples == 2
        assert day7.avg_temperature == 36.29

    def test_open_cycle_readings_excluded(
        self, readings: list[MeasurementBase], cycle_config: CycleConfig
    ) -> None:
        """Day 2 and day 4 only have open-cycle readings."""
        days = {p.cycle_day for p in get_historical_bbt_average(readings, cycle_config)}
        assert 2 not in days
        assert 4 not in days

    def test_single_sample_threshold(self, readings: list[MeasurementBase]) -> None:
        config = _validate_and_build({"temperature": {"min_samples_per_day": 1}})
        points = get_historical_bbt_average(readings, config)
        assert [p.cycle_day for p in points] == [5, 7, 10, 28]

    def test_no_flow_data(self, cycle_config: CycleConfig) -> None:
        assert get_historical_bbt_average([bbt("2024-01-05", 36.4)], cycle_config) == []


class TestCurrentCycle:
    def test_open_cycle_up_to_today(
        self, readings: list[MeasurementBase], cycle_config: CycleConfig
    ) -> None:
        points = get_current_cycle_bbt(readings, AS_OF, cycle_config)
        assert [(p.cycle_day, p.temperature) for p in points] == [(2, 36.3), (4, 36.5)]
        assert points[1].date == date(2024, 2, 29)

    def test_future_reading_included_once_today_passes(
        self, readings: list[MeasurementBase], cycle_config: CycleConfig
    ) -> None:
        points = get_current_cycle_bbt(readings, date(2024, 3, 5), cycle_config)
        assert points[-1].cycle_day == 9

    def test_no_flow_data(self, cycle_config: CycleConfig) -> None:
        assert get_current_cycle_bbt([bbt("2024-01-05", 36.4)], AS_OF, cycle_config) == []

    def test_single_segment_is_current(self, cycle_config: CycleConfig) -> None:
        """With one logged period every later reading belongs to the open cycle."""
        ms = [*three_period_history()[:3], bbt("2024-01-04", 36.4)]
        assert get_historical_bbt_average(ms, cycle_config) == []
        points = get_current_cycle_bbt(ms, date(2024, 1, 10), cycle_config)
        assert [p.cycle_day for p in points] == [4]
