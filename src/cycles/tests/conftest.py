"""Shared fixtures, measurement factories and an in-memory store for cycle engine tests."""

from __future__ import annotations

import itertools
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone

import pytest

from src.cycles.config_loader import CycleConfig, load_cycle_config
from src.cycles.dates import parse_local_date
from src.models.measurements import (
    BbtMeasurement,
    BbtValue,
    CrampsMeasurement,
    Measurement,
    MeasurementBase,
    PeriodMeasurement,
    PeriodOption,
    PeriodValue,
    SymptomSeverity,
    SymptomValue,
)

TEST_OWNER = "user-123"
AS_OF = date(2024, 3, 1)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def period(
    day: str | date,
    option: str = "medium",
    id: str | None = None,
    created_at: datetime | None = None,
) -> PeriodMeasurement:
    d = parse_local_date(day)
    return PeriodMeasurement(
        id=id or f"period-{d.isoformat()}",
        date=d,
        value=PeriodValue(option=PeriodOption(option)),
        created_at=created_at,
    )


def flow_run(start: str | date, days: int, option: str = "medium") -> list[PeriodMeasurement]:
    first = parse_local_date(start)
    return [period(first + timedelta(days=i), option) for i in range(days)]


def bbt(day: str | date, temperature: float, id: str | None = None) -> BbtMeasurement:
    d = parse_local_date(day)
    return BbtMeasurement(
        id=id or f"bbt-{d.isoformat()}-{temperature}",
        date=d,
        value=BbtValue(temperature=temperature),
    )


def cramps(day: str | date, severity: str = "mild") -> CrampsMeasurement:
    d = parse_local_date(day)
    return CrampsMeasurement(
        id=f"cramps-{d.isoformat()}",
        date=d,
        value=SymptomValue(severity=SymptomSeverity(severity)),
    )


def three_period_history() -> list[PeriodMeasurement]:
    """Periods on Jan 1–3, Jan 29–30 and Feb 26–27 2024: two closed 28-day cycles."""
    return [
        period("2024-01-01", "medium"),
        period("2024-01-02", "heavy"),
        period("2024-01-03", "medium"),
        period("2024-01-29"),
        period("2024-01-30"),
        period("2024-02-26"),
        period("2024-02-27"),
    ]


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class FakeMeasurementStore:
    """MeasurementStore double.  Ids are ``m-<n>``, creation times increase per add."""

    def __init__(self, fail_on_dates: set[date] | None = None) -> None:
        self._rows: dict[str, list[MeasurementBase]] = defaultdict(list)
        self._excluded: dict[str, set[str]] = defaultdict(set)
        self._counter = itertools.count(1)
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.fail_on_dates = fail_on_dates or set()
        self.add_calls = 0
        self.delete_calls = 0

    def seed(self, owner_id: str, *measurements: MeasurementBase) -> None:
        self._rows[owner_id].extend(measurements)

    async def fetch_all(self, owner_id: str) -> list[Measurement]:
        return list(self._rows[owner_id])  # type: ignore[arg-type]

    async def add(self, owner_id: str, measurement: MeasurementBase) -> str:
        self.add_calls += 1
        if measurement.date in self.fail_on_dates:
            raise RuntimeError(f"write rejected for {measurement.date}")
        n = next(self._counter)
        new_id = f"m-{n}"
        self._rows[owner_id].append(
            measurement.model_copy(
                update={"id": new_id, "created_at": self._clock + timedelta(seconds=n)}
            )
        )
        return new_id

    async def delete(self, owner_id: str, measurement_id: str) -> None:
        self.delete_calls += 1
        self._rows[owner_id] = [m for m in self._rows[owner_id] if m.id != measurement_id]

    async def fetch_excluded_cycle_ids(self, owner_id: str) -> set[str]:
        return set(self._excluded[owner_id])

    async def set_cycle_exclusion(
        self, owner_id: str, measurement_id: str, excluded: bool
    ) -> None:
        if excluded:
            self._excluded[owner_id].add(measurement_id)
        else:
            self._excluded[owner_id].discard(measurement_id)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cycle_config() -> CycleConfig:
    """Load the real cycle config for tests."""
    return load_cycle_config()


@pytest.fixture
def history() -> list[PeriodMeasurement]:
    return three_period_history()


@pytest.fixture
def store() -> FakeMeasurementStore:
    return FakeMeasurementStore()
