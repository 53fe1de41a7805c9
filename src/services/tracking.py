"""Caller-side service: fetch from the measurement store, run the cycle engine.

The engine functions are pure; this class owns the I/O sequencing around
them.  Store errors propagate unchanged, no retries happen here.

Usage::

    service = CycleTrackingService(PostgresMeasurementStore(pool))
    stats = await service.get_statistics(owner_id)
    if stats is None:
        show_getting_started()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from src.config import Settings
from src.cycles.config_loader import CycleConfig, get_cycle_config
from src.cycles.cycle_stats import CycleStats, stats_from_cycles
from src.cycles.data_quality import IncompletePeriodAlert, check_incomplete_data
from src.cycles.predictor import CurrentCycleDay, CurrentPeriodInfo, CyclePredictor, Prediction
from src.cycles.segmenter import Cycle, segment_cycles
from src.cycles.sync.dedup import DedupResult, deduplicate_measurements, key_of
from src.cycles.sync.export import export_measurements
from src.cycles.sync.importer import ImportResult, import_measurements
from src.cycles.temperature import (
    CurrentBbtPoint,
    HistoricalBbtPoint,
    get_current_cycle_bbt,
    get_historical_bbt_average,
)
from src.models.measurements import Measurement, MeasurementBase, is_none_value
from src.services.store import MeasurementStore

logger = logging.getLogger("spottify.services.tracking")


@dataclass
class BbtOverlay:
    historical: list[HistoricalBbtPoint]
    current: list[CurrentBbtPoint]


@dataclass
class CycleSnapshot:
    """Everything the engine derives from one read of the store."""

    measurements: list[Measurement]
    cycles: list[Cycle]
    stats: CycleStats | None
    predictor: CyclePredictor


class CycleTrackingService:
    def __init__(
        self,
        store: MeasurementStore,
        config: CycleConfig | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._config = config or get_cycle_config()
        self._settings = settings

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def load_measurements(self, owner_id: str) -> list[Measurement]:
        return await self._store.fetch_all(owner_id)

    async def snapshot(self, owner_id: str) -> CycleSnapshot:
        """Read once and derive cycles, stats and the calendar predictor."""
        measurements = await self._store.fetch_all(owner_id)
        excluded = await self._store.fetch_excluded_cycle_ids(owner_id)
        cycles = segment_cycles(measurements, excluded, self._config)
        stats = stats_from_cycles(cycles, self._config)
        predictor = CyclePredictor.from_measurements(measurements, stats, self._config)
        return CycleSnapshot(measurements, cycles, stats, predictor)

    async def get_statistics(self, owner_id: str) -> CycleStats | None:
        return (await self.snapshot(owner_id)).stats

    async def get_prediction(self, owner_id: str) -> Prediction | None:
        return (await self.snapshot(owner_id)).predictor.prediction

    async def get_calendar(self, owner_id: str) -> CyclePredictor:
        """Predictor for per-day calendar queries, built from one store read."""
        return (await self.snapshot(owner_id)).predictor

    async def get_current_period_info(
        self, owner_id: str, today: date | None = None
    ) -> CurrentPeriodInfo:
        return (await self.snapshot(owner_id)).predictor.current_period_info(today)

    async def get_current_cycle_day(
        self, owner_id: str, today: date | None = None
    ) -> CurrentCycleDay | None:
        return (await self.snapshot(owner_id)).predictor.current_cycle_day(today)

    async def get_cycle_data(self, owner_id: str) -> list[Cycle]:
        """Closed cycles for charts and the manage-cycles list, excluded ones flagged."""
        return (await self.snapshot(owner_id)).cycles

    async def get_bbt_overlay(self, owner_id: str, today: date | None = None) -> BbtOverlay:
        measurements = await self._store.fetch_all(owner_id)
        return BbtOverlay(
            historical=get_historical_bbt_average(measurements, self._config),
            current=get_current_cycle_bbt(measurements, today, self._config),
        )

    async def get_data_alerts(
        self, owner_id: str, today: date | None = None
    ) -> list[IncompletePeriodAlert]:
        measurements = await self._store.fetch_all(owner_id)
        return check_incomplete_data(measurements, today, self._config)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def log_measurement(self, owner_id: str, measurement: MeasurementBase) -> str | None:
        """Record a day's entry, replacing any existing entry of the same type.

        A "none" option or severity clears the day instead of being stored.

        Returns:
            The new measurement id, or None when the entry was cleared.
        """
        key = key_of(measurement)
        existing = [m for m in await self._store.fetch_all(owner_id) if key_of(m) == key]
        for old in existing:
            if old.id is not None:
                await self._store.delete(owner_id, old.id)

        if is_none_value(measurement):
            logger.debug("Cleared %s for %s", key, owner_id)
            return None
        return await self._store.add(owner_id, measurement)

    async def delete_measurement(self, owner_id: str, measurement_id: str) -> None:
        await self._store.delete(owner_id, measurement_id)

    async def toggle_cycle_exclusion(
        self, owner_id: str, first_measurement_id: str, excluded: bool
    ) -> None:
        await self._store.set_cycle_exclusion(owner_id, first_measurement_id, excluded)
        logger.info(
            "Cycle %s %s for %s",
            first_measurement_id, "excluded" if excluded else "included", owner_id,
        )

    # ------------------------------------------------------------------
    # Import / export / maintenance
    # ------------------------------------------------------------------

    async def import_file(self, owner_id: str, content: str | bytes) -> ImportResult:
        return await import_measurements(self._store, owner_id, content)

    async def deduplicate(self, owner_id: str) -> DedupResult:
        return await deduplicate_measurements(self._store, owner_id)

    async def export(self, owner_id: str, today: date | None = None) -> tuple[str, str]:
        measurements = await self._store.fetch_all(owner_id)
        return export_measurements(measurements, today, self._settings)
