"""Tests for the Postgres measurement store and service wiring, with asyncpg mocked out."""

from __future__ import annotations

import json
import logging
import sys
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID

import pytest

from src.config import Settings
from src.main import configure_logging, tracking_service
from src.models.measurements import BbtMeasurement, PeriodMeasurement
from src.services.store import PostgresMeasurementStore, create_pool
from src.services.tracking import CycleTrackingService
from src.cycles.tests.conftest import TEST_OWNER, period

ROW_ID = UUID("7b0c6a52-4a7e-4a57-9a7e-0d1f4f7b1c11")
CREATED = datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc)


class _FakeTransaction:
    async def __aenter__(self) -> "_FakeTransaction":
        return self

    async def __aexit__(self, *exc: object) -> bool:
        return False


class _FakeAcquire:
    def __init__(self, conn: MagicMock) -> None:
        self._conn = conn

    async def __aenter__(self) -> MagicMock:
        return self._conn

    async def __aexit__(self, *exc: object) -> bool:
        return False


def _make_pool(rows: list[dict] | None = None) -> tuple[MagicMock, MagicMock]:
    conn = MagicMock()
    conn.transaction = MagicMock(return_value=_FakeTransaction())
    conn.execute = AsyncMock(return_value="OK")
    conn.fetch = AsyncMock(return_value=rows or [])
    conn.fetchval = AsyncMock(return_value=ROW_ID)

    pool = MagicMock()
    pool.acquire = MagicMock(side_effect=lambda: _FakeAcquire(conn))
    pool.close = AsyncMock()
    return pool, conn


def _row(type_: str, value: object, day: date = date(2024, 1, 1)) -> dict:
    return {
        "measurement_id": ROW_ID,
        "date": day,
        "type": type_,
        "value": value,
        "created_at": CREATED,
    }


class TestPostgresStore:
    @pytest.mark.asyncio
    async def test_sets_owner_for_row_level_security(self) -> None:
        pool, conn = _make_pool()
        await PostgresMeasurementStore(pool).fetch_all(TEST_OWNER)

        first_call = conn.execute.call_args_list[0]
        assert "set_config('app.current_user_id'" in first_call.args[0]
        assert first_call.args[1] == TEST_OWNER

    @pytest.mark.asyncio
    async def test_fetch_all_decodes_rows(self) -> None:
        rows = [
            _row("period", {"option": "heavy"}),
            _row("bbt", json.dumps({"celsius": 36.4}), date(2024, 1, 2)),
        ]
        pool, _ = _make_pool(rows)

        measurements = await PostgresMeasurementStore(pool).fetch_all(TEST_OWNER)

        assert isinstance(measurements[0], PeriodMeasurement)
        assert measurements[0].id == str(ROW_ID)
        assert measurements[0].created_at == CREATED
        assert isinstance(measurements[1], BbtMeasurement)
        assert measurements[1].value.temperature == 36.4

    @pytest.mark.asyncio
    async def test_undecodable_rows_are_skipped(self) -> None:
        rows = [_row("mood", {"level": 3}), _row("period", {"option": "light"})]
        pool, _ = _make_pool(rows)

        measurements = await PostgresMeasurementStore(pool).fetch_all(TEST_OWNER)

        assert len(measurements) == 1

    @pytest.mark.asyncio
    async def test_add_returns_new_id(self) -> None:
        pool, conn = _make_pool()

        new_id = await PostgresMeasurementStore(pool).add(
            TEST_OWNER, period("2024-01-01", "light", id="ignored")
        )

        assert new_id == str(ROW_ID)
        args = conn.fetchval.call_args.args
        assert args[1:4] == (TEST_OWNER, date(2024, 1, 1), "period")
        assert json.loads(args[4]) == {"option": "light"}

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self) -> None:
        pool, conn = _make_pool()
        conn.fetch = AsyncMock(side_effect=ConnectionError("connection reset"))
        with pytest.raises(ConnectionError):
            await PostgresMeasurementStore(pool).fetch_all(TEST_OWNER)

    @pytest.mark.asyncio
    async def test_exclusions(self) -> None:
        pool, conn = _make_pool([{"measurement_id": "period-1"}])
        store = PostgresMeasurementStore(pool)

        assert await store.fetch_excluded_cycle_ids(TEST_OWNER) == {"period-1"}

        await store.set_cycle_exclusion(TEST_OWNER, "period-1", True)
        assert "ON CONFLICT" in conn.execute.call_args.args[0]
        await store.set_cycle_exclusion(TEST_OWNER, "period-1", False)
        assert conn.execute.call_args.args[0].startswith("DELETE FROM cycle_exclusions")


class TestWiring:
    @pytest.mark.asyncio
    async def test_create_pool_uses_settings(self) -> None:
        settings = Settings(database_url="postgresql://db/test", db_pool_max_size=4)
        with patch("src.services.store.asyncpg.create_pool", AsyncMock()) as mock_create:
            await create_pool(settings)

        mock_create.assert_awaited_once()
        assert mock_create.call_args.args[0] == "postgresql://db/test"
        assert mock_create.call_args.kwargs["max_size"] == 4

    @pytest.mark.asyncio
    async def test_tracking_service_closes_pool(self) -> None:
        pool, _ = _make_pool()
        with patch("src.main.create_pool", AsyncMock(return_value=pool)), patch(
            "src.main.close_pool", AsyncMock()
        ) as mock_close:
            async with tracking_service(Settings()) as service:
                assert isinstance(service, CycleTrackingService)
            mock_close.assert_awaited_once_with(pool)

    def test_configure_logging(self) -> None:
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        root.handlers = []
        try:
            configure_logging(Settings(log_level="debug"))

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert root.handlers[0].stream is sys.stdout  # type: ignore[attr-defined]
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)
