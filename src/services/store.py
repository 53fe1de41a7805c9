"""Measurement store: the persistence contract the cycle engine relies on.

The engine never talks to the database itself.  Callers hold a
``MeasurementStore`` and pass fetched measurements into the engine's pure
functions.  The Postgres implementation runs every call in a transaction
with ``app.current_user_id`` set transaction-locally so Row-Level Security
policies see the owner.

There is no module-level pool.  Build one with ``create_pool()`` and hand it
to ``PostgresMeasurementStore``; tests pass a fake store instead.

Schema::

    CREATE TABLE cycle_measurements (
        measurement_id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        owner_id       TEXT NOT NULL,
        date           DATE NOT NULL,
        type           TEXT NOT NULL,
        value          JSONB NOT NULL,
        created_at     TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    CREATE TABLE cycle_exclusions (
        owner_id       TEXT NOT NULL,
        measurement_id TEXT NOT NULL,
        PRIMARY KEY (owner_id, measurement_id)
    );
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Protocol

import asyncpg
from pydantic import ValidationError

from src.config import Settings, get_settings
from src.models.measurements import Measurement, MeasurementBase, decode_measurement

logger = logging.getLogger("spottify.db")


class MeasurementStore(Protocol):
    """Read/write contract for a user's measurement log."""

    async def fetch_all(self, owner_id: str) -> list[Measurement]:
        """Every measurement the owner has logged, in no particular order."""
        ...

    async def add(self, owner_id: str, measurement: MeasurementBase) -> str:
        """Persist a measurement (its ``id`` is ignored) and return the new id."""
        ...

    async def delete(self, owner_id: str, measurement_id: str) -> None:
        """Delete a measurement.  Deleting an unknown id is a no-op."""
        ...

    async def fetch_excluded_cycle_ids(self, owner_id: str) -> set[str]:
        """First-measurement ids of cycles the owner excluded from statistics."""
        ...

    async def set_cycle_exclusion(
        self, owner_id: str, measurement_id: str, excluded: bool
    ) -> None:
        ...


# ---------------------------------------------------------------------------
# Pool lifecycle
# ---------------------------------------------------------------------------


async def create_pool(settings: Settings | None = None) -> asyncpg.Pool:
    """Create an asyncpg connection pool.  The caller owns and closes it."""
    s = settings or get_settings()
    pool = await asyncpg.create_pool(
        s.database_url,
        min_size=s.db_pool_min_size,
        max_size=s.db_pool_max_size,
        command_timeout=s.db_command_timeout,
    )
    logger.info(
        "Database pool initialized (min=%d, max=%d)",
        s.db_pool_min_size, s.db_pool_max_size,
    )
    return pool


async def close_pool(pool: asyncpg.Pool) -> None:
    await pool.close()
    logger.info("Database pool closed")


# ---------------------------------------------------------------------------
# Postgres implementation
# ---------------------------------------------------------------------------


def _row_to_measurement(row: asyncpg.Record) -> Measurement:
    value = row["value"]
    if isinstance(value, str):
        value = json.loads(value)
    return decode_measurement(
        {
            "id": str(row["measurement_id"]),
            "date": row["date"],
            "type": row["type"],
            "value": value,
            "created_at": row["created_at"],
        }
    )


class PostgresMeasurementStore:
    """``MeasurementStore`` backed by Postgres through an injected asyncpg pool."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    @asynccontextmanager
    async def _connection(self, owner_id: str) -> AsyncGenerator[asyncpg.Connection, None]:
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    "SELECT set_config('app.current_user_id', $1, true)", owner_id
                )
                yield conn

    async def fetch_all(self, owner_id: str) -> list[Measurement]:
        async with self._connection(owner_id) as conn:
            rows = await conn.fetch(
                """
                SELECT measurement_id, date, type, value, created_at
                FROM cycle_measurements
                WHERE owner_id = $1
                """,
                owner_id,
            )

        measurements: list[Measurement] = []
        for row in rows:
            try:
                measurements.append(_row_to_measurement(row))
            except (ValidationError, ValueError) as exc:
                logger.warning(
                    "Skipping undecodable measurement %s for %s: %s",
                    row["measurement_id"], owner_id, exc,
                )
        return measurements

    async def add(self, owner_id: str, measurement: MeasurementBase) -> str:
        payload = measurement.model_dump(mode="json", include={"value"})["value"]
        async with self._connection(owner_id) as conn:
            new_id = await conn.fetchval(
                """
                INSERT INTO cycle_measurements (owner_id, date, type, value)
                VALUES ($1, $2, $3, $4::jsonb)
                RETURNING measurement_id
                """,
                owner_id,
                measurement.date,
                measurement.type,  # type: ignore[attr-defined]
                json.dumps(payload),
            )
        return str(new_id)

    async def delete(self, owner_id: str, measurement_id: str) -> None:
        async with self._connection(owner_id) as conn:
            await conn.execute(
                """
                DELETE FROM cycle_measurements
                WHERE owner_id = $1 AND measurement_id::text = $2
                """,
                owner_id,
                measurement_id,
            )

    async def fetch_excluded_cycle_ids(self, owner_id: str) -> set[str]:
        async with self._connection(owner_id) as conn:
            rows = await conn.fetch(
                "SELECT measurement_id FROM cycle_exclusions WHERE owner_id = $1",
                owner_id,
            )
        return {r["measurement_id"] for r in rows}

    async def set_cycle_exclusion(
        self, owner_id: str, measurement_id: str, excluded: bool
    ) -> None:
        async with self._connection(owner_id) as conn:
            if excluded:
                await conn.execute(
                    """
                    INSERT INTO cycle_exclusions (owner_id, measurement_id)
                    VALUES ($1, $2)
                    ON CONFLICT (owner_id, measurement_id) DO NOTHING
                    """,
                    owner_id,
                    measurement_id,
                )
            else:
                await conn.execute(
                    "DELETE FROM cycle_exclusions WHERE owner_id = $1 AND measurement_id = $2",
                    owner_id,
                    measurement_id,
                )
