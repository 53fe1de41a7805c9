"""Deduplication of logged measurements.

At most one measurement per (date, type) is meaningful.  Duplicates appear
when the same day is logged from two sessions or an export is imported
twice.  The earliest-created record of each group is the one kept.

Dedup key: ``<YYYY-MM-DD>:<type>``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from src.models.measurements import MeasurementBase, creation_order
from src.services.store import MeasurementStore

logger = logging.getLogger("spottify.cycles.sync.dedup")


def measurement_key(day: date, measurement_type: str) -> str:
    """Generate the dedup key for a (date, type) pair."""
    return f"{day.isoformat()}:{measurement_type}"


def key_of(measurement: MeasurementBase) -> str:
    return measurement_key(measurement.date, measurement.type)  # type: ignore[attr-defined]


class InMemoryDedupCache:
    """Set of dedup keys already present for one user during a single run.

    Usage::

        cache = InMemoryDedupCache(key_of(m) for m in existing)
        if cache.is_seen(key):
            duplicates += 1
        else:
            cache.mark_seen(key)
    """

    def __init__(self, keys: Iterable[str] = ()) -> None:
        self._seen: set[str] = set(keys)

    def is_seen(self, key: str) -> bool:
        return key in self._seen

    def mark_seen(self, key: str) -> None:
        self._seen.add(key)


def find_duplicates(measurements: Iterable[MeasurementBase]) -> list[MeasurementBase]:
    """Return every record that is not the earliest-created of its (date, type) group."""
    groups: dict[str, list[MeasurementBase]] = defaultdict(list)
    for m in measurements:
        groups[key_of(m)].append(m)

    redundant: list[MeasurementBase] = []
    for group in groups.values():
        if len(group) > 1:
            redundant.extend(sorted(group, key=creation_order)[1:])
    return redundant


@dataclass
class DedupResult:
    removed: int
    kept: int


async def deduplicate_measurements(store: MeasurementStore, owner_id: str) -> DedupResult:
    """Delete all but the earliest-created record of each (date, type) group.

    Running it twice in a row removes nothing the second time.  Store errors
    propagate to the caller.
    """
    measurements = await store.fetch_all(owner_id)
    redundant = find_duplicates(measurements)

    removed = 0
    for m in redundant:
        if m.id is None:
            continue
        await store.delete(owner_id, m.id)
        removed += 1

    result = DedupResult(removed=removed, kept=len(measurements) - removed)
    logger.info(
        "Dedup for %s: removed %d, kept %d", owner_id, result.removed, result.kept
    )
    return result
