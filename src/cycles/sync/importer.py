"""Batch import of externally supplied measurement records.

The import file is a JSON array of ``{id, type, date, value}`` objects (the
same shape ``export`` writes).  Each record is validated on its own:

- malformed records (unknown type, missing or null fields, a period option
  outside the enumerated set, a date that is not ``YYYY-MM-DD``) are skipped;
- records whose (date, type) already exists for the user, or appeared
  earlier in the same batch, are counted as duplicates and not written;
- a write that fails is logged and counted as skipped.

The legacy top-level ``spotting`` type becomes a period measurement with the
``spotting`` option.  Only a file that is not a JSON array, or a failing
duplicate-check read, aborts the import.

Two imports running at once for the same user can both pass the duplicate
check and write the same key; run ``deduplicate_measurements`` afterwards to
collapse them.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from pydantic import ValidationError

from src.cycles.sync.dedup import InMemoryDedupCache, key_of
from src.models.measurements import (
    Measurement,
    MeasurementType,
    PeriodOption,
    decode_measurement,
)
from src.services.store import MeasurementStore

logger = logging.getLogger("spottify.cycles.sync.importer")

_KNOWN_TYPES = {t.value for t in MeasurementType}


class ImportFormatError(ValueError):
    """Raised when the import file as a whole cannot be read."""


@dataclass
class ImportResult:
    imported: int = 0
    skipped: int = 0
    duplicates: int = 0


def parse_import_file(content: str | bytes) -> list[Any]:
    """Parse the top-level JSON array.

    Raises:
        ImportFormatError: If the content is not JSON or not an array.
    """
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ImportFormatError(f"Import file is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise ImportFormatError(
            f"Import file must contain a JSON array, got {type(data).__name__}"
        )
    return data


def _parse_record_date(raw_date: Any) -> date:
    # Only zero-padded YYYY-MM-DD; compact and week-date forms are rejected
    message = f"date must be a YYYY-MM-DD string, got {raw_date!r}"
    if not isinstance(raw_date, str):
        raise ValueError(message)
    try:
        day = datetime.strptime(raw_date, "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValueError(message) from exc
    if day.isoformat() != raw_date:
        raise ValueError(message)
    return day


def normalize_record(raw: Any) -> Measurement:
    """Validate one raw record and convert it to a measurement.

    The record's own ``id`` is dropped; the store assigns a new one.

    Raises:
        ValueError: If the record is malformed (``pydantic.ValidationError``
            is a subclass).
    """
    if not isinstance(raw, dict):
        raise ValueError(f"record must be an object, got {type(raw).__name__}")

    record_type = raw.get("type")
    value = raw.get("value")
    if record_type == "spotting":
        record_type = MeasurementType.period.value
        value = {"option": PeriodOption.spotting.value}

    if record_type not in _KNOWN_TYPES:
        raise ValueError(f"unsupported measurement type {record_type!r}")
    if not isinstance(value, dict):
        raise ValueError(f"missing or invalid value for {record_type} record")

    day = _parse_record_date(raw.get("date"))

    return decode_measurement(
        {"date": day, "type": record_type, "value": value}
    )


async def import_records(
    store: MeasurementStore, owner_id: str, records: list[Any]
) -> ImportResult:
    """Validate, dedupe and write already-parsed records for ``owner_id``."""
    existing = await store.fetch_all(owner_id)
    seen = InMemoryDedupCache(key_of(m) for m in existing)
    result = ImportResult()

    logger.info("Starting import of %d record(s) for %s", len(records), owner_id)

    for index, raw in enumerate(records):
        record_id = raw.get("id") if isinstance(raw, dict) else None
        try:
            measurement = normalize_record(raw)
        except (ValidationError, ValueError) as exc:
            logger.warning("Skipping record #%d (%s): %s", index, record_id, exc)
            result.skipped += 1
            continue

        key = key_of(measurement)
        if seen.is_seen(key):
            result.duplicates += 1
            continue

        try:
            await store.add(owner_id, measurement)
        except Exception as exc:
            logger.warning(
                "Write failed for record #%d (%s): %s", index, record_id, exc
            )
            result.skipped += 1
            continue

        seen.mark_seen(key)
        result.imported += 1

    logger.info(
        "Import complete for %s: imported=%d skipped=%d duplicates=%d",
        owner_id, result.imported, result.skipped, result.duplicates,
    )
    return result


async def import_measurements(
    store: MeasurementStore, owner_id: str, content: str | bytes
) -> ImportResult:
    """Import a JSON export file for ``owner_id``.

    Raises:
        ImportFormatError: If the file is not a JSON array.
    """
    return await import_records(store, owner_id, parse_import_file(content))
