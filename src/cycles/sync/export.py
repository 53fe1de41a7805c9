"""JSON export of a user's raw measurements."""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import date

from src.config import Settings, get_settings
from src.models.measurements import MeasurementBase, encode_measurement


def export_filename(today: date | None = None, settings: Settings | None = None) -> str:
    s = settings or get_settings()
    return f"{s.app_slug}-data-{(today or date.today()).isoformat()}.json"


def export_measurements(
    measurements: Iterable[MeasurementBase],
    today: date | None = None,
    settings: Settings | None = None,
) -> tuple[str, str]:
    """Serialize measurements for download.

    Returns:
        Tuple of (filename, pretty-printed JSON array).  The array is ordered
        by date and can be fed straight back into ``import_measurements``.
    """
    ordered = sorted(measurements, key=lambda m: (m.date, m.type))  # type: ignore[attr-defined]
    body = json.dumps([encode_measurement(m) for m in ordered], indent=2)
    return export_filename(today, settings), body
