"""Local calendar date helpers for the cycle engine.

Every date in the engine is a ``datetime.date``: no time of day, no
timezone.  Day differences are plain ``date`` subtraction, so DST changes and
UTC offsets cannot shift a measurement onto a neighbouring day.

All averaged lengths are converted with ``whole_days`` before they touch a
date.  Nothing else in the engine rounds.
"""

from __future__ import annotations

import math
from datetime import date, timedelta


def parse_local_date(value: str | date) -> date:
    """Parse a ``YYYY-MM-DD`` string (or pass through a date).

    Raises:
        ValueError: If the string is not an ISO calendar date.
    """
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def days_between(start: date, end: date) -> int:
    """Signed whole days from ``start`` to ``end``."""
    return (end - start).days


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=days)


def whole_days(length: float) -> int:
    """Round an averaged length to whole days.

    Halves always round up (28.5 -> 29, 29.5 -> 30), unlike ``round()``.
    """
    return int(math.floor(length + 0.5))


def month_start(value: date) -> date:
    return value.replace(day=1)


def shift_months(value: date, months: int) -> date:
    """First day of the month ``months`` away from ``value``'s month."""
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)
