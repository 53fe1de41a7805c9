"""Flag months whose logged period looks incomplete.

Scans the last ``incomplete_period_lookback_months`` calendar months (the
reference month included) and flags any month with at least one but fewer
than ``incomplete_period_min_days`` distinct flow days.  Months with no flow
at all are not flagged.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from src.cycles.config_loader import CycleConfig, get_cycle_config
from src.cycles.dates import month_start, shift_months
from src.models.measurements import MeasurementBase, is_flow_day

logger = logging.getLogger("spottify.cycles.data_quality")


@dataclass
class IncompletePeriodAlert:
    month: date  # first day of the flagged month
    flow_days: int
    message: str


def check_incomplete_data(
    measurements: Iterable[MeasurementBase],
    today: date | None = None,
    config: CycleConfig | None = None,
) -> list[IncompletePeriodAlert]:
    """Return alerts for recent months with too few flow days, newest first."""
    cfg = config or get_cycle_config()
    today = today or date.today()
    current = month_start(today)
    earliest = shift_months(current, -(cfg.incomplete_period_lookback_months - 1))

    flow_dates = {m.date for m in measurements if is_flow_day(m)}
    per_month = Counter(
        month_start(d) for d in flow_dates if earliest <= d <= today
    )

    alerts: list[IncompletePeriodAlert] = []
    for offset in range(cfg.incomplete_period_lookback_months):
        month = shift_months(current, -offset)
        count = per_month.get(month, 0)
        if 0 < count < cfg.incomplete_period_min_days:
            alerts.append(
                IncompletePeriodAlert(
                    month=month,
                    flow_days=count,
                    message=(
                        f"Only {count} period day{'s' if count != 1 else ''} logged in "
                        f"{month.strftime('%B %Y')}. Add any missing days for more "
                        f"accurate predictions."
                    ),
                )
            )

    if alerts:
        logger.debug("Found %d month(s) with incomplete period data", len(alerts))
    return alerts
