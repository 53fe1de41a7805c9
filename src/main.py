"""Spottify entry point: logging bootstrap and service wiring.

Usage::

    configure_logging()
    async with tracking_service() as service:
        prediction = await service.get_prediction(owner_id)
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from src.config import Settings, get_settings
from src.cycles.config_loader import get_cycle_config
from src.services.store import PostgresMeasurementStore, close_pool, create_pool
from src.services.tracking import CycleTrackingService

logger = logging.getLogger("spottify")


# ---------- Logging ----------

def configure_logging(settings: Settings | None = None) -> None:
    s = settings or get_settings()
    logging.basicConfig(
        level=s.log_level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


# ---------- Service lifecycle ----------

@asynccontextmanager
async def tracking_service(
    settings: Settings | None = None,
) -> AsyncGenerator[CycleTrackingService, None]:
    """Open a pool, yield a wired CycleTrackingService, close the pool on exit."""
    s = settings or get_settings()
    logger.info("Starting %s v%s [%s]", s.app_name, s.app_version, s.environment)
    pool = await create_pool(s)
    try:
        yield CycleTrackingService(
            PostgresMeasurementStore(pool),
            config=get_cycle_config(),
            settings=s,
        )
    finally:
        await close_pool(pool)
        logger.info("%s shut down", s.app_name)
