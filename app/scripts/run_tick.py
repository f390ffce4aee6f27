"""Run a single scheduler pass and exit.
Useful as a platform cron job every minute instead of Celery beat:
    python -m app.scripts.run_tick
"""

from __future__ import annotations

import asyncio
import logging

from app.services.scheduler import build_scheduler
from config import settings
import db

_LOGGER = logging.getLogger("app.scripts.run_tick")


async def main() -> bool:
    scheduler = build_scheduler()
    try:
        return await scheduler.tick()
    finally:
        await db.dispose_engine()


if __name__ == "__main__":  # pragma: no cover
    logging.basicConfig(level=settings.LOG_LEVEL)
    _LOGGER.info("[CRON] run_tick: job started")
    try:
        asyncio.run(main())
        _LOGGER.info("[CRON] run_tick: job completed successfully")
    except Exception:
        _LOGGER.exception("[CRON] run_tick: job failed")
