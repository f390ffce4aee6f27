"""Celery task that runs one scheduler pass per beat firing.

The scheduler instance is kept for the lifetime of the worker process so its
tick guard and digest dedup caches carry over from one firing to the next.
"""

from __future__ import annotations

import asyncio
import logging

from app.celery_app import celery_app
from app.services.scheduler import SchedulerService, build_scheduler
import db

_LOGGER = logging.getLogger(__name__)

_scheduler: SchedulerService | None = None


def get_scheduler() -> SchedulerService:
    global _scheduler
    if _scheduler is None:
        _scheduler = build_scheduler()
    return _scheduler


async def _tick_once(scheduler: SchedulerService) -> bool:
    try:
        return await scheduler.tick()
    finally:
        # each asyncio.run gets a fresh loop; pooled connections must not outlive it
        await db.dispose_engine()


# ---------------------------------------------------------------------------
# Celery Tasks
# ---------------------------------------------------------------------------

@celery_app.task(name="app.workers.scheduler.tick", bind=True)
def tick(self) -> bool:  # noqa: D401
    """Run a single dispatch pass and report whether it actually ran."""
    ran = asyncio.run(_tick_once(get_scheduler()))
    if not ran:
        _LOGGER.info("Scheduler tick %s skipped, previous pass still running", self.request.id)
    return ran
