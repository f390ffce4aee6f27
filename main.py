import logging

from fastapi import FastAPI

import db
from app.services.scheduler import SchedulerService, build_scheduler
from config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
_LOGGER = logging.getLogger("main")

app = FastAPI()

scheduler: SchedulerService | None = None

# Start the in-process scheduler on startup and stop it on shutdown

@app.on_event("startup")
async def startup_event():
    global scheduler
    # Tables are managed via Alembic migrations
    if not settings.SCHEDULER_ENABLED:
        _LOGGER.info("SCHEDULER_ENABLED is off; expecting Celery beat to drive ticks")
        return
    scheduler = build_scheduler()
    scheduler.start()

@app.on_event("shutdown")
async def shutdown_event():
    if scheduler is not None:
        scheduler.stop()
        # in-flight ticks must finish before the engine is disposed
        await scheduler.drain()
    await db.dispose_engine()

# --------------------------------------------
# Endpoint
# --------------------------------------------
@app.get("/healthz")
async def healthz():
    return {
        "status": "ok",
        "scheduler": {
            "started": bool(scheduler and scheduler.started),
            "tick_in_progress": bool(scheduler and scheduler.tick_in_progress),
            "interval_seconds": settings.SCHEDULER_INTERVAL_SECONDS,
        },
    }
