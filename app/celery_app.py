"""Celery application instance shared across the backend.

Start the beat scheduler and a single-process worker with:
    celery -A app.celery_app beat -l info
    celery -A app.celery_app worker -Q scheduler -l info --concurrency=1

The worker must stay at concurrency 1: the tick guard and the digest dedup
caches live in that one process.

Beat and the in-process ticker in main.py (SCHEDULER_ENABLED) are mutually
exclusive: running both dispatches every due item twice.
"""

from celery import Celery

from config import settings

BROKER_URL = settings.REDIS_URL

celery_app = Celery("nudge_backend", broker=BROKER_URL, backend=BROKER_URL)

# Global task settings
celery_app.conf.task_acks_late = False
celery_app.conf.worker_prefetch_multiplier = 1

celery_app.conf.task_routes = {
    "app.workers.scheduler.tick": {"queue": "scheduler"},
}

# Beat schedule: one scheduler tick per interval; stale firings expire instead of piling up
celery_app.conf.beat_schedule = {
    "scheduler-tick": {
        "task": "app.workers.scheduler.tick",
        "schedule": settings.SCHEDULER_INTERVAL_SECONDS,
        "options": {"expires": settings.SCHEDULER_INTERVAL_SECONDS},
    }
}

# --- Ensure tasks are registered ---
import app.workers.scheduler
