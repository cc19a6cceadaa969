"""
Celery application configuration.

Redis broker and result backend, JSON serialization, UTC timezone.
Beat drives automatic syncs (every minute) and log retention (daily).
"""

from celery import Celery
from celery.schedules import crontab
from celery.signals import after_setup_logger, after_setup_task_logger

from app.core.config import REDIS_URL


@after_setup_logger.connect
@after_setup_task_logger.connect
def setup_celery_logging(logger, *args, **kwargs):
    """Configure Celery worker logging via signal."""
    from app.core.logging_config import setup_logging
    setup_logging()


app = Celery(
    "repo_sync",
    broker=REDIS_URL,
    backend=REDIS_URL,
    include=[
        "app.celery_app.sync_tasks",
    ],
)

app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    timezone="UTC",
    enable_utc=True,

    # One long-running sync per worker slot
    worker_prefetch_multiplier=1,
    worker_concurrency=4,
    worker_hijack_root_logger=False,

    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_track_started=True,

    result_expires=86400,  # 24h

    task_default_queue="default",
    task_queues={
        "high": {},      # Manual enqueue
        "default": {},   # Scheduled runs
    },
    task_routes={
        "run_sync_config": {"queue": "default"},
        "scan_due_syncs": {"queue": "default"},
        "clean_old_sync_logs": {"queue": "default"},
    },

    beat_schedule={
        "scan-due-syncs-every-minute": {
            "task": "scan_due_syncs",
            "schedule": crontab(minute="*"),
        },
        "clean-old-sync-logs-daily": {
            "task": "clean_old_sync_logs",
            "schedule": crontab(hour=3, minute=0),
        },
    },
)
