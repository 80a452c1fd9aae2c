"""Celery application configuration."""

from celery import Celery
from celery.schedules import crontab

from riskmate_api.settings import get_settings

settings = get_settings()

celery_app = Celery(
    "riskmate_worker",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=10 * 60,  # 10 minutes
    task_soft_time_limit=8 * 60,  # 8 minutes
)

celery_app.conf.beat_schedule = {
    "compute-daily-ledger-roots": {
        "task": "riskmate_worker.tasks.compute_daily_ledger_roots",
        "schedule": crontab(hour=settings.ledger_root_hour_utc, minute=0),
    },
}

# Import tasks to register them with Celery
# This must be done after celery_app is created
from riskmate_worker import tasks  # noqa: F401, E402
