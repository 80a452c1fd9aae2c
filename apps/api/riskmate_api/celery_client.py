"""Shared Celery client for the API to enqueue worker tasks.

Configured to match the worker: JSON serializer, UTC, Redis broker and
result backend. Tasks are sent by name so the API never imports worker code.
"""

import logging
from typing import Optional

from celery import Celery
import redis
from kombu.exceptions import OperationalError

from riskmate_api.settings import get_settings

logger = logging.getLogger(__name__)

WARM_POSTURE_TASK = "riskmate_worker.tasks.warm_risk_posture"
VERIFY_CHAIN_TASK = "riskmate_worker.tasks.verify_organization_chain"

_celery_app: Optional[Celery] = None


def get_celery_app() -> Celery:
    """Get or create singleton Celery app instance."""
    global _celery_app

    if _celery_app is None:
        settings = get_settings()

        _celery_app = Celery("riskmate_api")
        _celery_app.conf.update(
            broker_url=settings.redis_url,
            result_backend=settings.redis_url,
            task_serializer="json",
            accept_content=["json"],
            result_serializer="json",
            timezone="UTC",
            enable_utc=True,
        )

        logger.info("Initialized Celery client for riskmate_api")

    return _celery_app


def enqueue_posture_warmup(organization_id: str, time_range: str) -> bool:
    """Ask the worker to recompute a cached posture; a broker outage is logged, not raised."""
    try:
        get_celery_app().send_task(WARM_POSTURE_TASK, args=[organization_id, time_range])
    except (OperationalError, redis.RedisError) as e:
        logger.warning(
            f"Could not enqueue posture warmup for organization {organization_id}: {e}",
            extra={"organization_id": organization_id, "time_range": time_range},
        )
        return False
    return True


def enqueue_chain_verification(organization_id: str):
    """Queue a full chain verification for an organization."""
    return get_celery_app().send_task(VERIFY_CHAIN_TASK, args=[organization_id])
