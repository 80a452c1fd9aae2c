"""Celery tasks for ledger verification and reporting cache warmup."""

import logging
from datetime import date
from typing import Optional

from celery import Task
from sqlalchemy.orm import Session

from riskmate_api.ledger.roots import LedgerRootService
from riskmate_api.ledger.verifier import LedgerVerifier
from riskmate_api.reporting.posture import RiskPostureService
from riskmate_worker.celery_app import celery_app
from riskmate_worker.db import get_db

logger = logging.getLogger(__name__)


class DatabaseTask(Task):
    """Task with database session."""

    _db: Optional[Session] = None

    @property
    def db(self) -> Session:
        """Get database session."""
        if self._db is None:
            self._db = next(get_db())
        return self._db

    def after_return(self, *args, **kwargs):
        """Close database session after task."""
        if self._db:
            self._db.close()
            self._db = None


@celery_app.task(base=DatabaseTask, bind=True)
def verify_organization_chain(self, organization_id: str) -> dict:
    """Replay an organization's chain and report the integrity status."""
    status = LedgerVerifier(self.db).verify_chain(organization_id)
    log_extra = {
        "task": "verify_organization_chain",
        "organization_id": organization_id,
        "status": status.status,
    }
    if status.status == "error":
        logger.error(f"Ledger chain broken for organization {organization_id}", extra=log_extra)
    else:
        logger.info(
            f"Ledger chain {status.status} for organization {organization_id} "
            f"({status.events_checked} events)",
            extra=log_extra,
        )
    return status.model_dump(mode="json", by_alias=True)


@celery_app.task(base=DatabaseTask, bind=True)
def warm_risk_posture(self, organization_id: str, time_range: str) -> dict:
    """Recompute a risk posture window and store it in the reporting cache."""
    posture = RiskPostureService(self.db).refresh_risk_posture(organization_id, time_range)
    logger.info(
        f"Warmed risk posture for organization {organization_id}",
        extra={"task": "warm_risk_posture", "time_range": time_range},
    )
    return posture["_provenance"]


@celery_app.task(base=DatabaseTask, bind=True)
def compute_daily_ledger_roots(self, day: Optional[str] = None) -> dict:
    """Compute every organization's ledger root for a UTC day (default: yesterday)."""
    target = date.fromisoformat(day) if day else None
    summary = LedgerRootService(self.db).compute_daily_roots(target)
    logger.info(
        f"Ledger roots for {summary['date']}: {summary['roots_computed']} computed, {summary['failed']} failed",
        extra={"task": "compute_daily_ledger_roots", **summary},
    )
    return summary
