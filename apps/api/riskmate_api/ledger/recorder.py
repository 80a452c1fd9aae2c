"""Entry point for code that records business events in the ledger."""

import logging
from typing import Optional

import redis
from sqlalchemy.orm import Session

from riskmate_api.errors import LedgerWriteError
from riskmate_api.ledger.classification import (
    category_for,
    humanize_event_name,
    is_material,
    outcome_for,
    severity_for,
    truncate_metadata,
)
from riskmate_api.ledger.service import LedgerService
from riskmate_api.models import LedgerEvent
from riskmate_api.reporting.cache import ReportingCache, TIME_RANGES, get_reporting_cache
from riskmate_api.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class AuditRecorder:
    """Record an event without letting a ledger failure break the caller.

    A failed append is logged and reported as ``None``; the business action
    that produced the event stands. The ledger favors availability here, so a
    lost write shows up later as a missing event rather than a failed request.
    """

    def __init__(
        self,
        db: Session,
        cache: Optional[ReportingCache] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize recorder."""
        self.settings = settings or get_settings()
        self.ledger = LedgerService(db, self.settings)
        self.cache = cache or get_reporting_cache()

    def record(
        self,
        organization_id: str,
        event_name: str,
        target_type: str,
        target_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        metadata: Optional[dict] = None,
        actor_name: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> Optional[LedgerEvent]:
        """Append an event; returns ``None`` if the ledger write failed."""
        metadata = truncate_metadata(metadata, self.settings.ledger_metadata_max_bytes)
        severity = severity_for(event_name)
        if summary is None:
            summary = humanize_event_name(event_name)
            if target_id:
                summary = f"{summary} for {target_type}"

        try:
            event = self.ledger.append_event(
                organization_id,
                actor_id,
                event_name,
                target_type,
                target_id=target_id,
                metadata=metadata,
                severity=severity,
                category=category_for(event_name),
                outcome=outcome_for(event_name),
                summary=summary,
                actor_name=actor_name,
            )
        except LedgerWriteError as e:
            logger.error(
                f"Audit event {event_name} not recorded: {e}",
                extra={
                    "organization_id": str(organization_id),
                    "event_name": event_name,
                    "attempts": e.attempts,
                },
            )
            return None

        if is_material(event_name, severity):
            self._invalidate_reporting(str(organization_id))
        return event

    def _invalidate_reporting(self, organization_id: str):
        try:
            self.cache.invalidate_organization(organization_id)
        except redis.RedisError as e:
            logger.error(
                f"Reporting cache not invalidated for organization {organization_id}: {e}",
                extra={"organization_id": organization_id},
            )
            return
        if not self.settings.reporting_warm_async:
            return
        from riskmate_api.celery_client import enqueue_posture_warmup

        for time_range in TIME_RANGES:
            enqueue_posture_warmup(organization_id, time_range)
