"""Audit ledger service with hash chaining."""

import logging
import threading
import weakref
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from riskmate_api.errors import LedgerWriteError
from riskmate_api.ledger.canonical import compute_ledger_hash
from riskmate_api.ledger.classification import category_for, outcome_for, severity_for
from riskmate_api.models import LedgerEvent
from riskmate_api.settings import Settings, get_settings
from riskmate_api.utils.metrics import ledger_append_retries, ledger_appends

logger = logging.getLogger(__name__)

SEQUENCE_CONSTRAINT = "audit_logs_org_seq_unique"


def is_sequence_conflict(error: IntegrityError) -> bool:
    """Whether an insert lost the race for a ledger_seq rather than breaking another rule."""
    diag = getattr(error.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint:
        return constraint == SEQUENCE_CONSTRAINT
    # SQLite names the columns instead of the constraint
    message = str(error.orig)
    return SEQUENCE_CONSTRAINT in message or "audit_logs.ledger_seq" in message


class LedgerService:
    """Tamper-evident audit ledger with per-organization hash chaining.

    Appends are serialized twice over: an in-process lock per organization
    covers concurrent requests in one worker, and the unique constraint on
    ``(organization_id, ledger_seq)`` covers writers in other processes. A
    writer that loses the race rolls back, re-reads the head and retries.

    ``append_event`` owns its transaction and commits on success, so call it
    after the business operation it records has been committed.
    """

    # Locks live only while some append holds them
    _locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
    _locks_guard = threading.Lock()

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        """Initialize ledger service."""
        self.db = db
        self.settings = settings or get_settings()

    @classmethod
    def _organization_lock(cls, organization_id: str) -> threading.Lock:
        with cls._locks_guard:
            lock = cls._locks.get(organization_id)
            if lock is None:
                lock = cls._locks[organization_id] = threading.Lock()
            return lock

    def get_chain_head(self, organization_id: str) -> Optional[LedgerEvent]:
        """Get the event with the highest sequence number for an organization."""
        return (
            self.db.query(LedgerEvent)
            .filter(LedgerEvent.organization_id == organization_id)
            .order_by(LedgerEvent.ledger_seq.desc())
            .first()
        )

    def _build_event(
        self,
        organization_id: str,
        actor_id: Optional[str],
        event_name: str,
        target_type: str,
        target_id: Optional[str],
        metadata: dict,
        **extra,
    ) -> LedgerEvent:
        """Link a new event to the current head."""
        head = self.get_chain_head(organization_id)
        ledger_seq = head.ledger_seq + 1 if head else self.settings.ledger_seq_base
        prev_hash = head.hash if head else None
        created_at = datetime.now(timezone.utc).replace(tzinfo=None)

        event_hash = compute_ledger_hash(
            prev_hash,
            ledger_seq,
            organization_id,
            actor_id,
            event_name,
            target_type,
            target_id,
            metadata,
            created_at,
            self.settings.ledger_secret_salt,
        )

        return LedgerEvent(
            organization_id=organization_id,
            ledger_seq=ledger_seq,
            actor_id=actor_id or None,
            event_name=event_name,
            target_type=target_type,
            target_id=target_id or None,
            metadata_json=metadata,
            created_at=created_at,
            prev_hash=prev_hash,
            hash=event_hash,
            **extra,
        )

    def append_event(
        self,
        organization_id: str,
        actor_id: Optional[str],
        event_name: str,
        target_type: str,
        target_id: Optional[str] = None,
        metadata: Optional[dict] = None,
        severity: Optional[str] = None,
        category: Optional[str] = None,
        outcome: Optional[str] = None,
        summary: Optional[str] = None,
        actor_name: Optional[str] = None,
    ) -> LedgerEvent:
        """Append an event to the organization's chain and return the stored row.

        Raises:
            LedgerWriteError: the store failed the write or every retry lost
                the sequence race.
        """
        organization_id = str(organization_id)
        actor_id = str(actor_id) if actor_id else None
        target_id = str(target_id) if target_id else None
        metadata = metadata or {}
        extra = {
            "severity": severity or severity_for(event_name),
            "category": category or category_for(event_name),
            "outcome": outcome or outcome_for(event_name),
            "summary": summary,
            "actor_name": actor_name,
        }
        max_attempts = max(1, self.settings.ledger_append_max_retries)
        last_error: Optional[Exception] = None

        with self._organization_lock(organization_id):
            for attempt in range(1, max_attempts + 1):
                try:
                    event = self._build_event(
                        organization_id, actor_id, event_name, target_type, target_id, metadata, **extra
                    )
                    self.db.add(event)
                    self.db.commit()
                except IntegrityError as e:
                    self.db.rollback()
                    if not is_sequence_conflict(e):
                        ledger_appends.labels(outcome="failed").inc()
                        raise LedgerWriteError(organization_id, attempt, str(e.orig)) from e
                    last_error = e
                    ledger_append_retries.inc()
                    logger.warning(
                        f"Ledger sequence conflict for organization {organization_id}, "
                        f"attempt {attempt}/{max_attempts}",
                        extra={"organization_id": organization_id, "event_name": event_name},
                    )
                    continue
                except SQLAlchemyError as e:
                    self.db.rollback()
                    ledger_appends.labels(outcome="failed").inc()
                    raise LedgerWriteError(organization_id, attempt, str(e)) from e

                ledger_appends.labels(outcome="appended").inc()
                logger.debug(
                    f"Appended {event_name} at seq {event.ledger_seq} for organization {organization_id}"
                )
                return event

        ledger_appends.labels(outcome="failed").inc()
        raise LedgerWriteError(
            organization_id, max_attempts, f"sequence conflict not resolved: {last_error}"
        ) from last_error
