"""Ledger integrity verification."""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from riskmate_api.errors import LedgerEventNotFound
from riskmate_api.ledger.canonical import hash_stored_event
from riskmate_api.ledger.schemas import (
    ChainIntegrityErrorDetails,
    ChainIntegrityStatus,
    EventVerification,
)
from riskmate_api.models import LedgerEvent
from riskmate_api.settings import Settings, get_settings
from riskmate_api.utils.metrics import ledger_chain_verify_duration, ledger_verifications

logger = logging.getLogger(__name__)

MISSING = "(missing)"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class LedgerVerifier:
    """Read-only checks over stored ledger events.

    Nothing here writes to the store, so any number of verifications may run
    side by side with each other and with appends.
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        """Initialize verifier."""
        self.db = db
        self.settings = settings or get_settings()

    def _hash_of(self, event: LedgerEvent) -> str:
        return hash_stored_event(event, self.settings.ledger_secret_salt)

    def _find_by_hash(self, organization_id: str, event_hash: str) -> Optional[LedgerEvent]:
        return (
            self.db.query(LedgerEvent)
            .filter(
                LedgerEvent.organization_id == organization_id,
                LedgerEvent.hash == event_hash,
            )
            .order_by(LedgerEvent.ledger_seq.asc())
            .first()
        )

    def verify_event(
        self, organization_id: str, event_id: str, max_depth: Optional[int] = None
    ) -> EventVerification:
        """Recompute one event's hash and walk a bounded number of ancestor links.

        ``max_depth`` of ``None`` uses the configured cap; ``0`` walks back to
        the first event.
        """
        event = (
            self.db.query(LedgerEvent)
            .filter(
                LedgerEvent.id == event_id,
                LedgerEvent.organization_id == organization_id,
            )
            .first()
        )
        if event is None:
            raise LedgerEventNotFound(organization_id, event_id)

        if max_depth is None:
            max_depth = self.settings.ledger_verify_max_depth

        computed_hash = self._hash_of(event)
        prev_event = self._find_by_hash(organization_id, event.prev_hash) if event.prev_hash else None
        prev_hash_valid = not event.prev_hash or prev_event is not None

        chain_ok = prev_hash_valid
        depth = 0
        seen = {event.id}
        current = event
        while chain_ok and current.prev_hash and (max_depth == 0 or depth < max_depth):
            ancestor = self._find_by_hash(organization_id, current.prev_hash)
            if ancestor is None or ancestor.id in seen:
                chain_ok = False
                break
            depth += 1
            if self.settings.ledger_verify_recompute_hashes and self._hash_of(ancestor) != ancestor.hash:
                chain_ok = False
                break
            seen.add(ancestor.id)
            current = ancestor

        result = EventVerification(
            event_id=event.id,
            ledger_seq=event.ledger_seq,
            stored_hash=event.hash,
            computed_hash=computed_hash,
            hash_matches=event.hash == computed_hash,
            prev_hash=event.prev_hash,
            prev_exists=prev_event is not None,
            prev_hash_valid=prev_hash_valid,
            chain_ok=chain_ok,
            chain_depth_checked=depth,
            verified_at=_now(),
        )
        ledger_verifications.labels(
            scope="event", status="verified" if result.hash_matches and chain_ok else "error"
        ).inc()
        return result

    def verify_chain(self, organization_id: str) -> ChainIntegrityStatus:
        """Replay an organization's whole chain; the first broken link wins."""
        started = time.perf_counter()
        try:
            status = self._walk_chain(organization_id)
        finally:
            ledger_chain_verify_duration.observe(time.perf_counter() - started)
        ledger_verifications.labels(scope="chain", status=status.status).inc()
        if status.status == "error":
            details = status.error_details
            logger.error(
                f"Ledger chain broken for organization {organization_id}: {details.reason}",
                extra={
                    "organization_id": organization_id,
                    "failing_event_id": details.failing_event_id,
                    "event_index": details.event_index,
                },
            )
        return status

    def _walk_chain(self, organization_id: str) -> ChainIntegrityStatus:
        try:
            events = (
                self.db.query(LedgerEvent)
                .filter(LedgerEvent.organization_id == organization_id)
                .order_by(LedgerEvent.ledger_seq.asc(), LedgerEvent.created_at.asc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Could not load ledger for organization {organization_id}: {e}")
            return ChainIntegrityStatus(
                status="error",
                last_verified_at=_now(),
                error_details=ChainIntegrityErrorDetails(event_index=0, reason="store_unavailable"),
            )

        if not events:
            return ChainIntegrityStatus(status="not_verified")

        recompute = self.settings.ledger_verify_recompute_hashes
        previous: Optional[LedgerEvent] = None
        for index, event in enumerate(events):
            details = None
            if previous is not None:
                if not event.prev_hash:
                    details = ChainIntegrityErrorDetails(
                        failing_event_id=event.id,
                        event_index=index,
                        expected_hash=previous.hash or MISSING,
                        got_hash=MISSING,
                        reason="missing_prev_hash",
                    )
                elif event.prev_hash != previous.hash:
                    details = ChainIntegrityErrorDetails(
                        failing_event_id=event.id,
                        event_index=index,
                        expected_hash=previous.hash or MISSING,
                        got_hash=event.prev_hash,
                        reason="prev_hash_mismatch",
                    )
                elif event.ledger_seq != previous.ledger_seq + 1:
                    details = ChainIntegrityErrorDetails(
                        failing_event_id=event.id,
                        event_index=index,
                        expected_seq=previous.ledger_seq + 1,
                        got_seq=event.ledger_seq,
                        reason="sequence_gap",
                    )

            if details is None and recompute:
                computed = self._hash_of(event)
                if computed != event.hash:
                    details = ChainIntegrityErrorDetails(
                        failing_event_id=event.id,
                        event_index=index,
                        expected_hash=computed,
                        got_hash=event.hash or MISSING,
                        reason="hash_mismatch",
                    )

            if details is not None:
                return ChainIntegrityStatus(
                    status="error",
                    events_checked=index + 1,
                    last_verified_at=_now(),
                    verified_through_event_id=previous.id if previous else None,
                    error_details=details,
                )
            previous = event

        return ChainIntegrityStatus(
            status="verified",
            events_checked=len(events),
            last_verified_at=_now(),
            verified_through_event_id=events[-1].id,
        )
