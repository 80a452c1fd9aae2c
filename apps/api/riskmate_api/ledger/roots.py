"""Daily ledger roots.

A root is ``sha256`` over the concatenated, sorted hashes of every event an
organization appended during one UTC day. Publishing roots lets an auditor
pin a day's ledger without holding every event.
"""

import hashlib
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from riskmate_api.models import LedgerEvent, LedgerRoot, Organization

logger = logging.getLogger(__name__)


def compute_root_hash(event_hashes: Iterable[str]) -> str:
    """Digest a day's event hashes; sorted so the result ignores row order."""
    return hashlib.sha256("".join(sorted(event_hashes)).encode("utf-8")).hexdigest()


def previous_utc_day(now: Optional[datetime] = None) -> date:
    now = now or datetime.now(timezone.utc)
    return (now - timedelta(days=1)).date()


class LedgerRootService:
    """Compute and store daily roots per organization."""

    def __init__(self, db: Session):
        """Initialize ledger root service."""
        self.db = db

    def compute_organization_root(self, organization_id: str, day: date) -> Optional[LedgerRoot]:
        """Compute and upsert one organization's root for ``day``.

        Returns ``None`` when the organization appended nothing that day.
        """
        start = datetime.combine(day, time.min)
        end = start + timedelta(days=1)
        events = (
            self.db.query(LedgerEvent)
            .filter(
                LedgerEvent.organization_id == organization_id,
                LedgerEvent.created_at >= start,
                LedgerEvent.created_at < end,
            )
            .order_by(LedgerEvent.ledger_seq.asc())
            .all()
        )
        if not events:
            return None

        root = (
            self.db.query(LedgerRoot)
            .filter(LedgerRoot.organization_id == organization_id, LedgerRoot.date == day)
            .first()
        )
        if root is None:
            root = LedgerRoot(organization_id=organization_id, date=day)
            self.db.add(root)

        root.root_hash = compute_root_hash(event.hash for event in events)
        root.event_count = len(events)
        root.first_event_id = events[0].id
        root.last_event_id = events[-1].id
        root.first_seq = events[0].ledger_seq
        root.last_seq = events[-1].ledger_seq
        root.computed_at = datetime.now(timezone.utc).replace(tzinfo=None)
        self.db.commit()

        logger.info(
            f"Computed ledger root for organization {organization_id} on {day.isoformat()}",
            extra={
                "organization_id": organization_id,
                "date": day.isoformat(),
                "event_count": root.event_count,
                "root_hash": root.root_hash[:16],
            },
        )
        return root

    def compute_daily_roots(self, day: Optional[date] = None) -> dict:
        """Compute roots for every organization; one failing organization does not stop the rest."""
        day = day or previous_utc_day()
        organization_ids = [row.id for row in self.db.query(Organization.id).all()]
        computed, failed = 0, 0

        for organization_id in organization_ids:
            try:
                if self.compute_organization_root(organization_id, day) is not None:
                    computed += 1
            except SQLAlchemyError as e:
                self.db.rollback()
                failed += 1
                logger.error(
                    f"Failed to compute ledger root for organization {organization_id}: {e}",
                    extra={"organization_id": organization_id, "date": day.isoformat()},
                )

        logger.info(
            f"Daily ledger roots computed for {day.isoformat()}",
            extra={"date": day.isoformat(), "organizations": len(organization_ids), "failed": failed},
        )
        return {"date": day.isoformat(), "roots_computed": computed, "failed": failed}
