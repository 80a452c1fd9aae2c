"""Sample ledger data for development and testing."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from riskmate_api.ledger.recorder import AuditRecorder
from riskmate_api.models import Organization


def ensure_organization(db: Session, organization_id: str, name: Optional[str] = None) -> Organization:
    """Get or create an organization."""
    organization = db.query(Organization).filter(Organization.id == organization_id).first()
    if not organization:
        organization = Organization(id=organization_id, name=name or f"org-{organization_id[:8]}")
        db.add(organization)
        db.commit()
    return organization


def generate_sample_events(
    db: Session,
    organization_id: str,
    actor_id: Optional[str] = None,
    rounds: int = 1,
) -> list[str]:
    """Record one governance, one operations and one access event per round.

    Returns the ids of the events that were written.
    """
    ensure_organization(db, organization_id)
    recorder = AuditRecorder(db)
    actor_id = actor_id or str(uuid.uuid4())
    event_ids = []

    for _ in range(rounds):
        now = datetime.now(timezone.utc)
        job_id = str(uuid.uuid4())
        target_user_id = str(uuid.uuid4())
        samples = [
            (
                "auth.role_violation",
                "system",
                None,
                {
                    "attempted_action": "job.update",
                    "policy_statement": "Executives have read-only access and cannot update work records",
                    "endpoint": "/api/jobs/update",
                    "reason": "Executive attempted to update a work record",
                },
            ),
            (
                "review_queue.assigned",
                "job",
                job_id,
                {
                    "work_record_id": job_id,
                    "assignee_id": actor_id,
                    "priority": "high",
                    "status_change": {"before": "open", "after": "assigned"},
                    "due_at": (now + timedelta(days=7)).isoformat(),
                },
            ),
            (
                "access.revoked",
                "user",
                target_user_id,
                {
                    "target_user_id": target_user_id,
                    "scope": "org",
                    "force_logout": False,
                    "revoked_at": now.isoformat(),
                },
            ),
        ]
        for event_name, target_type, target_id, metadata in samples:
            event = recorder.record(
                organization_id,
                event_name,
                target_type,
                target_id=target_id,
                actor_id=actor_id,
                metadata=metadata,
            )
            if event is not None:
                event_ids.append(event.id)

    return event_ids
