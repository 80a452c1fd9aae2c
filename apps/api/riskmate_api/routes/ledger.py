"""Ledger append and verification endpoints."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from riskmate_api.db.session import get_db
from riskmate_api.errors import LedgerWriteError, error_response
from riskmate_api.ledger.recorder import AuditRecorder
from riskmate_api.ledger.schemas import ChainIntegrityStatus, EventVerification
from riskmate_api.ledger.verifier import LedgerVerifier
from riskmate_api.reporting.cache import ReportingCache, get_reporting_cache
from riskmate_api.routes.dependencies import get_organization_id

router = APIRouter(prefix="/api/ledger", tags=["ledger"])


class AppendEventRequest(BaseModel):
    """Event submitted by a producer."""

    event_name: str = Field(..., min_length=1, description="Dot-namespaced event type, e.g. job.created")
    target_type: str = Field(..., min_length=1, description="Entity class the event concerns")
    target_id: Optional[str] = None
    actor_id: Optional[str] = Field(None, description="Acting user; omit for system events")
    actor_name: Optional[str] = None
    metadata: dict = Field(default_factory=dict)


class LedgerEventResponse(BaseModel):
    """Stored ledger event."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    ledger_seq: int
    actor_id: Optional[str] = None
    event_name: str
    target_type: str
    target_id: Optional[str] = None
    metadata: dict = Field(validation_alias="metadata_json")
    created_at: datetime
    prev_hash: Optional[str] = None
    hash: str
    severity: str
    category: str
    outcome: str
    summary: Optional[str] = None


@router.post("/events", response_model=LedgerEventResponse, status_code=status.HTTP_201_CREATED)
async def append_event(
    event_data: AppendEventRequest,
    request: Request,
    organization_id: str = Depends(get_organization_id),
    db: Session = Depends(get_db),
    cache: ReportingCache = Depends(get_reporting_cache),
):
    """Append an event to the organization's ledger."""
    event = AuditRecorder(db, cache=cache).record(
        organization_id,
        event_data.event_name,
        event_data.target_type,
        target_id=event_data.target_id,
        actor_id=event_data.actor_id,
        metadata=event_data.metadata,
        actor_name=event_data.actor_name,
    )
    if event is None:
        return error_response(
            LedgerWriteError.status_code,
            LedgerWriteError.code,
            LedgerWriteError.message,
            getattr(request.state, "correlation_id", None),
        )
    return event


@router.get("/events/{event_id}/verify", response_model=EventVerification)
async def verify_event(
    event_id: str,
    max_depth: Optional[int] = Query(None, ge=0, description="Ancestor links to walk; 0 walks to the first event"),
    organization_id: str = Depends(get_organization_id),
    db: Session = Depends(get_db),
):
    """Verify a single event's hash and its nearest ancestor links."""
    return LedgerVerifier(db).verify_event(organization_id, event_id, max_depth=max_depth)


@router.get("/verify", response_model=ChainIntegrityStatus)
async def verify_chain(
    organization_id: str = Depends(get_organization_id),
    db: Session = Depends(get_db),
):
    """Replay the organization's full hash chain."""
    return LedgerVerifier(db).verify_chain(organization_id)
