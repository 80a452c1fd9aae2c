"""Verification result schemas."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

IntegrityState = Literal["verified", "error", "not_verified"]


class EventVerification(BaseModel):
    """Spot check of a single ledger event."""

    event_id: str
    ledger_seq: int
    stored_hash: str
    computed_hash: str
    hash_matches: bool
    prev_hash: Optional[str] = None
    prev_exists: bool
    prev_hash_valid: bool
    chain_ok: bool
    chain_depth_checked: int
    verified_at: datetime


class ChainIntegrityErrorDetails(BaseModel):
    """Where and why a chain walk stopped."""

    model_config = ConfigDict(populate_by_name=True)

    failing_event_id: Optional[str] = Field(None, alias="failingEventId")
    event_index: int = Field(alias="eventIndex")
    expected_hash: Optional[str] = Field(None, alias="expectedHash")
    got_hash: Optional[str] = Field(None, alias="gotHash")
    expected_seq: Optional[int] = Field(None, alias="expectedSeq")
    got_seq: Optional[int] = Field(None, alias="gotSeq")
    reason: str


class ChainIntegrityStatus(BaseModel):
    """Organization-wide integrity outcome."""

    status: IntegrityState
    events_checked: int = 0
    last_verified_at: Optional[datetime] = None
    verified_through_event_id: Optional[str] = None
    error_details: Optional[ChainIntegrityErrorDetails] = None
