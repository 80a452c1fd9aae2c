"""Audit ledger models."""

import uuid

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, JSON, String, Text, UniqueConstraint

from riskmate_api.db.base import Base


class LedgerEvent(Base):
    """Append-only audit event, hash-chained per organization."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        UniqueConstraint("organization_id", "ledger_seq", name="audit_logs_org_seq_unique"),
        Index("ix_audit_logs_org_hash", "organization_id", "hash"),
        Index("ix_audit_logs_org_created_at", "organization_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    ledger_seq = Column(BigInteger, nullable=False)
    actor_id = Column(String(36), nullable=True)  # NULL for system events
    event_name = Column(String(255), nullable=False, index=True)
    target_type = Column(String(100), nullable=False)
    target_id = Column(String(255), nullable=True)
    metadata_json = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False)
    prev_hash = Column(String(64), nullable=True)  # NULL for first event
    hash = Column(String(64), nullable=False)

    # Reporting classification, not hashed
    severity = Column(String(20), nullable=False, default="info")  # info, material, critical
    category = Column(String(20), nullable=False, default="operations")  # governance, operations, access
    outcome = Column(String(20), nullable=False, default="allowed")  # allowed, blocked

    # Display-only enrichment, not hashed
    summary = Column(Text, nullable=True)
    actor_name = Column(String(255), nullable=True)
