"""Daily ledger root model."""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, Column, Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint

from riskmate_api.db.base import Base


class LedgerRoot(Base):
    """Digest over one UTC day of an organization's ledger events.

    ``first_seq``/``last_seq`` bound the events the root covers, so an auditor
    can recompute it from ``audit_logs`` alone.
    """

    __tablename__ = "ledger_roots"
    __table_args__ = (
        UniqueConstraint("organization_id", "date", name="ledger_roots_org_date_unique"),
        Index("ix_ledger_roots_org_date", "organization_id", "date"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False)
    date = Column(Date, nullable=False)
    root_hash = Column(String(64), nullable=False)
    event_count = Column(Integer, nullable=False, default=0)
    first_event_id = Column(String(36), ForeignKey("audit_logs.id"), nullable=True)
    last_event_id = Column(String(36), ForeignKey("audit_logs.id"), nullable=True)
    first_seq = Column(BigInteger, nullable=True)
    last_seq = Column(BigInteger, nullable=True)
    computed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
