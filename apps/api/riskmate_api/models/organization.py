"""Organization model."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String

from riskmate_api.db.base import Base


class Organization(Base):
    """Tenant partition for the audit ledger."""

    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
