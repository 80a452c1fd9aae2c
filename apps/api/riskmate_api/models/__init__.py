"""Database models - import all models here for Alembic discovery."""

from riskmate_api.models.ledger import LedgerEvent
from riskmate_api.models.ledger_root import LedgerRoot
from riskmate_api.models.organization import Organization

__all__ = [
    "Organization",
    "LedgerEvent",
    "LedgerRoot",
]
