"""Executive reporting endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from riskmate_api.db.session import get_db
from riskmate_api.reporting.cache import ReportingCache, get_reporting_cache
from riskmate_api.reporting.posture import RiskPostureService
from riskmate_api.routes.dependencies import get_organization_id

router = APIRouter(prefix="/api/executive", tags=["executive"])


@router.get("/risk-posture")
async def get_risk_posture(
    time_range: Optional[str] = Query(None, description="7d, 30d, 90d or all"),
    organization_id: str = Depends(get_organization_id),
    db: Session = Depends(get_db),
    cache: ReportingCache = Depends(get_reporting_cache),
):
    """Risk posture derived from the ledger, with its integrity status."""
    return RiskPostureService(db, cache=cache).get_risk_posture(organization_id, time_range)
