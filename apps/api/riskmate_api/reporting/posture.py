"""Executive risk posture derived from the audit ledger."""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import redis
from sqlalchemy.orm import Session

from riskmate_api.ledger.canonical import format_timestamp
from riskmate_api.ledger.classification import MATERIAL_SEVERITIES, humanize_event_name
from riskmate_api.ledger.verifier import LedgerVerifier
from riskmate_api.models import LedgerEvent
from riskmate_api.reporting.cache import ReportingCache, get_reporting_cache
from riskmate_api.settings import Settings, get_settings

logger = logging.getLogger(__name__)

TIME_RANGE_DAYS = {"7d": 7, "30d": 30, "90d": 90, "all": None}
DEFAULT_TIME_RANGE = "30d"
VIOLATION_EVENT = "auth.role_violation"
MAX_BASIS_EVENTS = 10


def normalize_time_range(time_range: Optional[str]) -> str:
    """Unknown or missing windows fall back to 30 days."""
    return time_range if time_range in TIME_RANGE_DAYS else DEFAULT_TIME_RANGE


def summarize_events(events: Iterable[LedgerEvent]) -> dict:
    """Count events by classification and by the event families executives track."""
    by_category, by_severity, by_outcome = Counter(), Counter(), Counter()
    summary = {
        "total_events": 0,
        "violations": 0,
        "proof_packs": 0,
        "flagged": 0,
        "signed_signoffs": 0,
        "blocked": 0,
        "critical": 0,
    }
    for event in events:
        summary["total_events"] += 1
        by_category[event.category] += 1
        by_severity[event.severity] += 1
        by_outcome[event.outcome] += 1
        name = event.event_name
        if name == VIOLATION_EVENT:
            summary["violations"] += 1
        if name.startswith("proof_pack."):
            summary["proof_packs"] += 1
        if "flag" in name and "unflag" not in name:
            summary["flagged"] += 1
        if name == "signoff.signed":
            summary["signed_signoffs"] += 1
        if event.outcome == "blocked":
            summary["blocked"] += 1
        if event.severity == "critical":
            summary["critical"] += 1
    summary["by_category"] = dict(by_category)
    summary["by_severity"] = dict(by_severity)
    summary["by_outcome"] = dict(by_outcome)
    return summary


def violation_drivers(events: Iterable[LedgerEvent]) -> list[dict]:
    """Group role violations by the action they attempted and keep the top one."""
    reasons = Counter()
    for event in events:
        if event.event_name != VIOLATION_EVENT:
            continue
        metadata = event.metadata_json or {}
        reason = metadata.get("attempted_action") or metadata.get("reason") or "unknown"
        reasons[str(reason)] += 1
    if not reasons:
        return []
    # Counter.most_common keeps first-seen order among ties
    reason, count = reasons.most_common(1)[0]
    return [
        {
            "key": f"VIOLATION.{reason}",
            "label": f"{humanize_event_name(reason)} blocked",
            "count": count,
        }
    ]


def exposure_level(summary: dict) -> str:
    if summary["violations"] > 0:
        return "high"
    if summary["critical"] > 0 or summary["blocked"] > 0 or summary["flagged"] > 0:
        return "moderate"
    return "low"


def confidence_statement(summary: dict, ledger_integrity: str) -> str:
    if ledger_integrity == "error":
        return "Ledger integrity check failed. The audit trail requires investigation."
    if summary["violations"] > 0:
        plural = "s" if summary["violations"] > 1 else ""
        return f"{summary['violations']} blocked role violation{plural} in the selected period."
    if summary["flagged"] > 0:
        plural = "s" if summary["flagged"] > 1 else ""
        return f"No unresolved governance violations. {summary['flagged']} flagged item{plural} under review."
    return "No unresolved governance violations."


def recommended_actions(summary: dict, ledger_integrity: str) -> list[dict]:
    """Top three actions, most urgent first."""
    actions = []
    if ledger_integrity == "error":
        actions.append(
            {
                "priority": 1,
                "action": "Investigate ledger integrity failure",
                "reason": "A broken hash chain means the audit trail cannot be trusted",
            }
        )
    if summary["violations"] > 0:
        plural = "s" if summary["violations"] > 1 else ""
        actions.append(
            {
                "priority": 2,
                "action": f"Review {summary['violations']} blocked violation{plural}",
                "reason": "Role violations indicate unauthorized access attempts",
            }
        )
    if summary["flagged"] > 0:
        plural = "s" if summary["flagged"] > 1 else ""
        actions.append(
            {
                "priority": 3,
                "action": f"Resolve {summary['flagged']} flagged item{plural}",
                "reason": "Flagged records weaken audit defensibility until reviewed",
            }
        )
    if summary["proof_packs"] == 0:
        actions.append(
            {
                "priority": 4,
                "action": "Generate a proof pack",
                "reason": "No proof pack has been produced in this period",
            }
        )
    return sorted(actions, key=lambda item: item["priority"])[:3]


class RiskPostureService:
    """Compute and cache executive risk posture per organization and window."""

    def __init__(
        self,
        db: Session,
        cache: Optional[ReportingCache] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize risk posture service."""
        self.db = db
        self.settings = settings or get_settings()
        self.cache = cache or get_reporting_cache()
        self.verifier = LedgerVerifier(db, self.settings)

    def _events(
        self,
        organization_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[LedgerEvent]:
        query = self.db.query(LedgerEvent).filter(LedgerEvent.organization_id == organization_id)
        if start is not None:
            query = query.filter(LedgerEvent.created_at >= start)
        if end is not None:
            query = query.filter(LedgerEvent.created_at < end)
        return query.order_by(LedgerEvent.ledger_seq.asc()).all()

    def compute_risk_posture(
        self, organization_id: str, time_range: str, now: Optional[datetime] = None
    ) -> dict:
        """Aggregate the ledger for one window without touching the cache."""
        time_range = normalize_time_range(time_range)
        now = now or datetime.now(timezone.utc).replace(tzinfo=None)
        days = TIME_RANGE_DAYS[time_range]

        cutoff = now - timedelta(days=days) if days else None
        events = self._events(organization_id, start=cutoff)
        current = summarize_events(events)

        if days:
            previous_events = self._events(
                organization_id, start=cutoff - timedelta(days=days), end=cutoff
            )
            previous = summarize_events(previous_events)
        else:
            previous = summarize_events([])

        material = [event for event in events if event.severity in MATERIAL_SEVERITIES]
        last_material = max((event.created_at for event in material), default=None)
        basis_event_ids = [event.id for event in reversed(material)][:MAX_BASIS_EVENTS]

        integrity = self.verifier.verify_chain(organization_id)
        ledger_integrity = integrity.status

        return {
            "exposure_level": exposure_level(current),
            "unresolved_violations": current["violations"],
            "blocked_events": current["blocked"],
            "critical_events": current["critical"],
            "flagged_events": current["flagged"],
            "signed_signoffs": current["signed_signoffs"],
            "proof_packs_generated": current["proof_packs"],
            "total_events": current["total_events"],
            "counts_by_category": current["by_category"],
            "counts_by_severity": current["by_severity"],
            "counts_by_outcome": current["by_outcome"],
            "last_material_event_at": format_timestamp(last_material) if last_material else None,
            "confidence_statement": confidence_statement(current, ledger_integrity),
            "ledger_integrity": ledger_integrity,
            "ledger_integrity_last_verified_at": (
                integrity.last_verified_at.isoformat() if integrity.last_verified_at else None
            ),
            "ledger_integrity_verified_through_event_id": integrity.verified_through_event_id,
            "ledger_integrity_error_details": (
                integrity.error_details.model_dump(mode="json", by_alias=True, exclude_none=True)
                if integrity.error_details
                else None
            ),
            "drivers": {"violations": violation_drivers(events)},
            "deltas": {
                key: current[key] - previous[key]
                for key in (
                    "total_events",
                    "violations",
                    "blocked",
                    "critical",
                    "flagged",
                    "signed_signoffs",
                    "proof_packs",
                )
            },
            "recommended_actions": recommended_actions(current, ledger_integrity),
            "_provenance": {
                "generated_at": format_timestamp(now),
                "basis_event_count": len(basis_event_ids),
                "basis_event_ids": basis_event_ids,
                "time_range": time_range,
            },
        }

    def refresh_risk_posture(self, organization_id: str, time_range: str) -> dict:
        """Recompute a window and store it in the cache.

        The result is only stored if no invalidation for the organization
        happened while it was being computed. A cache outage is logged and the
        fresh result is still returned.
        """
        time_range = normalize_time_range(time_range)
        log_extra = {"organization_id": organization_id, "time_range": time_range}
        try:
            generation = self.cache.generation(organization_id)
        except redis.RedisError as e:
            logger.warning(f"Reporting cache unavailable, serving uncached posture: {e}", extra=log_extra)
            return self.compute_risk_posture(organization_id, time_range)

        posture = self.compute_risk_posture(organization_id, time_range)
        try:
            stored = self.cache.set(organization_id, time_range, posture, generation=generation)
        except redis.RedisError as e:
            logger.warning(f"Could not cache risk posture: {e}", extra=log_extra)
            return posture
        if not stored:
            logger.debug(
                f"Discarded risk posture for organization {organization_id}: invalidated while computing",
                extra=log_extra,
            )
        return posture

    def get_risk_posture(self, organization_id: str, time_range: Optional[str]) -> dict:
        """Serve a window from the cache, computing it on a miss."""
        time_range = normalize_time_range(time_range)
        try:
            cached = self.cache.get(organization_id, time_range)
        except redis.RedisError as e:
            logger.warning(
                f"Reporting cache read failed, treating as a miss: {e}",
                extra={"organization_id": organization_id, "time_range": time_range},
            )
            cached = None
        if cached is not None:
            return {**cached, "_provenance": {**cached["_provenance"], "cached": True}}

        posture = self.refresh_risk_posture(organization_id, time_range)
        return {**posture, "_provenance": {**posture["_provenance"], "cached": False}}
