"""Event classification and metadata budget applied before an append."""

import json
import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

MATERIAL_SEVERITIES = ("material", "critical")


def category_for(event_name: str) -> str:
    """Map an event name to governance, access or operations."""
    if "auth." in event_name or "violation" in event_name or "policy." in event_name:
        return "governance"
    if "user_role_changed" in event_name:
        return "governance"
    if any(
        marker in event_name
        for marker in ("access.", "security.", "login", "team.", "account.")
    ):
        return "access"
    return "operations"


def outcome_for(event_name: str) -> str:
    """Blocked for violations and denials, allowed otherwise."""
    if "violation" in event_name or "blocked" in event_name or "denied" in event_name:
        return "blocked"
    return "allowed"


def severity_for(event_name: str) -> str:
    """Critical, material or info."""
    if "violation" in event_name or "critical" in event_name:
        return "critical"
    if "flag" in event_name or "change" in event_name or "remove" in event_name:
        return "material"
    return "info"


def is_material(event_name: str, severity: Optional[str] = None) -> bool:
    """Whether an event should invalidate cached reporting aggregates."""
    if severity in MATERIAL_SEVERITIES:
        return True
    return any(
        marker in event_name
        for marker in ("violation", "flag", "signoff", "risk_score_changed")
    )


def truncate_metadata(metadata: Optional[dict], max_bytes: int) -> dict:
    """Bound a metadata document to ``max_bytes`` of compact JSON.

    Documents over budget are replaced by ``{"truncated": True}``; a document
    that cannot be serialized at all gets the same marker.
    """
    if not metadata:
        return {}
    try:
        size = len(json.dumps(metadata, separators=(",", ":"), ensure_ascii=False).encode("utf-8"))
    except (TypeError, ValueError) as e:
        logger.warning(f"Metadata not serializable, storing truncation marker: {e}")
        return {"truncated": True}
    if size <= max_bytes:
        return metadata
    logger.info(f"Metadata of {size} bytes exceeds {max_bytes} byte budget, truncated")
    return {"truncated": True}


def humanize_event_name(event_name: str) -> str:
    """``job.risk_score_changed`` -> ``Job Risk Score Changed``."""
    words = event_name.replace(".", " ").replace("_", " ")
    return re.sub(r"\b\w", lambda match: match.group(0).upper(), words)
