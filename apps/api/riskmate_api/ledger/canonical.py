"""Canonical event encoding and ledger hashing.

Every component that computes or checks a ledger hash goes through this
module. The encoding is versioned: changing field order, null handling,
timestamp format or JSON layout invalidates every stored hash and requires a
new ``ENCODING_VERSION``.

Encoding v1:

* a JSON object with keys in the fixed order
  ``seq, org_id, actor_id, event, target_type, target_id, created_at, metadata``
* ``actor_id`` / ``target_id`` of ``None`` become ``""``; all identifiers are
  stringified
* ``created_at`` is UTC, ``YYYY-MM-DDTHH:MM:SS.ffffffZ``
* ``metadata`` keys are sorted at every nesting level, ``None`` becomes ``{}``
* serialized with 2-space indentation, ``": "`` and ``","`` separators,
  non-ASCII kept verbatim, UTF-8 encoded

Hash: ``sha256(encoding || prev_hash || salt)`` as lowercase hex.
"""

import hashlib
import json
from datetime import datetime, timezone
from typing import Any, Optional, Union

ENCODING_VERSION = "v1"

CANONICAL_FIELD_ORDER = (
    "seq",
    "org_id",
    "actor_id",
    "event",
    "target_type",
    "target_id",
    "created_at",
    "metadata",
)


def format_timestamp(value: Union[datetime, str]) -> str:
    """Render a timestamp in the canonical UTC form.

    Naive datetimes are taken to be UTC, which is how the store persists them.
    Strings are passed through untouched.
    """
    if isinstance(value, str):
        return value
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="microseconds") + "Z"


def _sorted_document(value: Any) -> Any:
    """Rebuild nested dicts with sorted keys so stores that reorder keys still hash alike."""
    if isinstance(value, dict):
        return {str(key): _sorted_document(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [_sorted_document(item) for item in value]
    return value


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def canonical_document(
    seq: int,
    org_id: Any,
    actor_id: Any,
    event_name: str,
    target_type: str,
    target_id: Any,
    metadata: Optional[dict],
    created_at: Union[datetime, str],
) -> dict:
    """Build the ordered document that gets serialized for hashing."""
    return {
        "seq": int(seq),
        "org_id": str(org_id),
        "actor_id": _as_text(actor_id),
        "event": event_name,
        "target_type": _as_text(target_type),
        "target_id": _as_text(target_id),
        "created_at": format_timestamp(created_at),
        "metadata": _sorted_document(metadata or {}),
    }


def encode_event(
    seq: int,
    org_id: Any,
    actor_id: Any,
    event_name: str,
    target_type: str,
    target_id: Any,
    metadata: Optional[dict],
    created_at: Union[datetime, str],
) -> bytes:
    """Serialize an event's hashed fields to canonical bytes."""
    document = canonical_document(
        seq, org_id, actor_id, event_name, target_type, target_id, metadata, created_at
    )
    return json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")


def compute_ledger_hash(
    prev_hash: Optional[str],
    seq: int,
    org_id: Any,
    actor_id: Any,
    event_name: str,
    target_type: str,
    target_id: Any,
    metadata: Optional[dict],
    created_at: Union[datetime, str],
    secret_salt: str,
) -> str:
    """Compute the chain-linked hash of an event."""
    digest = hashlib.sha256()
    digest.update(
        encode_event(seq, org_id, actor_id, event_name, target_type, target_id, metadata, created_at)
    )
    digest.update((prev_hash or "").encode("utf-8"))
    digest.update(secret_salt.encode("utf-8"))
    return digest.hexdigest()


def hash_stored_event(event, secret_salt: str) -> str:
    """Recompute the hash of a persisted ``LedgerEvent`` from its own fields."""
    return compute_ledger_hash(
        event.prev_hash,
        event.ledger_seq,
        event.organization_id,
        event.actor_id,
        event.event_name,
        event.target_type,
        event.target_id,
        event.metadata_json,
        event.created_at,
        secret_salt,
    )
