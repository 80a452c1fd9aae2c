"""Tests for ledger chain verification."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from riskmate_api.errors import LedgerEventNotFound
from riskmate_api.ledger.service import LedgerService
from riskmate_api.ledger.verifier import LedgerVerifier
from riskmate_api.models import LedgerEvent
from riskmate_api.settings import Settings


def _tamper(db: Session, event_id: str, **values):
    """Rewrite a stored row behind the service's back."""
    db.execute(
        update(LedgerEvent)
        .where(LedgerEvent.id == event_id)
        .values({getattr(LedgerEvent, key): value for key, value in values.items()})
    )
    db.commit()
    db.expire_all()


@pytest.fixture
def chain(ledger: LedgerService, organization):
    """Three linked events for org-1."""
    return [
        ledger.append_event("org-1", "user-1", "job.created", "job", "job-1", {"status": "draft"}),
        ledger.append_event("org-1", "user-1", "job.updated", "job", "job-1", {"status": "active"}),
        ledger.append_event("org-1", "user-2", "auth.role_violation", "system", None, {"attempted_action": "job.update"}),
    ]


@pytest.fixture
def verifier(db: Session, settings: Settings) -> LedgerVerifier:
    return LedgerVerifier(db, settings)


def test_empty_ledger_is_not_verified(verifier: LedgerVerifier, organization):
    status = verifier.verify_chain("org-1")

    assert status.status == "not_verified"
    assert status.events_checked == 0
    assert status.verified_through_event_id is None
    assert status.error_details is None


def test_valid_chain_verifies(verifier: LedgerVerifier, chain):
    status = verifier.verify_chain("org-1")

    assert status.status == "verified"
    assert status.events_checked == 3
    assert status.verified_through_event_id == chain[-1].id
    assert status.last_verified_at is not None


def test_rewritten_event_name_is_detected(verifier: LedgerVerifier, db: Session, chain):
    """Editing a hashed field without recomputing hashes breaks the chain at that event."""
    e1_id, e2_id = chain[0].id, chain[1].id
    _tamper(db, e2_id, event_name="job.updated_TAMPERED")

    status = verifier.verify_chain("org-1")

    assert status.status == "error"
    assert status.verified_through_event_id == e1_id
    details = status.error_details
    assert details.reason == "hash_mismatch"
    assert details.failing_event_id == e2_id
    assert details.event_index == 1
    assert details.got_hash == chain[1].hash
    assert details.expected_hash != details.got_hash


def test_link_only_mode_skips_hash_recompute(db: Session, chain):
    settings = Settings(_env_file=None, ledger_secret_salt="test-ledger-salt", ledger_verify_recompute_hashes=False)
    _tamper(db, chain[1].id, event_name="job.deleted")

    assert LedgerVerifier(db, settings).verify_chain("org-1").status == "verified"


def test_broken_link_is_detected(verifier: LedgerVerifier, db: Session, chain):
    e2_hash, e3_id = chain[1].hash, chain[2].id
    _tamper(db, e3_id, prev_hash="0" * 64)

    status = verifier.verify_chain("org-1")

    assert status.status == "error"
    details = status.error_details
    assert details.reason == "prev_hash_mismatch"
    assert details.failing_event_id == e3_id
    assert details.event_index == 2
    assert details.expected_hash == e2_hash
    assert details.got_hash == "0" * 64


def test_missing_prev_hash_is_detected(verifier: LedgerVerifier, db: Session, chain):
    e1_hash, e2_id = chain[0].hash, chain[1].id
    _tamper(db, e2_id, prev_hash=None)

    details = verifier.verify_chain("org-1").error_details

    assert details.reason == "missing_prev_hash"
    assert details.failing_event_id == e2_id
    assert details.expected_hash == e1_hash
    assert details.got_hash == "(missing)"


def test_sequence_gap_is_detected(verifier: LedgerVerifier, db: Session, chain):
    e2_id, e3_id = chain[1].id, chain[2].id
    _tamper(db, e3_id, ledger_seq=5)

    status = verifier.verify_chain("org-1")

    assert status.verified_through_event_id == e2_id
    details = status.error_details
    assert details.reason == "sequence_gap"
    assert details.expected_seq == 3
    assert details.got_seq == 5


def test_first_failure_wins(verifier: LedgerVerifier, db: Session, chain):
    e1_id = chain[0].id
    _tamper(db, e1_id, target_type="document")
    _tamper(db, chain[2].id, prev_hash="0" * 64)

    status = verifier.verify_chain("org-1")

    assert status.error_details.failing_event_id == e1_id
    assert status.error_details.event_index == 0
    assert status.verified_through_event_id is None


def test_error_details_serialize_with_camel_case(verifier: LedgerVerifier, db: Session, chain):
    _tamper(db, chain[2].id, prev_hash="0" * 64)

    payload = verifier.verify_chain("org-1").model_dump(mode="json", by_alias=True)

    assert payload["error_details"]["failingEventId"] == chain[2].id
    assert payload["error_details"]["eventIndex"] == 2


def test_unreadable_store_reports_error(verifier: LedgerVerifier, db: Session, organization):
    with patch.object(db, "query", side_effect=OperationalError("SELECT", {}, Exception("connection lost"))):
        status = verifier.verify_chain("org-1")

    assert status.status == "error"
    assert status.error_details.reason == "store_unavailable"
    assert status.error_details.event_index == 0


def test_verify_event_walks_ancestors(verifier: LedgerVerifier, chain):
    result = verifier.verify_event("org-1", chain[2].id)

    assert result.hash_matches
    assert result.computed_hash == result.stored_hash
    assert result.prev_exists
    assert result.prev_hash_valid
    assert result.chain_ok
    assert result.chain_depth_checked == 2
    assert result.ledger_seq == 3


def test_verify_event_respects_depth_cap(db: Session, chain):
    settings = Settings(_env_file=None, ledger_secret_salt="test-ledger-salt", ledger_verify_max_depth=1)
    verifier = LedgerVerifier(db, settings)
    e1_id, e3_id = chain[0].id, chain[2].id
    _tamper(db, e1_id, event_name="job.deleted")

    capped = verifier.verify_event("org-1", e3_id)
    assert capped.chain_ok
    assert capped.chain_depth_checked == 1

    full = verifier.verify_event("org-1", e3_id, max_depth=0)
    assert not full.chain_ok


def test_verify_event_detects_rewritten_metadata(verifier: LedgerVerifier, db: Session, chain):
    e2_id = chain[1].id
    _tamper(db, e2_id, metadata_json={"status": "archived"})

    result = verifier.verify_event("org-1", e2_id)

    assert not result.hash_matches
    assert result.computed_hash != result.stored_hash


def test_verify_event_with_dangling_link(verifier: LedgerVerifier, db: Session, chain):
    e2_id = chain[1].id
    _tamper(db, e2_id, prev_hash="0" * 64)

    result = verifier.verify_event("org-1", e2_id)

    assert not result.prev_exists
    assert not result.prev_hash_valid
    assert not result.chain_ok


def test_first_event_has_nothing_to_walk(verifier: LedgerVerifier, chain):
    result = verifier.verify_event("org-1", chain[0].id)

    assert result.prev_hash is None
    assert not result.prev_exists
    assert result.prev_hash_valid
    assert result.chain_ok
    assert result.chain_depth_checked == 0


def test_verify_event_not_found(verifier: LedgerVerifier, organization):
    with pytest.raises(LedgerEventNotFound):
        verifier.verify_event("org-1", "no-such-event")


def test_verify_event_is_scoped_to_organization(verifier: LedgerVerifier, chain, other_organization):
    with pytest.raises(LedgerEventNotFound):
        verifier.verify_event("org-2", chain[0].id)


def test_rewritten_timestamp_is_detected(verifier: LedgerVerifier, db: Session, chain):
    e3 = chain[2]
    e3_id = e3.id
    _tamper(db, e3_id, created_at=e3.created_at - timedelta(days=1))

    assert not verifier.verify_event("org-1", e3_id).hash_matches
    status = verifier.verify_chain("org-1")
    assert status.status == "error"
    assert status.error_details.failing_event_id == e3_id
