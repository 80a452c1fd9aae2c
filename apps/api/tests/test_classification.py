"""Tests for event classification and metadata limits."""

import pytest

from riskmate_api.ledger.classification import (
    category_for,
    humanize_event_name,
    is_material,
    outcome_for,
    severity_for,
    truncate_metadata,
)


@pytest.mark.parametrize(
    "event_name,category",
    [
        ("auth.role_violation", "governance"),
        ("policy.updated", "governance"),
        ("team.user_role_changed", "governance"),
        ("access.revoked", "access"),
        ("security.password_changed", "access"),
        ("account.created", "access"),
        ("job.created", "operations"),
        ("review_queue.assigned", "operations"),
    ],
)
def test_category_for(event_name, category):
    assert category_for(event_name) == category


def test_outcome_for():
    assert outcome_for("auth.role_violation") == "blocked"
    assert outcome_for("export.denied") == "blocked"
    assert outcome_for("job.created") == "allowed"


def test_severity_for():
    assert severity_for("auth.role_violation") == "critical"
    assert severity_for("job.flagged") == "material"
    assert severity_for("job.risk_score_changed") == "material"
    assert severity_for("job.created") == "info"


def test_is_material():
    assert is_material("auth.role_violation")
    assert is_material("signoff.signed")
    assert is_material("job.risk_score_changed")
    assert is_material("job.created", severity="critical")
    assert not is_material("job.created")
    assert not is_material("job.created", severity="info")


def test_truncate_metadata_within_budget():
    metadata = {"status": "active", "nested": {"a": [1, 2, 3]}}
    assert truncate_metadata(metadata, 8000) is metadata


def test_truncate_metadata_over_budget():
    assert truncate_metadata({"blob": "x" * 100}, 50) == {"truncated": True}


def test_truncate_metadata_empty():
    assert truncate_metadata(None, 8000) == {}
    assert truncate_metadata({}, 8000) == {}


def test_truncate_metadata_unserializable():
    assert truncate_metadata({"value": object()}, 8000) == {"truncated": True}


def test_humanize_event_name():
    assert humanize_event_name("job.risk_score_changed") == "Job Risk Score Changed"
    assert humanize_event_name("job.update") == "Job Update"
