"""Tests for worker tasks."""

from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from riskmate_api.ledger.service import LedgerService
from riskmate_api.models import LedgerRoot
from riskmate_api.reporting.cache import InMemoryReportingCache
from riskmate_worker import tasks
from riskmate_worker.celery_app import celery_app


@pytest.fixture
def worker_db(db: Session):
    """Route the tasks' database session to the test session."""

    def test_get_db():
        yield db

    for task in (tasks.verify_organization_chain, tasks.warm_risk_posture, tasks.compute_daily_ledger_roots):
        task._db = None
    with patch("riskmate_worker.tasks.get_db", test_get_db), patch.object(db, "close"):
        yield db
    for task in (tasks.verify_organization_chain, tasks.warm_risk_posture, tasks.compute_daily_ledger_roots):
        task._db = None


def test_verify_organization_chain(worker_db, organization):
    ledger = LedgerService(worker_db)
    ledger.append_event("org-1", "user-1", "job.created", "job", "job-1")
    last = ledger.append_event("org-1", "user-1", "job.updated", "job", "job-1")
    last_id = last.id

    result = tasks.verify_organization_chain.apply(args=["org-1"]).get()

    assert result["status"] == "verified"
    assert result["verified_through_event_id"] == last_id


def test_verify_organization_chain_reports_break(worker_db, organization):
    ledger = LedgerService(worker_db)
    event = ledger.append_event("org-1", "user-1", "job.created", "job", "job-1")
    event_id = event.id
    event.event_name = "job.deleted"
    worker_db.commit()

    result = tasks.verify_organization_chain.apply(args=["org-1"]).get()

    assert result["status"] == "error"
    assert result["error_details"]["failingEventId"] == event_id


def test_warm_risk_posture_fills_cache(worker_db, organization):
    cache = InMemoryReportingCache(ttl_seconds=900)
    LedgerService(worker_db).append_event("org-1", "user-2", "auth.role_violation", "system")

    with patch("riskmate_api.reporting.posture.get_reporting_cache", return_value=cache):
        provenance = tasks.warm_risk_posture.apply(args=["org-1", "90d"]).get()

    assert provenance["time_range"] == "90d"
    assert cache.get("org-1", "90d")["unresolved_violations"] == 1


def test_compute_daily_ledger_roots(worker_db, organization):
    event = LedgerService(worker_db).append_event("org-1", "user-1", "job.created", "job", "job-1")
    day = event.created_at.date().isoformat()

    summary = tasks.compute_daily_ledger_roots.apply(kwargs={"day": day}).get()

    assert summary == {"date": day, "roots_computed": 1, "failed": 0}
    root = worker_db.query(LedgerRoot).one()
    assert root.organization_id == "org-1"
    assert root.first_seq == root.last_seq == 1


def test_daily_roots_are_scheduled():
    entry = celery_app.conf.beat_schedule["compute-daily-ledger-roots"]
    assert entry["task"] == "riskmate_worker.tasks.compute_daily_ledger_roots"
    assert entry["task"] in celery_app.tasks
