"""Pytest configuration and fixtures."""

import os

# Settings are cached on first import; point them at SQLite before any app import.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from riskmate_api.db.base import Base
from riskmate_api.db.session import get_db
from riskmate_api.ledger.service import LedgerService
from riskmate_api.main import app
from riskmate_api.models import Organization
from riskmate_api.reporting.cache import InMemoryReportingCache, get_reporting_cache
from riskmate_api.settings import Settings

# Use test database URL from environment or default to SQLite in-memory
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")


@pytest.fixture(scope="function")
def db():
    """
    Create a test database session.

    For integration tests, use TEST_DATABASE_URL environment variable
    to point to a real PostgreSQL instance.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(TEST_DATABASE_URL)

    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def settings() -> Settings:
    """Ledger settings with a fixed salt."""
    return Settings(_env_file=None, ledger_secret_salt="test-ledger-salt")


@pytest.fixture
def organization(db: Session) -> Organization:
    """Create the organization used by most tests."""
    org = Organization(id="org-1", name="Test Org")
    db.add(org)
    db.commit()
    return org


@pytest.fixture
def other_organization(db: Session) -> Organization:
    """Create a second organization for isolation tests."""
    org = Organization(id="org-2", name="Other Org")
    db.add(org)
    db.commit()
    return org


@pytest.fixture
def ledger(db: Session, settings: Settings) -> LedgerService:
    """Ledger service bound to the test session."""
    return LedgerService(db, settings)


@pytest.fixture
def cache() -> InMemoryReportingCache:
    """Fresh in-process reporting cache."""
    return InMemoryReportingCache(ttl_seconds=900)


@pytest.fixture
def client(db: Session, cache: InMemoryReportingCache):
    """API client wired to the test session and cache."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_reporting_cache] = lambda: cache
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
