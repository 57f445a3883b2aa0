"""Pytest configuration and fixtures for backend tests."""

import os
import tempfile
from pathlib import Path

# Settings are validated at import time; provide what they require.
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("RUNPOD_POLL_INTERVAL_SECONDS", "0")
os.environ.setdefault("DRIVE_REQUEST_DELAY_SECONDS", "0")
os.environ.setdefault(
    "DATABASE_URL", f"sqlite:///{Path(tempfile.gettempdir()) / 'radiocheck-tests.db'}"
)

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from radiocheck.db.base import Base  # noqa: E402
from radiocheck.models import Radio  # noqa: E402


def create_test_db():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    """Keep tests off the network: the matcher cache sees Redis as down."""
    monkeypatch.setattr("radiocheck.services.cache.get_redis_client", lambda: None)


@pytest.fixture
def db_engine():
    return create_test_db()


@pytest.fixture
def db_session(db_engine):
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_radio(db_session):
    radio = Radio(name="Radio Norte", user_id="user-1", drive_folder_id="root-folder")
    db_session.add(radio)
    db_session.commit()
    db_session.refresh(radio)
    return radio
