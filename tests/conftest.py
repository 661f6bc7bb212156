"""Shared test fixtures."""
import os

# Must be set before app modules build their settings and engine
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["CACHE_ENABLED"] = "false"
os.environ["APP_ENV"] = "dev"

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import get_db, use_immediate_transactions
from app.main import app
from app.models.wallet import Base
from app.services.sessions import SessionStore


@pytest.fixture
def engine():
    """Fresh in-memory database shared across threads."""
    engine = use_immediate_transactions(create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    ))
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> SessionStore:
    return SessionStore(clock=clock, reply_timeout=1.0)


@pytest.fixture
def client(session_factory, store):
    """Test client wired to the in-memory database and a fresh session store."""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    previous_store = app.state.session_store
    app.dependency_overrides[get_db] = override_get_db
    app.state.session_store = store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        app.state.session_store = previous_store
