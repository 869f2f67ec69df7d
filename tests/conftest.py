"""
Shared pytest fixtures.

Uses a SQLite database file so no Postgres is required for tests. Every
test starts with empty tables and a FixedClock.
"""
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker

from focus_streaks.core.clock import FixedClock, get_clock
from focus_streaks.db.base import Base, get_db
from focus_streaks.main import app
from focus_streaks.models import FocusSessionRecord, UserStreakRecord

SQLITE_URL = "sqlite:///./test_focus_streaks.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

FROZEN_NOW = datetime(2025, 1, 20, 12, 0, tzinfo=timezone.utc)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with TestingSessionLocal() as db:
        db.execute(delete(FocusSessionRecord))
        db.execute(delete(UserStreakRecord))
        db.commit()


@pytest.fixture()
def clock():
    return FixedClock(FROZEN_NOW)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db, clock):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def session_factory():
    """For tests that need one DB session per thread."""
    return TestingSessionLocal
