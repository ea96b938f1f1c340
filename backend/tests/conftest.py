"""Shared fixtures: a throwaway SQLite database rebuilt for every test."""

import os
import tempfile
from datetime import datetime, timedelta

os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(tempfile.mkdtemp(), "quiz_test.db")
os.environ.setdefault("STORAGE_RETRY_DELAY", "0")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from db import Base, engine, get_session  # noqa: E402
from stats import stats_cache  # noqa: E402


class Clock:
    """Deterministic clock for AttemptManager."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    stats_cache.clear()
    yield
    stats_cache.clear()


@pytest.fixture()
def db():
    with get_session() as session:
        yield session


@pytest.fixture()
def client():
    from main import app
    return TestClient(app)


@pytest.fixture()
def clock():
    return Clock(datetime(2025, 1, 1, 12, 0, 0))
