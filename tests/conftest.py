"""Shared test fixtures.

Tests run against a SQLite file database in a temporary directory (a file
rather than ``:memory:`` so concurrent sessions share it). Every test gets
clean tables; the app creates the schema on import.

Set TEST_DATABASE_URL to run the suite against PostgreSQL instead.
"""

import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="feedstudio-tests-")

# Configure the app before any of its modules are imported.
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL",
    f"sqlite:///{os.path.join(_TMP_DIR, 'feedstudio_test.db')}",
)
os.environ["AUTH_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from feedstudio.database import get_db, SessionLocal
from feedstudio.main import app
from feedstudio.models import ContentDocument, Topic

# Children before parents.
_CLEAN_TABLES = ["content_versions", "audit_log", "content", "topics", "users"]


@pytest.fixture(autouse=True)
def _clean_tables():
    """Empty every table before the test runs."""
    db = SessionLocal()
    try:
        for table in _CLEAN_TABLES:
            db.execute(text(f"DELETE FROM {table}"))
        db.commit()
    finally:
        db.close()
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def client(db):
    """TestClient with the DB dependency overridden to use the test session."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def make_topic(db):
    """Factory for topics."""

    def _make(topic_id: str = "topic-1", title: str = "Test Topic", **overrides) -> Topic:
        fields = {"description": "Trending this week", "status": "approved"}
        fields.update(overrides)
        topic = Topic(id=topic_id, title=title, **fields)
        db.add(topic)
        db.commit()
        return topic

    return _make


@pytest.fixture()
def make_content(db):
    """Factory for content documents as the generation pipeline leaves them."""

    def _make(
        content_id: str = "content-1",
        title: str = "Test Article",
        content: str = "Original content",
        **overrides,
    ) -> ContentDocument:
        fields = {"outline": "Original outline", "edited_content": None, "topic_id": None}
        fields.update(overrides)
        doc = ContentDocument(id=content_id, title=title, content=content, **fields)
        db.add(doc)
        db.commit()
        return doc

    return _make
