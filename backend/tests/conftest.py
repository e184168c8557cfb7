"""Pytest fixtures — file-backed SQLite database for fast, isolated tests."""
import uuid
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from app.database import Base, get_db
from app.main import app

# Import all models so they register with Base.metadata
from app.models.user import User                    # noqa: F401
from app.models.project import Project              # noqa: F401
from app.models.milestone import Milestone          # noqa: F401
from app.models.issue import Issue                  # noqa: F401
from app.models.change_record import ChangeRecord   # noqa: F401

SQLITE_URL = "sqlite:///./test.db"


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    """FastAPI TestClient with the database dependency overridden to use SQLite."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Service-level helpers
# ---------------------------------------------------------------------------
def make_user(db, name: str = "Alice") -> User:
    """Insert a user directly and return it."""
    user = User(user_id=str(uuid.uuid4()), display_name=name)
    db.add(user)
    db.commit()
    return user


def make_project(tracker, actor_id: str, name: str = "Apollo") -> int:
    """Create a project through the tracker; returns its id."""
    return tracker.create(actor_id, "project", {"name": name, "owner_id": actor_id}).entity_id


def make_issue(tracker, actor_id: str, project_id: int, **fields) -> int:
    """Create an issue through the tracker; returns its id."""
    payload = {"project_id": project_id, "title": "Fix bug", "status": "todo", "priority": 3}
    payload.update(fields)
    return tracker.create(actor_id, "issue", payload).entity_id


# ---------------------------------------------------------------------------
# API helpers: return the response JSON
# ---------------------------------------------------------------------------
def create_test_user(client: TestClient, name: str = "Test User") -> dict:
    """Helper — POST /api/users and return response JSON."""
    resp = client.post("/api/users/", json={"display_name": name})
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_test_project(client: TestClient, actor_id: str, name: str = "Test Project") -> dict:
    """Helper — POST /api/projects and return the mutation JSON."""
    resp = client.post(f"/api/projects/?actor_id={actor_id}", json={"name": name})
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_test_issue(client: TestClient, actor_id: str, project_id: int, **fields) -> dict:
    """Helper — POST /api/issues and return the mutation JSON."""
    payload = {"project_id": project_id, "title": "Fix bug", "status": "todo"}
    payload.update(fields)
    resp = client.post(f"/api/issues/?actor_id={actor_id}", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()
