"""Shared test fixtures."""

import os

# Settings are loaded at import time; required values must exist first.
os.environ.setdefault("SIGHTLINE_SECRET", "test-secret")
os.environ.setdefault("SIGHTLINE_VALIDATOR", "test-validator")
os.environ.setdefault("SIGHTLINE_DATABASE_URL", "sqlite://")

from collections.abc import Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

import sightline.database as db_module  # noqa: E402
from sightline.database import get_session  # noqa: E402
from sightline.main import app  # noqa: E402


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created.

    StaticPool ensures every session uses the same connection,
    so the in-memory database is shared across the test.
    """
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(eng)
    return eng


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    with Session(engine) as s:
        yield s


@pytest.fixture
def client(engine) -> Generator[TestClient, None, None]:
    """FastAPI TestClient with overridden DB engine and session."""
    # Patch the module-level engine so lifespan's init_db() and the
    # ingest workers both use the test engine.
    original_engine = db_module.engine
    db_module.engine = engine

    def _override_session() -> Generator[Session, None, None]:
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _override_session
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    db_module.engine = original_engine


@pytest.fixture
def drain(client):
    """Return a callable that blocks until the ingest queue is empty."""

    def _drain() -> None:
        client.portal.call(app.state.ingest_worker.join)

    return _drain
