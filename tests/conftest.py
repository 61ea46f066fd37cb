"""
Shared pytest fixtures for all tests.

Every test gets its own temporary SQLite database with the schema created.
"""

import os
import tempfile
from pathlib import Path

import pytest
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from starlette.testclient import TestClient

from musicbox.api.main import create_app
from musicbox.config import Settings
from musicbox.db.session import init_db
from musicbox.services.box.database import lifecycle
from musicbox.services.box.database import operations as ops


env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


@pytest.fixture
def sqlite_url():
    """Create a temporary SQLite database file and return its URL."""
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(db_fd)
    yield f"sqlite:///{db_path}"
    os.unlink(db_path)


@pytest.fixture
def engine(sqlite_url):
    engine = create_engine(sqlite_url, echo=False)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Session for direct operation tests; committed by the test when needed."""
    with Session(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def user(session):
    return ops.create_user(
        session,
        {
            "displayName": "Dana",
            "username": "dana",
            "email": "dana@example.com",
            "identitySubject": "dev-user",
        },
    )


@pytest.fixture
def box(session, user):
    return lifecycle.create_box(session, {"name": "Road Trip", "creator": user.id})


@pytest.fixture
def settings(sqlite_url):
    return Settings(database_url=sqlite_url, environment="development")


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as client:
        yield client
