import os
from datetime import datetime

import pytest

os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("BUSINESS_TZ", "UTC")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from intrack.db import models  # noqa: F401
from intrack.db.database import Base, get_db
from intrack.main import app
from intrack.services import stats
from intrack.services.store import RecordStore


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return RecordStore(db)


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def add_record(store):
    """Record one inspection through the engine and return it."""

    def _add(line_id, type, timestamp, inspector_id="qc-1", **lists):
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        payload = {
            "production_line_id": line_id,
            "inspector_id": inspector_id,
            "type": type,
            "timestamp": timestamp,
            **lists,
        }
        return stats.record_inspection(store, payload)

    return _add
