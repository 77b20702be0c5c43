"""Engine and session factory for the inspection store.

``get_db`` hands one session per request to the routes, which wrap it in a
``RecordStore`` for the statistics engine.
"""
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from intrack.settings import DB_URL


def build_engine(url: str):
    if make_url(url).get_backend_name() == "sqlite":
        # sqlite connections are shared with the threadpool FastAPI runs sync routes in
        return create_engine(url, connect_args={"check_same_thread": False}, future=True)
    return create_engine(url, pool_pre_ping=True, pool_recycle=3600, future=True)


engine = build_engine(DB_URL)
SessionLocal = sessionmaker(engine, autoflush=False, autocommit=False, future=True)
Base = declarative_base()


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
