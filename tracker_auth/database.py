"""
Engine and session factory for the local key/value database (SQLite by default).
"""
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tracker_auth.config import DATABASE_URL
from tracker_auth.models import Base


def make_engine(url: str = DATABASE_URL) -> Engine:
    """
    Build an engine for url. In-memory SQLite needs StaticPool so every connection
    (including the worker threads the store uses) sees the same database.
    """
    if url.startswith("sqlite:///:memory:") or url == "sqlite://":
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


def init_db(engine: Engine) -> sessionmaker:
    """Create tables if missing and return a session factory bound to engine."""
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
