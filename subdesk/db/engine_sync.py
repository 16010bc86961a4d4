# subdesk/db/engine_sync.py
"""
Synchronous engine used by every domain service and scheduler job.
SQLite (default) runs in WAL mode to avoid "database is locked" between the
request threads, the scheduler and the mail queue worker.
"""
import os
from typing import Generator

from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine

from ..core.config import DEFAULT_DATABASE_FILE, get_settings

DATABASE_URL = get_settings().database_url

if DATABASE_URL is None:
    os.makedirs(os.path.dirname(DEFAULT_DATABASE_FILE), exist_ok=True)
    DATABASE_URL = f"sqlite:///{DEFAULT_DATABASE_FILE}"

_is_sqlite = DATABASE_URL.startswith("sqlite")
_connect_args = {"check_same_thread": False} if _is_sqlite else {}

sync_engine = create_engine(DATABASE_URL, echo=False, connect_args=_connect_args)


if _is_sqlite:
    @event.listens_for(sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.close()


def get_sync_session() -> Generator[Session, None, None]:
    """
    Dependency for SYNC SQLModel session injection.
    Usage: session: Session = Depends(get_sync_session)
    """
    with Session(sync_engine) as session:
        yield session


def new_session() -> Session:
    """Standalone session for background work (scheduler jobs, mail worker)."""
    return Session(sync_engine)


def create_sync_db_and_tables():
    """Create all tables defined in SQLModel models."""
    from .. import models  # noqa: F401  (registers every table)

    SQLModel.metadata.create_all(sync_engine)
