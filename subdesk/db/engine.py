# subdesk/db/engine.py
"""
Async SQLModel engine and session management for the FastAPI Users integration.
Uses AsyncSession for compatibility with fastapi-users-db-sqlalchemy.
Points at the same database as the sync engine; for SQLite the driver is
swapped for aiosqlite.
"""
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from .engine_sync import DATABASE_URL as SYNC_DATABASE_URL


def to_async_url(url: str) -> str:
    """Map a sync SQLite URL to aiosqlite. Other URLs must already name an async driver."""
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


DATABASE_URL = to_async_url(SYNC_DATABASE_URL)
_is_sqlite = DATABASE_URL.startswith("sqlite")

_connect_args = {"check_same_thread": False} if _is_sqlite else {}
engine = create_async_engine(DATABASE_URL, echo=False, connect_args=_connect_args)

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for async SQLModel session injection.
    Usage: session: AsyncSession = Depends(get_session)
    """
    async with async_session_maker() as session:
        yield session


async def create_db_and_tables():
    """
    Create all tables defined in SQLModel models.
    Call this at application startup after importing all models.
    """
    from .. import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
