from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings
from src.sc_common.errors import BusyError

# PostgreSQL SQLSTATE codes that mean "could not get the row lock in time"
_LOCK_NOT_AVAILABLE = "55P03"
_QUERY_CANCELED = "57014"
_DEADLOCK_DETECTED = "40P01"


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models across modules."""

    pass


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=20,
    max_overflow=10,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: yields an AsyncSession, auto-closes after request."""
    async with async_session_factory() as session:
        yield session


async def set_lock_timeout(db: AsyncSession, timeout_ms: int) -> None:
    """Bound row-lock waits for the rest of the current transaction.

    SET LOCAL does not accept bind parameters, so the value is formatted in;
    it is always an int coming from settings.
    """
    await db.execute(text(f"SET LOCAL lock_timeout = '{int(timeout_ms)}ms'"))


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


@asynccontextmanager
async def lock_wait_guard(resource: str) -> AsyncIterator[None]:
    """Translate a PostgreSQL lock timeout or deadlock inside the block into BusyError."""
    try:
        yield
    except DBAPIError as exc:
        if _sqlstate(exc) in (_LOCK_NOT_AVAILABLE, _QUERY_CANCELED, _DEADLOCK_DETECTED):
            raise BusyError(resource) from exc
        raise
