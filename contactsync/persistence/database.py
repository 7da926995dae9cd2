"""Relational store: engine, session factory and request-scoped sessions.

Request handlers get one session per request through ``get_db``. The sync
orchestrator instead takes the session factory and opens a short-lived
session per batch, so batches can run concurrently and commit independently.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from contactsync.core.errors import StoreUnavailableError
from contactsync.settings import get_async_database_url, settings


def engine_options(url: str) -> dict[str, Any]:
    """Pool options for the configured backend.

    SQLite runs on a single file with no server-side pool to size, so only
    network databases get pool tuning and pre-ping.
    """
    options: dict[str, Any] = {"echo": settings.database_echo}
    if make_url(url).get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
        )
    return options


async_database_url = get_async_database_url(settings.database_url)

engine = create_async_engine(async_database_url, **engine_options(async_database_url))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped session dependency."""
    async with AsyncSessionLocal() as session:
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return AsyncSessionLocal


@asynccontextmanager
async def store_errors(session: AsyncSession) -> AsyncIterator[None]:
    """Roll back and re-raise database failures as ``StoreUnavailableError``."""
    try:
        yield
    except SQLAlchemyError as e:
        await session.rollback()
        raise StoreUnavailableError(cause=e) from e
