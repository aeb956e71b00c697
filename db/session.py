"""Engine, session factory and schema setup for the listing store."""

from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator, Dict

from loguru import logger
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from .models import Base

_ENGINE: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def _database_url() -> str:
    return os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./estate_manager.db")


def _engine_echo() -> bool:
    return os.getenv("DATABASE_ECHO", "0") in {"1", "true", "True"}


def _engine_options(url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": _engine_echo()}
    if url.startswith("sqlite"):
        if ":memory:" in url:
            # All sessions must share the one in-memory database
            options["poolclass"] = StaticPool
    else:
        options["pool_pre_ping"] = True
    return options


def get_engine() -> AsyncEngine:
    global _ENGINE
    if _ENGINE is None:
        url = _database_url()
        logger.info("Connecting listing store", url=url)
        _ENGINE = create_async_engine(url, **_engine_options(url))
    return _ENGINE


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory, creating the engine on first use.

    Sessions keep loaded attributes after commit so a removed listing can still
    be reported back to the caller.
    """

    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _async_session_factory


async def init_db() -> None:
    """Create the ``properties`` table and its indexes when missing."""

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    global _ENGINE, _async_session_factory
    engine = _ENGINE
    _ENGINE = None
    _async_session_factory = None
    if engine is not None:
        await engine.dispose()
        logger.info("Listing store connections closed")


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Session for work outside a request. Uncommitted changes roll back on error."""

    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request."""

    async with session_scope() as session:
        yield session


async def reset_database_state() -> None:
    """Drop the engine so the next use starts on a fresh database."""

    await close_db()
    await asyncio.sleep(0)
