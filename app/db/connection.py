"""Database connection and session management."""

import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.config import get_settings
from app.db.models import Base

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def _engine_options(database_url: str, echo: bool) -> dict[str, Any]:
    """Engine keyword arguments for the configured backend."""
    options: dict[str, Any] = {"echo": echo}
    if make_url(database_url).get_backend_name() != "sqlite":
        options["pool_pre_ping"] = True
    return options


def _get_engine(force_new: bool = False) -> AsyncEngine:
    """Get or create the async engine."""
    global _engine
    if _engine is None or force_new:
        settings = get_settings()
        _engine = create_async_engine(
            settings.database_url,
            **_engine_options(settings.database_url, settings.debug),
        )
    return _engine


def get_session_factory(force_new: bool = False) -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory.

    The knowledge base opens one session per section from this factory,
    so its sessions must stay independent of the request session.
    """
    global _async_session_factory
    if _async_session_factory is None or force_new:
        _async_session_factory = async_sessionmaker(
            bind=_get_engine(force_new),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory


async def init_db() -> None:
    """Create any missing tables."""
    engine = _get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug("Ensured tables: %s", ", ".join(sorted(Base.metadata.tables)))


async def close_db() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None


async def check_db() -> bool:
    """Return True if the database answers a trivial query."""
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning("Database health check failed: %s", e)
        return False


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, committed on success."""
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
