"""Async SQLAlchemy engine and session factory.

Provides:
- Base: Declarative base for all salesdash tables
- get_session(): AsyncSession generator used as the session factory by stores
- open_session(): borrow one session from a factory and release it on exit
- init_db() / close_db(): engine lifecycle hooks for the app lifespan
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator, Callable
from contextlib import aclosing, asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from src.salesdash.config import get_settings

# ── Module-level engine (lazy init) ────────────────────────────────────────

_engine: AsyncEngine | None = None


def get_engine() -> AsyncEngine:
    """Get or create the async engine singleton."""
    global _engine
    if _engine is None:
        settings = get_settings()
        kwargs: dict = {"echo": False}
        if not settings.DATABASE_URL.startswith("sqlite"):
            kwargs.update(pool_size=10, max_overflow=5)
        _engine = create_async_engine(settings.DATABASE_URL, **kwargs)
    return _engine


# ── Declarative Base ────────────────────────────────────────────────────────


class Base(DeclarativeBase):
    """Base class for deal cache, cache metadata and org mapping tables."""


# ── Session Factory ─────────────────────────────────────────────────────────


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession bound to the application engine."""
    engine = get_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


@asynccontextmanager
async def open_session(
    session_factory: Callable[..., AsyncGenerator[AsyncSession, None]],
) -> AsyncIterator[AsyncSession]:
    """Take one session from session_factory and close the generator on exit."""
    async with aclosing(session_factory()) as sessions:
        yield await anext(sessions)


# ── Database Initialization ─────────────────────────────────────────────────


async def init_db() -> None:
    """Create all tables if they don't exist.

    Model modules must be imported first so their tables are registered
    on Base.metadata.
    """
    import src.salesdash.cache.models  # noqa: F401
    import src.salesdash.org.models  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine and close all connections."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None
