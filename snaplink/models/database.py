"""Async database engine and session management."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from snaplink.config import get_settings

# Lazy initialization: engine created on first use, not at import time.
# Alembic and the test suite import models without a reachable database.
_engine = None
_async_session = None


def _get_engine():
    global _engine
    if _engine is None:
        settings = get_settings()
        pool_kwargs = {}
        if not settings.database_url.startswith("sqlite"):
            pool_kwargs = {"pool_size": 20, "max_overflow": 10}
        _engine = create_async_engine(
            settings.database_url,
            pool_pre_ping=True,
            echo=settings.debug,
            **pool_kwargs,
        )
    return _engine


def get_session_maker() -> async_sessionmaker:
    """Session factory shared by request handlers and background accounting."""
    global _async_session
    if _async_session is None:
        _async_session = async_sessionmaker(
            _get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session


async def dispose_engine() -> None:
    global _engine, _async_session
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _async_session = None


async def get_db() -> AsyncSession:
    """FastAPI dependency, yields an async session."""
    session_maker = get_session_maker()
    async with session_maker() as session:
        yield session
