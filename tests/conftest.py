"""Pytest configuration."""

import os

# Ensure test environment (before anything imports snaplink.config)
os.environ.setdefault("SL_DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("SL_DEBUG", "true")
os.environ.setdefault("SL_GEO_ENABLED", "false")
os.environ.setdefault("SL_ANALYTICS_API_KEY", "test-analytics-key")
os.environ.setdefault("SL_ACCOUNTING_WORKERS", "2")

from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from snaplink.models import database
from snaplink.models.tables import Base, Link


class FakeClock:
    """Stand-in for utcnow() that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'snaplink.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def make_link(session_maker):
    """Insert a link and return it. Keyword args override Link columns."""

    async def _make_link(slug: str = "abc123", **overrides) -> Link:
        values = {
            "slug": slug,
            "destination_url": f"https://example.com/{slug}",
            "is_active": True,
            "click_count": 0,
        }
        values.update(overrides)
        async with session_maker() as db:
            link = Link(**values)
            db.add(link)
            await db.commit()
            await db.refresh(link)
        return link

    return _make_link


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest_asyncio.fixture
async def app_client(engine, session_maker, monkeypatch):
    """ASGI client against the real app, lifespan running, on the test database."""
    from snaplink.main import app

    monkeypatch.setattr(database, "_engine", engine)
    monkeypatch.setattr(database, "_async_session", session_maker)

    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
