"""
Click aggregates for a single link, as drawn by the dashboard charts.

All counts come from click_events, not links.click_count: the counter is a
best-effort tally used for click caps and can drift from the event rows.
"""

import datetime
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from snaplink.models.tables import ClickEvent

PERIODS = {
    "24h": datetime.timedelta(hours=24),
    "7d": datetime.timedelta(days=7),
    "30d": datetime.timedelta(days=30),
    "90d": datetime.timedelta(days=90),
}

TOP_N = 10
DAILY_LIMIT = 30


@dataclass
class LinkAnalytics:
    total_clicks: int = 0
    unique_visitors: int = 0
    devices: list[dict] = field(default_factory=list)
    browsers: list[dict] = field(default_factory=list)
    countries: list[dict] = field(default_factory=list)
    operating_systems: list[dict] = field(default_factory=list)
    clicks_by_day: list[dict] = field(default_factory=list)
    referrers: list[dict] = field(default_factory=list)


def period_start(period: str, now: datetime.datetime | None = None) -> datetime.datetime | None:
    """Start of the reporting window, or None for all time (unknown periods included)."""
    delta = PERIODS.get(period)
    if delta is None:
        return None
    now = now or datetime.datetime.now(datetime.timezone.utc)
    return now - delta


def _scope(link_id: UUID, since: datetime.datetime | None):
    clauses = [ClickEvent.link_id == link_id]
    if since is not None:
        clauses.append(ClickEvent.created_at >= since)
    return and_(*clauses)


async def _grouped(db: AsyncSession, column, where, key: str, default: str, limit: int | None = TOP_N):
    clicks = func.count(ClickEvent.id)
    stmt = (
        select(column, clicks.label("clicks"))
        .where(where)
        .group_by(column)
        .order_by(clicks.desc(), column)
    )
    if limit:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return [{key: row[0] or default, "count": row.clicks} for row in result.all()]


async def link_analytics(
    db: AsyncSession, link_id: UUID, since: datetime.datetime | None = None
) -> LinkAnalytics:
    where = _scope(link_id, since)

    totals = (await db.execute(
        select(
            func.count(ClickEvent.id).label("total_clicks"),
            func.count(func.distinct(ClickEvent.ip_hash)).label("unique_visitors"),
        ).where(where)
    )).one()

    day = func.date(ClickEvent.created_at)
    daily = await db.execute(
        select(day.label("date"), func.count(ClickEvent.id).label("clicks"))
        .where(where)
        .group_by(day)
        .order_by(day.desc())
        .limit(DAILY_LIMIT)
    )

    return LinkAnalytics(
        total_clicks=totals.total_clicks,
        unique_visitors=totals.unique_visitors,
        devices=await _grouped(db, ClickEvent.device, where, "device", "Unknown", limit=None),
        browsers=await _grouped(db, ClickEvent.browser, where, "browser", "Unknown"),
        countries=await _grouped(db, ClickEvent.country, where, "country", "Unknown"),
        operating_systems=await _grouped(db, ClickEvent.os, where, "os", "Unknown"),
        clicks_by_day=[{"date": str(row.date), "count": row.clicks} for row in daily.all()],
        referrers=await _grouped(
            db, ClickEvent.referrer, and_(where, ClickEvent.referrer.is_not(None)), "referrer", "Direct"
        ),
    )
