"""
Analytics read API: per-link click breakdowns for the dashboard.
Guarded by the shared analytics API key.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from snaplink.core.analytics import link_analytics, period_start
from snaplink.middleware.auth import require_analytics_key
from snaplink.models.database import get_db
from snaplink.models.tables import Link

router = APIRouter(prefix="/v1/analytics", tags=["analytics"], dependencies=[Depends(require_analytics_key)])


@router.get("/{slug}")
async def get_link_analytics(
    slug: str,
    period: str = Query("7d"),
    db: AsyncSession = Depends(get_db),
):
    """Totals, unique visitors and top-N breakdowns. period: 24h, 7d, 30d, 90d, all."""
    result = await db.execute(select(Link).where(Link.slug == slug))
    link = result.scalar_one_or_none()
    if not link:
        raise HTTPException(status_code=404, detail="Link not found")

    since = period_start(period)
    stats = await link_analytics(db, link.id, since=since)
    return {
        "slug": link.slug,
        "period": period if since is not None else "all",
        "click_count": link.click_count,
        **asdict(stats),
    }
