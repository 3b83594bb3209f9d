"""
Duplicate click suppression.

Same link + same fingerprint within 2 seconds = double-click / refresh, not a
new visit. The check reads click_events and is not atomic with the insert
that follows it: two truly concurrent requests can both pass. That is
accepted; no lock is taken.
"""

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from snaplink.models.tables import ClickEvent

DEDUPE_WINDOW = timedelta(seconds=2)


async def is_duplicate_click(db: AsyncSession, link_id: UUID, ip_hash: str, now: datetime) -> bool:
    stmt = (
        select(ClickEvent.id)
        .where(
            ClickEvent.link_id == link_id,
            ClickEvent.ip_hash == ip_hash,
            ClickEvent.created_at >= now - DEDUPE_WINDOW,
        )
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none() is not None
