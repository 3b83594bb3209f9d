"""
Click accounting: the work done after a redirect has already been sent.

Flow (per ClickTask):
  1. Fingerprint the visitor address
  2. Dedupe check → stop on duplicate
  3. Classify UA + geo lookup, concurrently
  4. Insert ClickEvent
  5. Increment links.click_count (separate transaction)

Every step is best-effort. A failure is logged and the next step runs with
defaults. Steps 4 and 5 are independent: the counter can drift
from the number of click_events rows under failures or races, and nothing
here tries to reconcile them.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable
from uuid import UUID

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import async_sessionmaker

from snaplink.core.agent import AgentInfo, classify_agent
from snaplink.core.dedupe import is_duplicate_click
from snaplink.core.fingerprint import hash_address
from snaplink.core.geo import UNKNOWN_LOCATION, GeoLocation, GeoResolver
from snaplink.models.tables import ClickEvent, Link

logger = structlog.get_logger()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ClickTask:
    """Everything accounting needs, copied out of the request."""
    link_id: UUID
    address: str
    user_agent: str | None
    referrer: str | None
    observed_at: datetime


class ClickAccountant:
    def __init__(
        self,
        session_maker: async_sessionmaker,
        geo: GeoResolver,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_maker = session_maker
        self.geo = geo
        self.clock = clock

    async def record(self, task: ClickTask) -> ClickEvent | None:
        """Run the accounting flow. Returns the stored event, or None if nothing was stored."""
        # --- 1. Fingerprint ---
        ip_hash = hash_address(task.address)

        # --- 2. Dedupe ---
        try:
            async with self.session_maker() as db:
                duplicate = await is_duplicate_click(db, task.link_id, ip_hash, self.clock())
        except Exception as e:
            logger.error("click_dedupe_failed", link_id=str(task.link_id), ip_hash=ip_hash, error=str(e))
            duplicate = False

        if duplicate:
            logger.info("click_duplicate_skipped", link_id=str(task.link_id), ip_hash=ip_hash)
            return None

        # --- 3. Enrich ---
        agent, geo = await self._enrich(task)

        # --- 4. Persist event ---
        event = await self._insert_event(task, ip_hash, agent, geo)

        # --- 5. Bump counter ---
        await self._increment_click_count(task.link_id)

        return event

    async def _enrich(self, task: ClickTask) -> tuple[AgentInfo, GeoLocation]:
        agent, geo = await asyncio.gather(
            asyncio.to_thread(classify_agent, task.user_agent),
            self.geo.resolve(task.address),
            return_exceptions=True,
        )
        if isinstance(agent, BaseException):
            logger.warning("agent_parse_failed", link_id=str(task.link_id), error=str(agent))
            agent = AgentInfo()
        if isinstance(geo, BaseException):
            # Exception text may echo the lookup URL, which carries the address
            logger.warning("geo_lookup_failed", link_id=str(task.link_id), reason=type(geo).__name__)
            geo = UNKNOWN_LOCATION
        return agent, geo

    async def _insert_event(
        self, task: ClickTask, ip_hash: str, agent: AgentInfo, geo: GeoLocation
    ) -> ClickEvent | None:
        created_at = self.clock()
        event = ClickEvent(
            link_id=task.link_id,
            ip_hash=ip_hash,
            device=agent.device,
            browser=agent.browser,
            os=agent.os,
            country=geo.country,
            city=geo.city,
            referrer=task.referrer,
            user_agent=task.user_agent,
            created_at=created_at,
        )
        try:
            async with self.session_maker() as db:
                db.add(event)
                await db.commit()
        except Exception as e:
            logger.error("click_insert_failed", link_id=str(task.link_id), ip_hash=ip_hash, error=str(e))
            return None

        lag_ms = int((created_at - task.observed_at).total_seconds() * 1000)
        logger.info("click_recorded",
                    link_id=str(task.link_id),
                    ip_hash=ip_hash,
                    device=agent.device,
                    browser=agent.browser,
                    country=geo.country,
                    lag_ms=lag_ms)
        return event

    async def _increment_click_count(self, link_id: UUID) -> None:
        stmt = (
            update(Link)
            .where(Link.id == link_id)
            .values(click_count=Link.click_count + 1)
        )
        try:
            async with self.session_maker() as db:
                result = await db.execute(stmt)
                await db.commit()
        except Exception as e:
            logger.error("click_count_failed", link_id=str(link_id), error=str(e))
            return

        if result.rowcount == 0:
            # Link deleted between redirect and accounting
            logger.info("click_count_lost_update", link_id=str(link_id))
