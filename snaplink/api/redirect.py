"""
Short link redirect, /r/{slug}

Flow:
  1. Look up link by slug (storage error → /error, missing → /404)
  2. Access policy (inactive / expired / password gate → terminal page)
  3. Hand a ClickTask to the dispatcher (non-blocking)
  4. 302 to the destination

Nothing after step 2 can change or delay the response. Accounting errors
are logged by the workers and never reach the visitor.
"""

import asyncio
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from snaplink.config import get_settings
from snaplink.core.accounting import ClickTask
from snaplink.core.dispatcher import ClickDispatcher
from snaplink.core.fingerprint import hash_address
from snaplink.core.redirect import client_address, decide_redirect
from snaplink.models.database import get_db
from snaplink.models.tables import Link

import structlog

logger = structlog.get_logger()
router = APIRouter()


def get_dispatcher(request: Request) -> ClickDispatcher:
    return request.app.state.click_dispatcher


def _site_url(request: Request, path: str) -> str:
    return str(request.base_url).rstrip("/") + path


@router.get("/r/{slug}")
async def redirect_link(
    request: Request,
    slug: str,
    db: AsyncSession = Depends(get_db),
    dispatcher: ClickDispatcher = Depends(get_dispatcher),
):
    observed_at = datetime.now(timezone.utc)
    settings = get_settings()

    # --- 1. Look up link ---
    try:
        result = await db.execute(select(Link).where(Link.slug == slug))
        link = result.scalar_one_or_none()
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
        # asyncpg connect failures surface as raw OSError / TimeoutError
        logger.error("redirect_lookup_failed", slug=slug, error=str(e))
        return RedirectResponse(url=_site_url(request, settings.error_path), status_code=302)

    if link is None:
        logger.info("redirect_not_found", slug=slug)
        return RedirectResponse(url=_site_url(request, settings.not_found_path), status_code=302)

    # --- 2. Access policy ---
    credential = request.query_params.get(settings.credential_param)
    outcome = decide_redirect(link, credential, settings)

    if not outcome.allowed:
        logger.info("redirect_blocked", slug=slug, decision=outcome.decision.value)
        return RedirectResponse(url=_site_url(request, outcome.location), status_code=302)

    # --- 3. Accounting (detached) ---
    address = client_address(request.headers)
    dispatcher.submit(ClickTask(
        link_id=link.id,
        address=address,
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer"),
        observed_at=observed_at,
    ))

    logger.info("redirect_allowed", slug=slug, ip_hash=hash_address(address))

    # --- 4. Redirect ---
    return RedirectResponse(url=outcome.location, status_code=302)
