"""
Snaplink: short links with click analytics.
Main application entry point.
"""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from snaplink.api.analytics import router as analytics_router
from snaplink.api.redirect import router as redirect_router
from snaplink.config import get_settings
from snaplink.core.accounting import ClickAccountant
from snaplink.core.dispatcher import ClickDispatcher
from snaplink.core.geo import GeoCache, GeoResolver
from snaplink.middleware.security import SecurityHeadersMiddleware
from snaplink.models.database import dispose_engine, get_session_maker

import structlog

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.dev.ConsoleRenderer() if get_settings().debug else structlog.processors.JSONRenderer(),
    ],
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # One geo cache per process, shared by every accounting worker
    geo_client = httpx.AsyncClient(timeout=settings.geo_timeout_seconds)
    geo = GeoResolver(
        client=geo_client,
        cache=GeoCache(
            ttl_seconds=settings.geo_cache_ttl_seconds,
            max_entries=settings.geo_cache_max_entries,
        ),
        api_url=settings.geo_api_url,
        timeout_seconds=settings.geo_timeout_seconds,
        enabled=settings.geo_enabled,
    )
    dispatcher = ClickDispatcher(
        ClickAccountant(session_maker=get_session_maker(), geo=geo),
        workers=settings.accounting_workers,
        queue_size=settings.accounting_queue_size,
    )
    dispatcher.start()
    app.state.click_dispatcher = dispatcher

    logger.info("snaplink_starting", base_url=settings.base_url)
    yield
    logger.info("snaplink_shutting_down", pending_clicks=dispatcher.pending)

    await dispatcher.stop(timeout=settings.accounting_drain_timeout_seconds)
    await geo_client.aclose()
    await dispose_engine()


app = FastAPI(
    title="Snaplink",
    description="Short links and QR codes with click analytics.",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if get_settings().debug else None,
    redoc_url="/redoc" if get_settings().debug else None,
    openapi_url="/openapi.json" if get_settings().debug else None,
)

# Security headers on every response
app.add_middleware(SecurityHeadersMiddleware)

# --- Routes ---
app.include_router(redirect_router)
app.include_router(analytics_router)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "snaplink", "version": "0.1.0"}
