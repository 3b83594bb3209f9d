"""
API key check for the analytics read API.

Account management lives outside this service, so there is exactly one
secret: SL_ANALYTICS_API_KEY, sent as the X-API-Key header. An empty setting
switches the analytics API off entirely (404, as if it did not exist).
"""

import hmac

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

from snaplink.config import get_settings

import structlog

logger = structlog.get_logger()

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def require_analytics_key(api_key: str | None = Security(api_key_header)) -> None:
    settings = get_settings()

    if not settings.analytics_api_key:
        raise HTTPException(status_code=404, detail="Not found")

    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing API key. Include X-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not hmac.compare_digest(api_key.encode(), settings.analytics_api_key.encode()):
        logger.warning("analytics_key_rejected")
        raise HTTPException(
            status_code=401,
            detail="Invalid API key.",
            headers={"WWW-Authenticate": "ApiKey"},
        )
