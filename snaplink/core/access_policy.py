"""
Access policy: may this request go through to the destination?

Checks run in a fixed order, first match wins:
  1. Link switched off            → INACTIVE
  2. Past expires_at              → EXPIRED
  3. click_count >= max_clicks    → EXPIRED (same page as time expiry)
  4. Password set, not supplied
     or not matching              → CREDENTIAL_REQUIRED
  5. Otherwise                    → ALLOW

Pure decision: no I/O, no mutation of the link.
"""

import hmac
from datetime import datetime, timezone
from enum import Enum

from snaplink.config import Settings


class AccessDecision(str, Enum):
    ALLOW = "allow"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    CREDENTIAL_REQUIRED = "credential_required"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we store is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _credential_matches(supplied: str, stored: str) -> bool:
    return hmac.compare_digest(supplied.encode(), stored.encode())


def evaluate_access(link, supplied_credential: str | None, now: datetime | None = None) -> AccessDecision:
    now = now or datetime.now(timezone.utc)

    if not link.is_active:
        return AccessDecision.INACTIVE

    if link.expires_at is not None and now > _as_utc(link.expires_at):
        return AccessDecision.EXPIRED

    if link.max_clicks and (link.click_count or 0) >= link.max_clicks:
        return AccessDecision.EXPIRED

    if link.password:
        if not supplied_credential or not _credential_matches(supplied_credential, link.password):
            return AccessDecision.CREDENTIAL_REQUIRED

    return AccessDecision.ALLOW


def terminal_path(decision: AccessDecision, slug: str, settings: Settings) -> str:
    """Where a blocked request is sent."""
    if decision is AccessDecision.INACTIVE:
        return settings.inactive_path
    if decision is AccessDecision.EXPIRED:
        return settings.expired_path
    if decision is AccessDecision.CREDENTIAL_REQUIRED:
        return f"{settings.credential_path}/{slug}"
    raise ValueError(f"{decision.value} is not a blocking decision")
