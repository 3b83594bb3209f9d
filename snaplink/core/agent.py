"""
User-agent classification.

Coarse buckets only: device class (mobile, tablet, desktop), browser family,
OS family. Anything the parser can't place falls back to desktop/"Unknown".
Classification never raises; a click is always recorded with something.
"""

from dataclasses import dataclass

import structlog
from user_agents import parse as parse_ua

logger = structlog.get_logger()

UNKNOWN = "Unknown"

# Families ua-parser reports when it has no match
_UNMATCHED_FAMILIES = {"", "Other"}


@dataclass(frozen=True)
class AgentInfo:
    device: str = "desktop"
    browser: str = UNKNOWN
    os: str = UNKNOWN


def _family(name: str | None) -> str:
    if not name or name in _UNMATCHED_FAMILIES:
        return UNKNOWN
    return name


def classify_agent(user_agent: str | None) -> AgentInfo:
    if not user_agent:
        return AgentInfo()

    try:
        parsed = parse_ua(user_agent)
    except Exception as e:
        logger.warning("agent_parse_failed", error=str(e))
        return AgentInfo()

    if parsed.is_mobile:
        device = "mobile"
    elif parsed.is_tablet:
        device = "tablet"
    else:
        device = "desktop"

    return AgentInfo(
        device=device,
        browser=_family(parsed.browser.family),
        os=_family(parsed.os.family),
    )
