"""Redirect decision helpers shared by the /r/ route."""

from dataclasses import dataclass

from snaplink.config import Settings
from snaplink.core.access_policy import AccessDecision, evaluate_access, terminal_path

DEFAULT_CLIENT_ADDRESS = "127.0.0.1"


def client_address(headers) -> str:
    """x-forwarded-for (first hop) → x-real-ip → loopback."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return DEFAULT_CLIENT_ADDRESS


@dataclass(frozen=True)
class RedirectDecision:
    decision: AccessDecision
    location: str

    @property
    def allowed(self) -> bool:
        return self.decision is AccessDecision.ALLOW


def decide_redirect(link, supplied_credential: str | None, settings: Settings) -> RedirectDecision:
    decision = evaluate_access(link, supplied_credential)
    if decision is AccessDecision.ALLOW:
        return RedirectDecision(decision, link.destination_url)
    return RedirectDecision(decision, terminal_path(decision, link.slug, settings))
