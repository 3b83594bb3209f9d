"""
Geo lookup from visitor address.

  - Private / loopback / unparseable addresses → (None, None), no network call
  - Public addresses → GeoCache, then the external lookup service on a miss
  - Any lookup failure (timeout, non-2xx, status=fail, bad JSON) → (None, None)

Only successful lookups are cached. Entries live for geo_cache_ttl_seconds
(24h) and are refreshed lazily on the next lookup after expiry.

One GeoCache is built per process by the application lifespan and handed to
the resolver; it is shared by every accounting worker.
"""

import ipaddress
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

import httpx
import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class GeoLocation:
    country: str | None = None
    city: str | None = None


UNKNOWN_LOCATION = GeoLocation()


def is_private_address(address: str) -> bool:
    """True for anything we should never send to the lookup service."""
    try:
        ip = ipaddress.ip_address(address.strip())
    except ValueError:
        return True
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_unspecified
        or ip.is_multicast
    )


class GeoCache:
    """Thread-safe TTL map of address → GeoLocation with a size bound."""

    def __init__(
        self,
        ttl_seconds: float = 86400,
        max_entries: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, tuple[float, GeoLocation]] = OrderedDict()

    def get(self, address: str) -> GeoLocation | None:
        with self._lock:
            entry = self._entries.get(address)
            if entry is None:
                return None
            stored_at, location = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[address]
                return None
            return location

    def set(self, address: str, location: GeoLocation) -> None:
        with self._lock:
            self._entries[address] = (self._clock(), location)
            self._entries.move_to_end(address)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class GeoResolver:
    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: GeoCache,
        api_url: str,
        timeout_seconds: float = 2.0,
        enabled: bool = True,
    ):
        self.client = client
        self.cache = cache
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds
        self.enabled = enabled

    async def resolve(self, address: str) -> GeoLocation:
        if not self.enabled or is_private_address(address):
            return UNKNOWN_LOCATION

        cached = self.cache.get(address)
        if cached is not None:
            return cached

        location = await self._lookup(address)
        if location is None:
            return UNKNOWN_LOCATION

        self.cache.set(address, location)
        return location

    async def _lookup(self, address: str) -> GeoLocation | None:
        url = self.api_url.format(ip=address)
        try:
            resp = await self.client.get(url, timeout=self.timeout_seconds)
        except httpx.HTTPError as e:
            logger.warning("geo_lookup_failed", reason=type(e).__name__)
            return None

        if not resp.is_success:
            logger.warning("geo_lookup_failed", reason="http_status", status_code=resp.status_code)
            return None

        try:
            data = resp.json()
        except ValueError:
            logger.warning("geo_lookup_failed", reason="bad_json")
            return None

        if not isinstance(data, dict) or data.get("status") == "fail":
            logger.warning("geo_lookup_failed", reason="lookup_rejected")
            return None

        return GeoLocation(
            country=data.get("country") or None,
            city=data.get("city") or None,
        )
