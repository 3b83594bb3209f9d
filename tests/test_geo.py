"""Tests for geo lookup and its cache."""

import asyncio

import httpx
import pytest

from snaplink.core.geo import GeoCache, GeoLocation, GeoResolver, UNKNOWN_LOCATION, is_private_address

API_URL = "http://geo.test/json/{ip}?fields=status,country,city"


class Clock:
    def __init__(self):
        self.t = 1000.0

    def __call__(self):
        return self.t


def _resolver(handler, cache: GeoCache | None = None, **kwargs):
    calls = []

    def _record(request: httpx.Request):
        calls.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(_record))
    resolver = GeoResolver(
        client=client, cache=cache if cache is not None else GeoCache(), api_url=API_URL, **kwargs
    )
    return resolver, calls


def _ok(request):
    return httpx.Response(200, json={"status": "success", "country": "Germany", "city": "Berlin"})


class TestPrivateAddresses:
    @pytest.mark.parametrize("address", [
        "127.0.0.1", "::1", "10.1.2.3", "192.168.0.10", "172.16.5.4", "169.254.1.1",
        "0.0.0.0", "fe80::1", "not-an-ip", "",
    ])
    def test_private(self, address):
        assert is_private_address(address) is True

    @pytest.mark.parametrize("address", ["8.8.8.8", "1.1.1.1", "2606:4700:4700::1111"])
    def test_public(self, address):
        assert is_private_address(address) is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("address", ["127.0.0.1", "::1", "10.0.0.1", "192.168.1.1"])
    async def test_no_network_call(self, address):
        resolver, calls = _resolver(_ok)
        assert await resolver.resolve(address) == UNKNOWN_LOCATION
        assert calls == []


class TestLookup:
    @pytest.mark.asyncio
    async def test_success(self):
        resolver, calls = _resolver(_ok)
        loc = await resolver.resolve("8.8.8.8")
        assert loc == GeoLocation(country="Germany", city="Berlin")
        assert len(calls) == 1
        assert calls[0].url.path == "/json/8.8.8.8"

    @pytest.mark.asyncio
    async def test_empty_fields_become_none(self):
        resolver, _ = _resolver(lambda r: httpx.Response(200, json={"status": "success", "country": "", "city": ""}))
        assert await resolver.resolve("8.8.8.8") == UNKNOWN_LOCATION

    @pytest.mark.asyncio
    async def test_disabled(self):
        resolver, calls = _resolver(_ok, enabled=False)
        assert await resolver.resolve("8.8.8.8") == UNKNOWN_LOCATION
        assert calls == []


class TestFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("handler", [
        lambda r: httpx.Response(500),
        lambda r: httpx.Response(429, json={"message": "slow down"}),
        lambda r: httpx.Response(200, content=b"<html>nope</html>"),
        lambda r: httpx.Response(200, json={"status": "fail", "message": "reserved range"}),
        lambda r: httpx.Response(200, json=["unexpected"]),
    ])
    async def test_bad_responses_degrade(self, handler):
        resolver, _ = _resolver(handler)
        assert await resolver.resolve("8.8.8.8") == UNKNOWN_LOCATION

    @pytest.mark.asyncio
    async def test_timeout_degrades(self):
        def _timeout(request):
            raise httpx.ReadTimeout("too slow", request=request)

        resolver, _ = _resolver(_timeout)
        assert await resolver.resolve("8.8.8.8") == UNKNOWN_LOCATION

    @pytest.mark.asyncio
    async def test_connect_error_degrades(self):
        def _refused(request):
            raise httpx.ConnectError("refused", request=request)

        resolver, _ = _resolver(_refused)
        assert await resolver.resolve("1.1.1.1") == UNKNOWN_LOCATION

    @pytest.mark.asyncio
    async def test_failures_not_cached(self):
        cache = GeoCache()
        resolver, calls = _resolver(lambda r: httpx.Response(503), cache=cache)
        await resolver.resolve("8.8.8.8")
        await resolver.resolve("8.8.8.8")
        assert len(calls) == 2
        assert len(cache) == 0


class TestCache:
    @pytest.mark.asyncio
    async def test_hit_skips_network(self):
        resolver, calls = _resolver(_ok)
        await resolver.resolve("8.8.8.8")
        await resolver.resolve("8.8.8.8")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_expired_entry_refreshed(self):
        clock = Clock()
        cache = GeoCache(ttl_seconds=86400, clock=clock)
        resolver, calls = _resolver(_ok, cache=cache)

        await resolver.resolve("8.8.8.8")
        clock.t += 86399
        await resolver.resolve("8.8.8.8")
        assert len(calls) == 1

        clock.t += 2
        await resolver.resolve("8.8.8.8")
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_injected_empty_cache_is_used(self):
        cache = GeoCache()
        resolver, _ = _resolver(_ok, cache=cache)
        assert resolver.cache is cache
        await resolver.resolve("8.8.8.8")
        assert cache.get("8.8.8.8") == GeoLocation(country="Germany", city="Berlin")

    def test_evicts_oldest_when_full(self):
        cache = GeoCache(max_entries=2)
        cache.set("1.1.1.1", GeoLocation("A", None))
        cache.set("2.2.2.2", GeoLocation("B", None))
        cache.set("3.3.3.3", GeoLocation("C", None))
        assert len(cache) == 2
        assert cache.get("1.1.1.1") is None
        assert cache.get("3.3.3.3") == GeoLocation("C", None)


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_misses_on_one_address(self):
        # No single-flight: every concurrent miss may go to the network
        cache = GeoCache()
        resolver, calls = _resolver(_ok, cache=cache)

        results = await asyncio.gather(*(resolver.resolve("8.8.8.8") for _ in range(8)))

        assert set(results) == {GeoLocation(country="Germany", city="Berlin")}
        assert 1 <= len(calls) <= 8
        assert len(cache) == 1

        before = len(calls)
        await resolver.resolve("8.8.8.8")
        assert len(calls) == before

    @pytest.mark.asyncio
    async def test_concurrent_distinct_addresses(self):
        def _by_address(request):
            last = request.url.path.rsplit(".", 1)[-1]
            return httpx.Response(200, json={"status": "success", "country": f"C{last}", "city": None})

        cache = GeoCache(max_entries=100)
        resolver, calls = _resolver(_by_address, cache=cache)
        addresses = [f"8.8.8.{n}" for n in range(1, 21)]

        results = await asyncio.gather(*(resolver.resolve(a) for a in addresses))

        assert [r.country for r in results] == [f"C{n}" for n in range(1, 21)]
        assert len(calls) == 20
        assert len(cache) == 20

    @pytest.mark.asyncio
    async def test_cache_shared_across_threads(self):
        cache = GeoCache(max_entries=50)

        def _fill(n):
            for i in range(100):
                cache.set(f"8.8.{n}.{i}", GeoLocation(str(n), None))
                cache.get(f"8.8.{n}.{i // 2}")

        await asyncio.gather(*(asyncio.to_thread(_fill, n) for n in range(4)))
        assert len(cache) == 50
