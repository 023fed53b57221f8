"""Tests for the Sleeper client and its response cache."""

import asyncio
from datetime import datetime, timedelta

import pytest

from tavern.data.cache.cache_manager import CacheManager, InMemoryCache
from tavern.data.sources.base import (
    CircuitBreaker,
    CircuitBreakerConfig,
    DataNotAvailableError,
    DataSourceError,
    DataSourceStatus,
)
from tavern.data.sources.sleeper import SleeperClient

from conftest import LEAGUE_ID, ROSTERS


class Recorder:
    """Stands in for _make_request and counts calls per path."""

    def __init__(self, responses=None, error=None):
        self.responses = responses or {}
        self.error = error
        self.calls = []

    async def __call__(self, path):
        self.calls.append(path)
        if self.error is not None:
            raise self.error
        return self.responses.get(path)


def _client(recorder, cache=True, **kwargs):
    client = SleeperClient(
        default_league_id=LEAGUE_ID,
        max_attempts=1,
        cache=CacheManager.create_memory_cache() if cache else None,
        **kwargs,
    )
    client._make_request = recorder
    return client


def test_rosters_are_cached():
    recorder = Recorder({f"/league/{LEAGUE_ID}/rosters": ROSTERS})
    client = _client(recorder)

    async def run():
        first = await client.get_rosters()
        second = await client.get_rosters()
        return first, second

    first, second = asyncio.run(run())
    assert first == second == ROSTERS
    assert recorder.calls == [f"/league/{LEAGUE_ID}/rosters"]


def test_settlement_reads_bypass_cache():
    path = f"/league/{LEAGUE_ID}/matchups/10"
    recorder = Recorder({path: [{"roster_id": 1, "matchup_id": 1, "points": 100}]})
    client = _client(recorder)

    async def run():
        await client.get_matchups(10)
        await client.get_matchups(10, use_cache=False)

    asyncio.run(run())
    assert recorder.calls == [path, path]


def test_matchups_week_out_of_range():
    client = _client(Recorder())
    with pytest.raises(DataNotAvailableError):
        asyncio.run(client.get_matchups(19))


def test_empty_schedule_is_empty_list():
    client = _client(Recorder())
    assert asyncio.run(client.get_matchups(3)) == []


def test_current_week_clamped():
    client = _client(Recorder({"/state/nfl": {"week": 22}}))
    assert asyncio.run(client.get_current_week()) == 18


def test_current_week_defaults_to_one_when_down():
    client = _client(Recorder(error=DataSourceError("boom", "sleeper")))
    assert asyncio.run(client.get_current_week()) == 1


def test_unknown_league():
    client = _client(Recorder(error=DataNotAvailableError("sleeper", "Not found")))
    with pytest.raises(DataNotAvailableError):
        asyncio.run(client.get_league("nope"))


def test_empty_league_body_is_not_found():
    client = _client(Recorder({f"/league/{LEAGUE_ID}": None}))
    with pytest.raises(DataNotAvailableError):
        asyncio.run(client.get_league())


def test_circuit_opens_after_repeated_failures():
    recorder = Recorder(error=DataSourceError("503", "sleeper"))
    client = _client(recorder, cache=False)
    client.circuit_breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=2))

    for _ in range(2):
        with pytest.raises(DataSourceError):
            asyncio.run(client.get_users())

    assert client.get_health().status == DataSourceStatus.UNHEALTHY

    with pytest.raises(DataSourceError) as exc_info:
        asyncio.run(client.get_users())
    assert "not available" in str(exc_info.value)
    assert len(recorder.calls) == 2


def test_disabled_client_reports_disabled():
    client = _client(Recorder(), enabled=False)
    health = asyncio.run(client.health_check())
    assert health.status == DataSourceStatus.DISABLED


def test_circuit_breaker_half_open_recovery():
    now = [0]
    start = datetime(2025, 1, 1)

    def clock():
        return start + timedelta(seconds=now[0])

    breaker = CircuitBreaker(
        CircuitBreakerConfig(failure_threshold=1, recovery_timeout_seconds=30, half_open_max_calls=1),
        clock=clock,
    )
    breaker.record_failure()
    assert not breaker.allow()

    now[0] = 31
    assert breaker.allow()
    assert breaker.state == "half-open"
    breaker.record_success()
    assert breaker.state == "closed"


def test_memory_cache_expiry():
    now = [100.0]
    cache = InMemoryCache(clock=lambda: now[0])

    async def run():
        await cache.set("k", "v", ttl_seconds=60)
        fresh = await cache.get("k")
        now[0] += 60
        stale = await cache.get("k")
        return fresh, stale

    assert asyncio.run(run()) == ("v", None)


def test_get_or_set_does_not_cache_none():
    manager = CacheManager(InMemoryCache())
    calls = []

    async def factory():
        calls.append(1)
        return None

    async def run():
        await manager.get_or_set("x", factory)
        await manager.get_or_set("x", factory)

    asyncio.run(run())
    assert len(calls) == 2


def test_concurrent_misses_share_one_load():
    manager = CacheManager.create_memory_cache()
    calls = []

    async def factory():
        calls.append(1)
        await asyncio.sleep(0.01)
        return ROSTERS

    async def run():
        return await asyncio.gather(*(manager.get_or_set("rosters", factory) for _ in range(5)))

    results = asyncio.run(run())
    assert all(r == ROSTERS for r in results)
    assert len(calls) == 1
    assert manager.stats()["in_flight"] == 0


def test_failed_load_reaches_every_waiter():
    manager = CacheManager.create_memory_cache()

    async def factory():
        await asyncio.sleep(0.01)
        raise DataSourceError("boom", "sleeper")

    async def run():
        return await asyncio.gather(
            manager.get_or_set("k", factory),
            manager.get_or_set("k", factory),
            return_exceptions=True,
        )

    results = asyncio.run(run())
    assert all(isinstance(r, DataSourceError) for r in results)


def test_memory_cache_evicts_least_recently_used():
    cache = InMemoryCache(max_size=2)

    async def run():
        await cache.set("a", 1, ttl_seconds=60)
        await cache.set("b", 2, ttl_seconds=60)
        await cache.get("a")
        await cache.set("c", 3, ttl_seconds=60)
        return [await cache.get(k) for k in ("a", "b", "c")]

    assert asyncio.run(run()) == [1, None, 3]
    assert len(cache) == 2


def test_cache_stats_count_hits_and_misses():
    manager = CacheManager.create_memory_cache()

    async def run():
        await manager.get("missing")
        await manager.set("present", "v")
        await manager.get("present")

    asyncio.run(run())
    stats = manager.stats()
    assert (stats["hits"], stats["misses"], stats["hit_rate"]) == (1, 1, 0.5)
