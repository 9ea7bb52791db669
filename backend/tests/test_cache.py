"""
Unit tests for the short-term TTL cache and the durable raw snapshot cache.

Run: pytest backend/tests/test_cache.py -v
"""
from __future__ import annotations

import json

import pytest

from aggregator.cache import RawSnapshotCache, ShortTermCache
from shared.models.domain import DatasetQuery
from shared.models.enums import DatasetType

from tests.conftest import FakeStore, MonotonicClock, UtcClock


# ── ShortTermCache ──────────────────────────────────────────────────────

def test_read_after_write(mono_clock: MonotonicClock) -> None:
    cache: ShortTermCache[str] = ShortTermCache(clock=mono_clock)
    cache.set("live:39", "value", ttl_s=30)
    assert cache.get("live:39") == "value"
    assert cache.get("live:140") is None


def test_entry_expires_after_ttl(mono_clock: MonotonicClock) -> None:
    cache: ShortTermCache[str] = ShortTermCache(clock=mono_clock)
    cache.set("fixtures:140", "value", ttl_s=120)

    mono_clock.advance(60)
    assert cache.get("fixtures:140") == "value"
    mono_clock.advance(61)
    assert cache.get("fixtures:140") is None
    assert len(cache) == 0


def test_overwrite_resets_ttl(mono_clock: MonotonicClock) -> None:
    cache: ShortTermCache[str] = ShortTermCache(clock=mono_clock)
    cache.set("k", "old", ttl_s=10)
    mono_clock.advance(8)
    cache.set("k", "new", ttl_s=10)
    mono_clock.advance(8)
    assert cache.get("k") == "new"


def test_lru_eviction_respects_recent_reads(mono_clock: MonotonicClock) -> None:
    cache: ShortTermCache[int] = ShortTermCache(max_entries=2, clock=mono_clock)
    cache.set("a", 1, ttl_s=60)
    cache.set("b", 2, ttl_s=60)
    assert cache.get("a") == 1

    cache.set("c", 3, ttl_s=60)

    assert len(cache) == 2
    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3


def test_write_sweeps_expired_entries(mono_clock: MonotonicClock) -> None:
    cache: ShortTermCache[int] = ShortTermCache(clock=mono_clock)
    cache.set("short", 1, ttl_s=5)
    cache.set("long", 2, ttl_s=500)
    mono_clock.advance(10)

    cache.set("other", 3, ttl_s=500)
    assert len(cache) == 2


def test_sweep_invalidate_and_clear(mono_clock: MonotonicClock) -> None:
    cache: ShortTermCache[int] = ShortTermCache(clock=mono_clock)
    cache.set("a", 1, ttl_s=5)
    cache.set("b", 2, ttl_s=50)
    cache.set("c", 3, ttl_s=50)
    mono_clock.advance(6)

    assert cache.sweep() == 1
    cache.invalidate("b")
    assert cache.get("b") is None
    assert len(cache) == 1
    cache.clear()
    assert len(cache) == 0


def test_max_entries_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ShortTermCache(max_entries=0)


# ── RawSnapshotCache ────────────────────────────────────────────────────

STANDINGS_61 = DatasetQuery(dataset=DatasetType.STANDINGS, scope_id="61")


def test_key_format() -> None:
    assert RawSnapshotCache.key_for("espn", STANDINGS_61) == "raw:espn:standings:61"
    seasonal = DatasetQuery(dataset=DatasetType.STANDINGS, scope_id="61", season="2024")
    assert RawSnapshotCache.key_for("espn", seasonal) == "raw:espn:standings:61:2024"
    live_all = DatasetQuery(dataset=DatasetType.LIVE_ALL)
    assert RawSnapshotCache.key_for("espn", live_all) == "raw:espn:live_all:all"


@pytest.mark.asyncio
async def test_save_persists_without_ttl(store: FakeStore, utc_clock: UtcClock) -> None:
    cache = RawSnapshotCache(store, clock=utc_clock)
    await cache.save("football_data", STANDINGS_61, [{"position": 1}])

    key = "raw:football_data:standings:61"
    assert store.ttls[key] is None
    stored = json.loads(store.data[key])
    assert stored["provider"] == "football_data"
    assert stored["payload"] == [{"position": 1}]


@pytest.mark.asyncio
async def test_load_reads_durable_store_across_instances(store: FakeStore, utc_clock: UtcClock) -> None:
    await RawSnapshotCache(store, clock=utc_clock).save("espn", STANDINGS_61, [{"team": "PSG"}])

    snapshot = await RawSnapshotCache(store).load("espn", STANDINGS_61)
    assert snapshot is not None
    assert snapshot.payload == [{"team": "PSG"}]
    assert snapshot.captured_at == utc_clock()


@pytest.mark.asyncio
async def test_store_failures_fall_back_to_memory(store: FakeStore, utc_clock: UtcClock) -> None:
    cache = RawSnapshotCache(store, clock=utc_clock)
    store.fail_writes = True
    await cache.save("espn", STANDINGS_61, [{"team": "PSG"}])
    store.fail_reads = True

    snapshot = await cache.load("espn", STANDINGS_61)
    assert snapshot is not None
    assert snapshot.provider == "espn"


@pytest.mark.asyncio
async def test_memory_only_cache() -> None:
    cache = RawSnapshotCache()
    assert not cache.has_store
    assert await cache.load("espn", STANDINGS_61) is None
    await cache.save("espn", STANDINGS_61, [1])
    assert (await cache.load("espn", STANDINGS_61)).payload == [1]


@pytest.mark.asyncio
async def test_load_latest_prefers_newest(store: FakeStore, utc_clock: UtcClock) -> None:
    cache = RawSnapshotCache(store, clock=utc_clock)
    await cache.save("football_data", STANDINGS_61, [{"team": "old"}])
    utc_clock.advance(600)
    await cache.save("espn", STANDINGS_61, [{"team": "new"}])

    latest = await cache.load_latest(STANDINGS_61, ["football_data", "espn"])
    assert latest is not None
    assert latest.provider == "espn"


@pytest.mark.asyncio
async def test_load_latest_ties_go_to_priority(utc_clock: UtcClock) -> None:
    cache = RawSnapshotCache(clock=utc_clock)
    await cache.save("espn", STANDINGS_61, [{"team": "b"}])
    await cache.save("football_data", STANDINGS_61, [{"team": "a"}])

    latest = await cache.load_latest(STANDINGS_61, ["football_data", "espn"])
    assert latest is not None
    assert latest.provider == "football_data"


@pytest.mark.asyncio
async def test_load_latest_ignores_empty_and_unlisted(utc_clock: UtcClock) -> None:
    cache = RawSnapshotCache(clock=utc_clock)
    await cache.save("espn", STANDINGS_61, [])
    await cache.save("sportmonks", STANDINGS_61, [{"team": "x"}])

    assert await cache.load_latest(STANDINGS_61, ["espn", "football_data"]) is None
