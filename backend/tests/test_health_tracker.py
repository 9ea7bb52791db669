"""
Unit tests for the provider health tracker (classified disable windows).

Run: pytest backend/tests/test_health_tracker.py -v
"""
from __future__ import annotations

import json

import pytest

from ingest.providers.health import DISABLE_WINDOWS_S, ProviderHealthTracker, classify_failure
from shared.models.enums import FailureClass

from tests.conftest import FakeStore, UtcClock


# ── Classification ──────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "status, expected",
    [
        (401, FailureClass.AUTH),
        (403, FailureClass.AUTH),
        (404, FailureClass.AUTH),
        (429, FailureClass.RATE_LIMIT),
        (500, FailureClass.SERVER_ERROR),
        (599, FailureClass.SERVER_ERROR),
        (0, FailureClass.TRANSIENT),
        (400, FailureClass.TRANSIENT),
        (302, FailureClass.TRANSIENT),
    ],
)
def test_classify_failure(status: int, expected: FailureClass) -> None:
    assert classify_failure(status) == expected


def test_disable_windows() -> None:
    assert DISABLE_WINDOWS_S[FailureClass.AUTH] == 1800
    assert DISABLE_WINDOWS_S[FailureClass.RATE_LIMIT] == 300
    assert DISABLE_WINDOWS_S[FailureClass.SERVER_ERROR] == 60
    assert DISABLE_WINDOWS_S[FailureClass.TRANSIENT] == 30


# ── Disable windows ─────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_rate_limit_disables_for_five_minutes(utc_clock: UtcClock) -> None:
    tracker = ProviderHealthTracker(clock=utc_clock)
    await tracker.mark_failure("alpha", 429, "slow down")

    assert await tracker.is_disabled("alpha")
    utc_clock.advance(299)
    assert await tracker.is_disabled("alpha")
    utc_clock.advance(1)
    assert not await tracker.is_disabled("alpha")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, window_s",
    [(401, 1800), (503, 60), (0, 30)],
)
async def test_window_matches_failure_class(utc_clock: UtcClock, status: int, window_s: int) -> None:
    tracker = ProviderHealthTracker(clock=utc_clock)
    record = await tracker.mark_failure("alpha", status, "boom")

    assert record.remaining_s(utc_clock()) == window_s
    utc_clock.advance(window_s - 1)
    assert await tracker.is_disabled("alpha")
    utc_clock.advance(1)
    assert not await tracker.is_disabled("alpha")


@pytest.mark.asyncio
async def test_unknown_provider_is_healthy() -> None:
    tracker = ProviderHealthTracker()
    assert not await tracker.is_disabled("never-seen")
    assert await tracker.get_record("never-seen") is None


@pytest.mark.asyncio
async def test_clear_removes_record(utc_clock: UtcClock, store: FakeStore) -> None:
    tracker = ProviderHealthTracker(store, clock=utc_clock)
    await tracker.mark_failure("alpha", 500, "down")
    assert await tracker.is_disabled("alpha")

    await tracker.clear("alpha")
    assert not await tracker.is_disabled("alpha")
    assert "provider:disabled:alpha" not in store.data


@pytest.mark.asyncio
async def test_names_are_case_insensitive(utc_clock: UtcClock) -> None:
    tracker = ProviderHealthTracker(clock=utc_clock)
    await tracker.mark_failure("Alpha", 429)
    assert await tracker.is_disabled("alpha")


# ── Durable store ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_writes_durable_record_with_window_ttl(utc_clock: UtcClock, store: FakeStore) -> None:
    tracker = ProviderHealthTracker(store, clock=utc_clock)
    await tracker.mark_failure("alpha", 429, "quota")

    key = "provider:disabled:alpha"
    assert store.ttls[key] == 300
    stored = json.loads(store.data[key])
    assert stored["failure_class"] == "RATE_LIMIT"
    assert stored["reason"].startswith("rate-limit:429")
    assert "captured_at" in stored
    assert "disabled_until" in stored


@pytest.mark.asyncio
async def test_durable_state_survives_restart(utc_clock: UtcClock, store: FakeStore) -> None:
    first = ProviderHealthTracker(store, clock=utc_clock)
    await first.mark_failure("alpha", 401, "bad key")

    restarted = ProviderHealthTracker(store, clock=utc_clock)
    record = await restarted.get_record("alpha")
    assert record is not None
    assert record.failure_class == FailureClass.AUTH


@pytest.mark.asyncio
async def test_store_write_failure_falls_back_to_memory(utc_clock: UtcClock, store: FakeStore) -> None:
    store.fail_writes = True
    tracker = ProviderHealthTracker(store, clock=utc_clock)

    await tracker.mark_failure("alpha", 429)
    assert await tracker.is_disabled("alpha")
    await tracker.clear("alpha")
    assert not await tracker.is_disabled("alpha")


@pytest.mark.asyncio
async def test_store_read_failure_never_raises(utc_clock: UtcClock, store: FakeStore) -> None:
    tracker = ProviderHealthTracker(store, clock=utc_clock)
    store.fail_reads = True

    assert not await tracker.is_disabled("alpha")
    await tracker.mark_failure("alpha", 500)
    # Memory mirror still answers
    assert await tracker.is_disabled("alpha")


@pytest.mark.asyncio
async def test_corrupt_durable_record_is_ignored(utc_clock: UtcClock, store: FakeStore) -> None:
    store.data["provider:disabled:alpha"] = "{not json"
    tracker = ProviderHealthTracker(store, clock=utc_clock)
    assert not await tracker.is_disabled("alpha")


@pytest.mark.asyncio
async def test_snapshot_reports_each_provider(utc_clock: UtcClock) -> None:
    tracker = ProviderHealthTracker(clock=utc_clock)
    await tracker.mark_failure("alpha", 503)

    snap = await tracker.snapshot(["alpha", "beta"])
    assert snap["alpha"] is not None
    assert snap["alpha"].failure_class == FailureClass.SERVER_ERROR
    assert snap["beta"] is None
