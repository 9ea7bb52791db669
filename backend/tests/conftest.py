"""Shared fixtures: in-memory durable store, controllable clocks, settings."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from shared.config import Settings


class FakeStore:
    """In-memory DurableStore that records TTLs and can be told to fail."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, Optional[int]] = {}
        self.fail_reads = False
        self.fail_writes = False

    async def get(self, key: str) -> Optional[str]:
        if self.fail_reads:
            raise ConnectionError("store down")
        return self.data.get(key)

    async def set(self, key: str, value: str, ttl_s: Optional[int] = None) -> None:
        if self.fail_writes:
            raise ConnectionError("store down")
        self.data[key] = value
        self.ttls[key] = ttl_s

    async def expire(self, key: str, ttl_s: int) -> None:
        if self.fail_writes:
            raise ConnectionError("store down")
        self.ttls[key] = ttl_s

    async def delete(self, key: str) -> None:
        if self.fail_writes:
            raise ConnectionError("store down")
        self.data.pop(key, None)
        self.ttls.pop(key, None)


class UtcClock:
    """Datetime clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 3, 1, 15, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class MonotonicClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def utc_clock() -> UtcClock:
    return UtcClock()


@pytest.fixture
def mono_clock() -> MonotonicClock:
    return MonotonicClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        redis_url=None,
        football_data_api_key="fd-key",
        sportmonks_api_key="sm-key",
        api_football_key="af-key",
        allowed_providers=[],
        prefetch_competitions=["39", "140"],
        metrics_enabled=False,
    )
