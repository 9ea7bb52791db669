"""
RedisManager as a DurableStore, with the Redis client mocked out.

Run: pytest backend/tests/test_redis_manager.py -v
"""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from shared.config import Settings
from shared.utils.redis_manager import (
    DurableStore,
    RedisManager,
    provider_disabled_key,
    raw_snapshot_key,
)


def connected_manager(settings: Settings) -> tuple[RedisManager, AsyncMock]:
    manager = RedisManager(settings)
    client = AsyncMock()
    manager._pool = client
    return manager, client


def test_key_helpers() -> None:
    assert raw_snapshot_key("espn", "standings", "61") == "raw:espn:standings:61"
    assert provider_disabled_key("Football_Data") == "provider:disabled:football_data"


def test_manager_satisfies_protocol(settings: Settings) -> None:
    assert isinstance(RedisManager(settings), DurableStore)


@pytest.mark.asyncio
async def test_connect_requires_url(settings: Settings) -> None:
    with pytest.raises(RuntimeError):
        await RedisManager(settings).connect()


def test_client_requires_connection(settings: Settings) -> None:
    with pytest.raises(RuntimeError):
        RedisManager(settings).client


@pytest.mark.asyncio
async def test_set_with_and_without_ttl(settings: Settings) -> None:
    manager, client = connected_manager(settings)

    await manager.set("provider:disabled:espn", "{}", ttl_s=300)
    client.set.assert_awaited_with("provider:disabled:espn", "{}", ex=300)

    await manager.set("raw:espn:live:39", "{}")
    client.set.assert_awaited_with("raw:espn:live:39", "{}")


@pytest.mark.asyncio
async def test_get_expire_delete_delegate(settings: Settings) -> None:
    manager, client = connected_manager(settings)
    client.get.return_value = "value"

    assert await manager.get("k") == "value"
    await manager.expire("k", 0)
    client.expire.assert_awaited_with("k", 1)
    await manager.delete("k")
    client.delete.assert_awaited_with("k")


@pytest.mark.asyncio
async def test_disconnect_closes_pool(settings: Settings) -> None:
    manager, client = connected_manager(settings)

    await manager.disconnect()

    client.aclose.assert_awaited_once()
    with pytest.raises(RuntimeError):
        manager.client
