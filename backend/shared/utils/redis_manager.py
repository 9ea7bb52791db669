"""
Redis connection manager and the durable key-value contract.

The aggregation engine persists two things: last-known-good raw provider
payloads and provider disable windows. Both go through the small
`DurableStore` protocol so the concrete store stays an injected, optional
collaborator; `RedisManager` is the production implementation.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

import redis.asyncio as aioredis
from redis.asyncio import Redis

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Key namespaces ──────────────────────────────────────────────────────
RAW_SNAPSHOT_KEY = "raw:{provider}:{dataset}:{scope}"
PROVIDER_DISABLED_KEY = "provider:disabled:{provider}"


def _fmt(template: str, **kwargs: Any) -> str:
    return template.format(**kwargs)


def raw_snapshot_key(provider: str, dataset: str, scope: str) -> str:
    return _fmt(RAW_SNAPSHOT_KEY, provider=provider, dataset=dataset, scope=scope)


def provider_disabled_key(provider: str) -> str:
    return _fmt(PROVIDER_DISABLED_KEY, provider=provider.lower())


@runtime_checkable
class DurableStore(Protocol):
    """Generic durable key-value interface (get/set/expire/delete)."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_s: Optional[int] = None) -> None: ...

    async def expire(self, key: str, ttl_s: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class RedisManager:
    """Manages the async Redis connection pool and implements DurableStore."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._pool: Optional[Redis] = None

    async def connect(self) -> None:
        """Initialize the connection pool."""
        url = self._settings.redis_url_str
        if not url:
            raise RuntimeError("SL_REDIS_URL is not configured")
        self._pool = aioredis.from_url(
            url,
            max_connections=self._settings.redis_max_connections,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            socket_keepalive=True,
            retry_on_timeout=True,
        )
        # Verify
        await self._pool.ping()
        logger.info("redis_connected", url=self._settings.redis_url_safe_log)

    async def disconnect(self) -> None:
        """Graceful shutdown."""
        if self._pool:
            await self._pool.aclose()
            self._pool = None
            logger.info("redis_disconnected")

    @property
    def client(self) -> Redis:
        if self._pool is None:
            raise RuntimeError("RedisManager not connected. Call connect() first.")
        return self._pool

    # ── DurableStore ────────────────────────────────────────────────────
    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl_s: Optional[int] = None) -> None:
        if ttl_s is not None:
            await self.client.set(key, value, ex=max(1, int(ttl_s)))
        else:
            await self.client.set(key, value)

    async def expire(self, key: str, ttl_s: int) -> None:
        await self.client.expire(key, max(1, int(ttl_s)))

    async def delete(self, key: str) -> None:
        await self.client.delete(key)
