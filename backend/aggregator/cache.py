"""
Two-tier caching for aggregate results.

ShortTermCache
    Process-local TTL cache for hot queries. Bounded: expired entries are
    swept on every write and the least recently used entry is evicted once
    ``max_entries`` is reached.

RawSnapshotCache
    Last-known-good raw provider payloads, written after every successful
    non-empty fetch and read only when every provider has failed. Persisted
    through the optional durable store (no TTL, overwritten on the next
    success) and mirrored in memory.
"""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Generic, Optional, Sequence, TypeVar

from pydantic import ValidationError

from shared.models.domain import DatasetQuery, RawSnapshot, utc_now
from shared.utils.logging import get_logger
from shared.utils.redis_manager import DurableStore, raw_snapshot_key

logger = get_logger(__name__)

V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    key: str
    value: V
    inserted_at: float
    ttl_s: float

    def expired(self, now: float) -> bool:
        return now >= self.inserted_at + self.ttl_s


class ShortTermCache(Generic[V]):
    """
    Thread-safe, LRU-bounded TTL cache.

    Args:
        max_entries: Upper bound on stored entries.
        clock: Monotonic seconds; injectable for tests.
    """

    def __init__(self, max_entries: int = 1024, clock: Callable[[], float] = time.monotonic) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry[V]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[V]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expired(now):
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return entry.value

    def set(self, key: str, value: V, ttl_s: float) -> None:
        now = self._clock()
        with self._lock:
            self._sweep_locked(now)
            self._entries[key] = CacheEntry(key=key, value=value, inserted_at=now, ttl_s=ttl_s)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("short_term_cache_evicted", key=evicted)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Drop expired entries; returns how many were removed."""
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        expired = [k for k, e in self._entries.items() if e.expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RawSnapshotCache:
    """
    Durable last-known-good raw payloads keyed ``raw:{provider}:{dataset}:{scope}``.
    Never raises: store failures degrade to the in-memory mirror.
    """

    def __init__(
        self,
        store: Optional[DurableStore] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._clock = clock
        self._mirror: dict[str, RawSnapshot] = {}
        self._lock = threading.Lock()

    @property
    def has_store(self) -> bool:
        return self._store is not None

    @staticmethod
    def key_for(provider: str, query: DatasetQuery) -> str:
        return raw_snapshot_key(provider, query.dataset.value, query.scope_key)

    async def save(self, provider: str, query: DatasetQuery, payload: list[Any]) -> RawSnapshot:
        snapshot = RawSnapshot(
            provider=provider,
            dataset_type=query.dataset,
            scope_id=query.scope_key,
            payload=payload,
            captured_at=self._clock(),
        )
        key = self.key_for(provider, query)
        with self._lock:
            self._mirror[key] = snapshot

        if self._store is not None:
            try:
                await self._store.set(key, snapshot.model_dump_json())
            except Exception as exc:
                logger.warning("raw_snapshot_write_failed", key=key, error=str(exc))
        return snapshot

    async def load(self, provider: str, query: DatasetQuery) -> Optional[RawSnapshot]:
        key = self.key_for(provider, query)
        if self._store is not None:
            durable = await self._read_store(key)
            if durable is not None:
                return durable
        with self._lock:
            return self._mirror.get(key)

    async def load_latest(self, query: DatasetQuery, providers: Sequence[str]) -> Optional[RawSnapshot]:
        """
        Most recently captured snapshot across ``providers``.
        ``providers`` is in priority order; equal capture times go to the earlier one.
        """
        best: Optional[RawSnapshot] = None
        for provider in providers:
            snapshot = await self.load(provider, query)
            if snapshot is None or not snapshot.payload:
                continue
            if best is None or snapshot.captured_at > best.captured_at:
                best = snapshot
        return best

    async def _read_store(self, key: str) -> Optional[RawSnapshot]:
        assert self._store is not None
        try:
            raw = await self._store.get(key)
        except Exception as exc:
            logger.warning("raw_snapshot_read_failed", key=key, error=str(exc))
            return None
        if not raw:
            return None
        try:
            return RawSnapshot.model_validate_json(raw)
        except ValidationError:
            logger.warning("raw_snapshot_corrupt", key=key)
            return None
