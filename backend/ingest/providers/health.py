"""
Provider health tracker: a per-provider circuit breaker with classified
disable windows.

  AUTH         : 401/403/404, credentials or resource wrong, 30 minutes
  RATE_LIMIT   : 429, 5 minutes
  SERVER_ERROR : 5xx, 60 seconds
  TRANSIENT    : anything else (transport failures report status 0), 30 seconds

State is written to the optional durable store with a TTL equal to the
window and always mirrored in memory. The tracker fails open: store errors
are logged and ignored, never raised.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from pydantic import ValidationError

from shared.models.domain import HealthRecord, utc_now
from shared.models.enums import FailureClass
from shared.utils.logging import get_logger
from shared.utils.metrics import PROVIDER_DISABLES
from shared.utils.redis_manager import DurableStore, provider_disabled_key

logger = get_logger(__name__)

DISABLE_WINDOWS_S: dict[FailureClass, int] = {
    FailureClass.AUTH: 30 * 60,
    FailureClass.RATE_LIMIT: 5 * 60,
    FailureClass.SERVER_ERROR: 60,
    FailureClass.TRANSIENT: 30,
}


def classify_failure(status_code: int) -> FailureClass:
    if status_code in (401, 403, 404):
        return FailureClass.AUTH
    if status_code == 429:
        return FailureClass.RATE_LIMIT
    if 500 <= status_code <= 599:
        return FailureClass.SERVER_ERROR
    return FailureClass.TRANSIENT


def _reason(failure_class: FailureClass, status_code: int, message: str) -> str:
    prefix = {
        FailureClass.AUTH: "non-retryable",
        FailureClass.RATE_LIMIT: "rate-limit",
        FailureClass.SERVER_ERROR: "server-error",
        FailureClass.TRANSIENT: "failure",
    }[failure_class]
    return f"{prefix}:{status_code} {message}".strip()[:300]


class ProviderHealthTracker:
    """
    Tracks which providers are temporarily disabled.

    Args:
        store: Optional durable key-value store shared across processes.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        store: Optional[DurableStore] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._clock = clock
        self._records: dict[str, HealthRecord] = {}
        self._lock = asyncio.Lock()

    @property
    def has_store(self) -> bool:
        return self._store is not None

    async def is_disabled(self, name: str) -> bool:
        return await self.get_record(name) is not None

    async def get_record(self, name: str) -> Optional[HealthRecord]:
        """Active health record for a provider, or None when it is healthy."""
        key = name.lower()
        now = self._clock()

        if self._store is not None:
            durable = await self._read_store(key)
            if durable is not None and durable.is_active(now):
                return durable

        async with self._lock:
            record = self._records.get(key)
            if record is None:
                return None
            if not record.is_active(now):
                self._records.pop(key, None)
                return None
            return record

    async def mark_failure(self, name: str, status_code: int, message: str = "") -> HealthRecord:
        failure_class = classify_failure(status_code)
        window_s = DISABLE_WINDOWS_S[failure_class]
        now = self._clock()
        key = name.lower()
        record = HealthRecord(
            provider_name=key,
            disabled_until=now + timedelta(seconds=window_s),
            reason=_reason(failure_class, status_code, message),
            failure_class=failure_class,
            captured_at=now,
        )

        async with self._lock:
            self._records[key] = record

        if self._store is not None:
            try:
                await self._store.set(
                    provider_disabled_key(key),
                    record.model_dump_json(),
                    ttl_s=window_s,
                )
            except Exception as exc:
                logger.warning("provider_health_write_failed", provider=key, error=str(exc))

        PROVIDER_DISABLES.labels(provider=key, failure_class=failure_class.value).inc()
        logger.warning(
            "provider_disabled",
            provider=key,
            failure_class=failure_class.value,
            status=status_code,
            window_s=window_s,
            reason=record.reason,
        )
        return record

    async def clear(self, name: str) -> None:
        key = name.lower()
        async with self._lock:
            existed = self._records.pop(key, None) is not None

        if self._store is not None:
            try:
                await self._store.delete(provider_disabled_key(key))
            except Exception as exc:
                logger.warning("provider_health_clear_failed", provider=key, error=str(exc))

        if existed:
            logger.info("provider_recovered", provider=key)

    async def snapshot(self, names: Iterable[str]) -> dict[str, Optional[HealthRecord]]:
        """Active record (or None) for each provider, for diagnostics."""
        return {name: await self.get_record(name) for name in names}

    async def _read_store(self, key: str) -> Optional[HealthRecord]:
        assert self._store is not None
        try:
            raw = await self._store.get(provider_disabled_key(key))
        except Exception as exc:
            logger.warning("provider_health_read_failed", provider=key, error=str(exc))
            return None
        if not raw:
            return None
        try:
            return HealthRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("provider_health_record_corrupt", provider=key)
            return None
