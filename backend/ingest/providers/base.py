"""
Abstract base class for all sports data providers.
Defines the contract that every provider connector must implement.

A connector knows how to phrase a dataset query for its API (one or more
request strategies, tried in order) and how to pull the raw record list out
of the provider's response envelope. It never normalizes: records leave the
connector exactly as the provider sent them.
"""
from __future__ import annotations

import abc
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional

from shared.models.domain import DatasetQuery, ProviderConfig, utc_now
from shared.models.enums import DatasetType
from shared.utils.http_client import FetchError, ProviderHTTPClient
from shared.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RequestStrategy:
    """One way of asking a provider for a dataset (URL shape, params, auth headers)."""

    name: str
    url: str
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)


def current_season(now: datetime | None = None) -> int:
    """European football season start year (seasons roll over in July)."""
    now = now or utc_now()
    return now.year if now.month >= 7 else now.year - 1


def team_pair(scope_id: Optional[str]) -> Optional[tuple[str, str]]:
    """Split a head-to-head scope (``"{team}-{opponent}"``) into its team ids."""
    home, sep, away = (scope_id or "").partition("-")
    if not sep or not home or not away:
        return None
    return home, away


def first_list(payload: Any, *keys: str) -> list[Any]:
    """Return the first list found under ``keys`` in a dict envelope, or the payload itself if it is a list."""
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return []
    for key in keys:
        value = payload.get(key)
        if isinstance(value, list):
            return value
    return []


class BaseProvider(abc.ABC):
    """
    Abstract base class for sports data providers.

    Subclasses declare the datasets they can answer and implement
    ``build_requests`` and ``extract``. The base class runs strategies in
    order; a provider whose every strategy fails raises the last
    ``FetchError``, which the orchestrator counts as a single failure.
    """

    datasets: frozenset[DatasetType] = frozenset()

    def __init__(self, config: ProviderConfig, http_client: ProviderHTTPClient) -> None:
        self._config = config
        self._http = http_client

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def priority(self) -> int:
        return self._config.priority

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def base_url(self) -> str:
        return self._config.base_url.rstrip("/")

    def supports(self, dataset: DatasetType) -> bool:
        return dataset in self.datasets and self._config.supports(dataset)

    async def fetch(self, query: DatasetQuery) -> list[Any]:
        """
        Fetch the raw record list for a query.

        Returns:
            Raw provider records; empty when the provider answered but had no data.

        Raises:
            FetchError: Every strategy failed.
        """
        strategies = list(self.build_requests(query))
        if not strategies:
            return []

        start = time.perf_counter()
        last_error: Optional[FetchError] = None
        answered = False

        for strategy in strategies:
            try:
                payload = await self._http.fetch(
                    strategy.url, params=strategy.params or None, headers=strategy.headers or None
                )
            except FetchError as exc:
                last_error = exc
                logger.debug(
                    "provider_strategy_failed",
                    provider=self.name,
                    strategy=strategy.name,
                    status=exc.status_code,
                    kind=exc.kind.value,
                )
                continue

            answered = True
            records = self.extract_records(query, strategy, payload)
            if records:
                logger.info(
                    "provider_fetch_ok",
                    provider=self.name,
                    dataset=query.dataset.value,
                    scope=query.scope_key,
                    strategy=strategy.name,
                    count=len(records),
                    latency_ms=round((time.perf_counter() - start) * 1000, 2),
                )
                return records

        if not answered and last_error is not None:
            raise last_error

        logger.info(
            "provider_fetch_empty",
            provider=self.name,
            dataset=query.dataset.value,
            scope=query.scope_key,
        )
        return []

    def extract_records(self, query: DatasetQuery, strategy: RequestStrategy, payload: Any) -> list[Any]:
        """``extract`` with envelope surprises treated as an empty answer."""
        try:
            return self.extract(query, payload)
        except (TypeError, AttributeError, KeyError, ValueError) as exc:
            logger.warning(
                "malformed_payload",
                provider=self.name,
                dataset=query.dataset.value,
                strategy=strategy.name,
                error=str(exc),
            )
            return []

    # ── Abstract methods (each provider implements these) ───────────────
    @abc.abstractmethod
    def build_requests(self, query: DatasetQuery) -> Iterable[RequestStrategy]:
        """Request strategies for a query, in the order they should be tried."""
        ...

    @abc.abstractmethod
    def extract(self, query: DatasetQuery, payload: Any) -> list[Any]:
        """Pull the raw record list out of a response envelope. Must not raise."""
        ...
