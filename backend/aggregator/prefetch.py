"""
Prefetch worker entrypoint.
Warms the short-term and raw snapshot caches for the configured competitions
on a fixed interval, backing off exponentially while every query comes back
empty.

Run with ``python -m aggregator.prefetch`` from the ``backend`` directory.
"""
from __future__ import annotations

import asyncio
import signal
from dataclasses import dataclass
from typing import Optional, Sequence

from shared.config import Settings, get_settings
from shared.models.domain import AggregateResult, DatasetQuery
from shared.models.enums import DatasetType
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import PREFETCH_CYCLES, start_metrics_server
from shared.utils.redis_manager import RedisManager

from aggregator.service import SportsAggregator, build_aggregator

logger = get_logger(__name__)

PREFETCH_DATASETS: tuple[DatasetType, ...] = (
    DatasetType.LIVE,
    DatasetType.FIXTURES,
    DatasetType.STANDINGS,
)


@dataclass
class PrefetchCycleResult:
    queries: int = 0
    non_empty: int = 0
    stale: int = 0
    errors: int = 0

    @property
    def failed(self) -> bool:
        """A cycle fails when no query produced data."""
        return self.non_empty == 0


class PrefetchRunner:
    """
    Runs prefetch cycles until shutdown is requested.

    Args:
        aggregator: Orchestrator whose caches are warmed.
        competitions: Scope ids to prefetch; defaults to settings.
        settings: Interval, backoff and concurrency settings.
    """

    def __init__(
        self,
        aggregator: SportsAggregator,
        competitions: Optional[Sequence[str]] = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._aggregator = aggregator
        self._competitions = list(competitions or self._settings.prefetch_competitions)
        self._semaphore = asyncio.Semaphore(max(1, self._settings.prefetch_concurrency))
        self._shutdown = asyncio.Event()
        self._consecutive_failures = 0

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def queries(self) -> list[DatasetQuery]:
        return [
            DatasetQuery(dataset=dataset, scope_id=competition)
            for competition in self._competitions
            for dataset in PREFETCH_DATASETS
        ]

    async def _run_query(self, query: DatasetQuery) -> AggregateResult:
        async with self._semaphore:
            return await self._aggregator.aggregate(query)

    async def run_cycle(self) -> PrefetchCycleResult:
        queries = self.queries()
        outcomes = await asyncio.gather(
            *(self._run_query(q) for q in queries), return_exceptions=True
        )

        result = PrefetchCycleResult(queries=len(queries))
        for query, outcome in zip(queries, outcomes):
            if isinstance(outcome, BaseException):
                result.errors += 1
                logger.error(
                    "prefetch_query_error",
                    dataset=query.dataset.value,
                    scope=query.scope_key,
                    error=str(outcome),
                )
                continue
            if outcome.records:
                result.non_empty += 1
                if outcome.stale:
                    result.stale += 1

        if result.failed:
            self._consecutive_failures += 1
            PREFETCH_CYCLES.labels(outcome="failed").inc()
        else:
            self._consecutive_failures = 0
            PREFETCH_CYCLES.labels(outcome="ok").inc()

        logger.info(
            "prefetch_cycle_done",
            queries=result.queries,
            non_empty=result.non_empty,
            stale=result.stale,
            errors=result.errors,
            consecutive_failures=self._consecutive_failures,
        )
        return result

    def next_delay(self) -> float:
        """Regular interval, or ``base * 2^(failures-1)`` capped while cycles keep failing."""
        if self._consecutive_failures == 0:
            return self._settings.prefetch_interval_s
        backoff = self._settings.prefetch_base_backoff_s * (2 ** (self._consecutive_failures - 1))
        return min(self._settings.prefetch_max_backoff_s, backoff)

    async def run_forever(self) -> None:
        logger.info("prefetch_started", competitions=self._competitions)
        while not self._shutdown.is_set():
            await self.run_cycle()
            delay = self.next_delay()
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=delay)
            except asyncio.TimeoutError:
                continue
        logger.info("prefetch_stopped")

    def request_shutdown(self) -> None:
        self._shutdown.set()


async def main() -> None:
    """Prefetch worker entrypoint."""
    settings = get_settings()
    setup_logging("prefetch")
    start_metrics_server()

    redis: Optional[RedisManager] = None
    if settings.redis_url_str:
        redis = RedisManager(settings)
        try:
            await redis.connect()
        except Exception as exc:
            logger.warning("redis_unavailable_memory_only", error=str(exc))
            await redis.disconnect()
            redis = None

    aggregator = build_aggregator(settings, store=redis)
    runner = PrefetchRunner(aggregator, settings=settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, runner.request_shutdown)
        except (ValueError, OSError, RuntimeError, NotImplementedError) as exc:
            logger.warning("signal_handler_unavailable", signal=sig, error=str(exc))

    try:
        await runner.run_forever()
    finally:
        await aggregator.close()
        if redis is not None:
            await redis.disconnect()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
