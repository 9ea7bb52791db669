"""
Aggregator orchestrator: the entry point callers use.

For every "get X" query:
  1. a fresh short-term cache entry is returned as-is (no network),
  2. otherwise providers able to answer the dataset are tried sequentially in
     priority order, skipping any the health tracker has disabled,
  3. the first non-empty normalized answer is cached (short-term + raw
     snapshot) and returned,
  4. when every candidate failed or came back empty, the newest durable raw
     snapshot is normalized and returned tagged ``stale``; with no snapshot
     the result is empty.

Provider failures never reach the caller; an empty ``records`` list is the
only visible failure mode.
"""
from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from structlog.contextvars import bound_contextvars

from shared.config import Settings, get_settings
from shared.models.domain import (
    AggregateResult,
    DatasetQuery,
    HeadToHead,
    HealthRecord,
    League,
    Match,
    utc_now,
)
from shared.models.enums import DatasetType
from shared.models.leagues import LEAGUE_MAPPINGS
from shared.utils.http_client import FetchError, ProviderHTTPClient, RetryPolicy
from shared.utils.logging import get_logger
from shared.utils.metrics import (
    AGGREGATE_LATENCY,
    AGGREGATE_RESULTS,
    CACHE_LOOKUPS,
    atrack_latency,
)
from shared.utils.redis_manager import DurableStore

from aggregator.cache import RawSnapshotCache, ShortTermCache
from ingest.normalization.normalizer import normalize_records
from ingest.providers.base import BaseProvider
from ingest.providers.health import ProviderHealthTracker
from ingest.providers.registry import ProviderRegistry, build_provider_registry

logger = get_logger(__name__)

BUILTIN_SOURCE = "builtin"
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def cache_ttls(settings: Settings) -> dict[DatasetType, int]:
    return {
        DatasetType.LIVE: settings.cache_ttl_live_s,
        DatasetType.LIVE_ALL: settings.cache_ttl_live_s,
        DatasetType.FIXTURES: settings.cache_ttl_fixtures_s,
        DatasetType.STANDINGS: settings.cache_ttl_standings_s,
        DatasetType.ODDS: settings.cache_ttl_odds_s,
        DatasetType.LEAGUES: settings.cache_ttl_leagues_s,
        DatasetType.HEAD_TO_HEAD: settings.cache_ttl_head_to_head_s,
        DatasetType.RECENT_FORM: settings.cache_ttl_recent_form_s,
    }


class SportsAggregator:
    """
    Multi-provider aggregation with health-aware failover and two-tier caching.

    Args:
        registry: Provider connectors in priority order.
        health: Provider health tracker.
        short_cache: Process-local TTL cache; one is created when omitted.
        raw_cache: Durable last-known-good snapshots; memory-only when omitted.
        settings: Engine settings.
        allowed_providers: Allow-list overriding the registry's, for this instance.
        monotonic: Deadline clock in seconds; injectable for tests.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        health: ProviderHealthTracker,
        short_cache: Optional[ShortTermCache[AggregateResult]] = None,
        raw_cache: Optional[RawSnapshotCache] = None,
        settings: Settings | None = None,
        allowed_providers: Optional[Iterable[str]] = None,
        monotonic: Callable[[], float] = time.monotonic,
        http_client: Optional[ProviderHTTPClient] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._registry = registry
        self._health = health
        self._short = short_cache if short_cache is not None else ShortTermCache(self._settings.cache_max_entries)
        self._raw = raw_cache if raw_cache is not None else RawSnapshotCache()
        self._ttls = cache_ttls(self._settings)
        self._monotonic = monotonic
        self._http = http_client
        allowed = {a.lower() for a in allowed_providers} if allowed_providers else set()
        self._allowed: Optional[frozenset[str]] = frozenset(allowed) if allowed else None
        logger.info(
            "aggregator_ready",
            providers=[p.name for p in registry.providers if p.config.enabled],
            durable_snapshots=self._raw.has_store,
            durable_health=self._health.has_store,
        )

    @property
    def short_cache(self) -> ShortTermCache[AggregateResult]:
        return self._short

    @property
    def raw_cache(self) -> RawSnapshotCache:
        return self._raw

    @property
    def health(self) -> ProviderHealthTracker:
        return self._health

    async def close(self) -> None:
        if self._http is not None:
            await self._http.close()

    # ── Public operations ───────────────────────────────────────────────
    async def get_live_matches(self, scope_id: str) -> AggregateResult:
        return await self.aggregate(DatasetQuery(dataset=DatasetType.LIVE, scope_id=str(scope_id)))

    async def get_all_live_matches(self) -> AggregateResult:
        return await self.aggregate(DatasetQuery(dataset=DatasetType.LIVE_ALL))

    async def get_fixtures(self, scope_id: Optional[str] = None) -> AggregateResult:
        """Upcoming fixtures for one competition, or for every default competition when no scope is given."""
        if scope_id is not None:
            return await self.aggregate(DatasetQuery(dataset=DatasetType.FIXTURES, scope_id=str(scope_id)))

        competitions = list(self._settings.prefetch_competitions)
        results = await asyncio.gather(*(
            self.aggregate(DatasetQuery(dataset=DatasetType.FIXTURES, scope_id=c))
            for c in competitions
        ))
        return self._merge(DatasetType.FIXTURES, results)

    async def get_standings(self, scope_id: str, season: Optional[str] = None) -> AggregateResult:
        return await self.aggregate(DatasetQuery(
            dataset=DatasetType.STANDINGS,
            scope_id=str(scope_id),
            season=str(season) if season is not None else None,
        ))

    async def get_odds(self, scope_id: str) -> AggregateResult:
        return await self.aggregate(DatasetQuery(dataset=DatasetType.ODDS, scope_id=str(scope_id)))

    async def get_leagues(self) -> AggregateResult:
        """Competitions from the provider cascade; the built-in league table when nothing answers."""
        result = await self.aggregate(DatasetQuery(dataset=DatasetType.LEAGUES))
        if not result.is_empty:
            return result

        logger.info("leagues_builtin_fallback", count=len(LEAGUE_MAPPINGS))
        return AggregateResult(
            dataset=DatasetType.LEAGUES,
            records=[
                League(
                    id=m.id,
                    name=m.name,
                    country=m.country,
                    code=m.football_data,
                    source_provider=BUILTIN_SOURCE,
                )
                for m in LEAGUE_MAPPINGS.values()
            ],
            source_provider=BUILTIN_SOURCE,
        )

    async def get_head_to_head(self, home_team_id: str, away_team_id: str) -> HeadToHead:
        """Past meetings of two teams with win/draw counts from the first team's side."""
        home, away = str(home_team_id), str(away_team_id)
        result = await self.aggregate(DatasetQuery(dataset=DatasetType.HEAD_TO_HEAD, scope_id=f"{home}-{away}"))
        matches = [r for r in result.records if isinstance(r, Match)]

        home_wins = away_wins = draws = 0
        for match in matches:
            if match.home_score is None or match.away_score is None:
                continue
            if match.home_score == match.away_score:
                draws += 1
                continue
            # Ids orient the result when present; otherwise the first team is taken as the home side
            reversed_sides = match.home_id == away or match.away_id == home
            if (match.home_score > match.away_score) != reversed_sides:
                home_wins += 1
            else:
                away_wins += 1

        return HeadToHead(
            home_team_id=home,
            away_team_id=away,
            total_matches=len(matches),
            home_wins=home_wins,
            away_wins=away_wins,
            draws=draws,
            matches=matches,
            source_provider=result.source_provider,
            stale=result.stale,
            cached=result.cached,
        )

    async def get_recent_form(self, team_id: str, limit: int = 5) -> AggregateResult:
        """A team's latest matches, newest first."""
        result = await self.aggregate(DatasetQuery(dataset=DatasetType.RECENT_FORM, scope_id=str(team_id)))
        matches = sorted(
            (r for r in result.records if isinstance(r, Match)),
            key=lambda m: m.kickoff or _EPOCH,
            reverse=True,
        )
        return result.model_copy(update={"records": matches[:max(limit, 0)]})

    async def get_match_by_id(self, match_id: str) -> Optional[Match]:
        """Find a live match by id: cached live results first, then a live-all fetch."""
        match_id = str(match_id)
        keys = [DatasetQuery(dataset=DatasetType.LIVE_ALL).cache_key]
        keys += [
            DatasetQuery(dataset=DatasetType.LIVE, scope_id=c).cache_key
            for c in self._settings.prefetch_competitions
        ]
        for key in keys:
            cached = self._short.get(key)
            found = self._find_match(cached, match_id) if cached else None
            if found is not None:
                return found

        return self._find_match(await self.get_all_live_matches(), match_id)

    async def provider_status(self) -> dict[str, Optional[HealthRecord]]:
        """Active health record (None when healthy) per configured provider."""
        names = [p.name for p in self._registry.providers if p.config.enabled]
        return await self._health.snapshot(names)

    # ── Orchestration ───────────────────────────────────────────────────
    async def aggregate(self, query: DatasetQuery) -> AggregateResult:
        dataset = query.dataset.value
        with bound_contextvars(dataset=dataset, scope=query.scope_key):
            async with atrack_latency(AGGREGATE_LATENCY, dataset=dataset):
                cached = self._short.get(query.cache_key)
                if cached is not None:
                    CACHE_LOOKUPS.labels(dataset=dataset, result="hit").inc()
                    AGGREGATE_RESULTS.labels(dataset=dataset, outcome="cache").inc()
                    return cached.model_copy(update={"cached": True})
                CACHE_LOOKUPS.labels(dataset=dataset, result="miss").inc()

                result = await self._fetch_live(query)
                if result is None:
                    result = await self._fallback(query)
                return result

    def _eligible(self, dataset: DatasetType) -> list[BaseProvider]:
        providers = self._registry.candidates(dataset)
        if self._allowed is not None:
            providers = [p for p in providers if p.name in self._allowed]
        return providers

    async def _candidates(self, dataset: DatasetType) -> list[BaseProvider]:
        candidates = []
        for provider in self._eligible(dataset):
            if await self._health.is_disabled(provider.name):
                logger.debug("provider_skipped_disabled", provider=provider.name, dataset=dataset.value)
                continue
            candidates.append(provider)
        return candidates

    async def _fetch_live(self, query: DatasetQuery) -> Optional[AggregateResult]:
        deadline = self._monotonic() + self._settings.request_deadline_s
        candidates = await self._candidates(query.dataset)

        for index, provider in enumerate(candidates):
            remaining = deadline - self._monotonic()
            if remaining <= 0:
                logger.warning(
                    "aggregate_deadline_exceeded",
                    dataset=query.dataset.value,
                    scope=query.scope_key,
                    skipped=[p.name for p in candidates[index:]],
                )
                break

            try:
                raw_records = await asyncio.wait_for(provider.fetch(query), timeout=remaining)
            except FetchError as exc:
                await self._health.mark_failure(provider.name, exc.status_code, exc.message)
                continue
            except asyncio.TimeoutError:
                await self._health.mark_failure(provider.name, 0, "request deadline exceeded")
                continue
            except Exception as exc:
                logger.error(
                    "provider_unexpected_error",
                    provider=provider.name,
                    dataset=query.dataset.value,
                    error=str(exc),
                    exc_info=True,
                )
                await self._health.mark_failure(provider.name, 0, str(exc))
                continue

            await self._health.clear(provider.name)
            records = normalize_records(query.dataset, raw_records, provider.name)
            if not records:
                logger.info(
                    "provider_no_data",
                    provider=provider.name,
                    dataset=query.dataset.value,
                    scope=query.scope_key,
                )
                continue

            result = AggregateResult(
                dataset=query.dataset,
                scope_id=query.scope_id,
                records=records,
                source_provider=provider.name,
                captured_at=utc_now(),
            )
            self._short.set(query.cache_key, result, self._ttls[query.dataset])
            await self._raw.save(provider.name, query, raw_records)
            AGGREGATE_RESULTS.labels(dataset=query.dataset.value, outcome="live").inc()
            return result

        return None

    async def _fallback(self, query: DatasetQuery) -> AggregateResult:
        names = [p.name for p in self._eligible(query.dataset)]
        snapshot = await self._raw.load_latest(query, names)
        if snapshot is not None:
            records = normalize_records(query.dataset, snapshot.payload, snapshot.provider)
            if records:
                logger.warning(
                    "serving_stale_snapshot",
                    dataset=query.dataset.value,
                    scope=query.scope_key,
                    provider=snapshot.provider,
                    captured_at=snapshot.captured_at.isoformat(),
                )
                AGGREGATE_RESULTS.labels(dataset=query.dataset.value, outcome="stale").inc()
                return AggregateResult(
                    dataset=query.dataset,
                    scope_id=query.scope_id,
                    records=records,
                    source_provider=snapshot.provider,
                    stale=True,
                    captured_at=snapshot.captured_at,
                )

        logger.warning("aggregate_no_data", dataset=query.dataset.value, scope=query.scope_key)
        AGGREGATE_RESULTS.labels(dataset=query.dataset.value, outcome="empty").inc()
        return AggregateResult(dataset=query.dataset, scope_id=query.scope_id)

    # ── Helpers ─────────────────────────────────────────────────────────
    @staticmethod
    def _find_match(result: Optional[AggregateResult], match_id: str) -> Optional[Match]:
        if result is None:
            return None
        for record in result.records:
            if isinstance(record, Match) and record.id == match_id:
                return record
        return None

    @staticmethod
    def _merge(dataset: DatasetType, results: list[AggregateResult]) -> AggregateResult:
        records = [r for result in results for r in result.records]
        providers = {r.source_provider for r in results if r.source_provider}
        non_empty = [r for r in results if r.records]
        return AggregateResult(
            dataset=dataset,
            scope_id=None,
            records=records,
            source_provider=providers.pop() if len(providers) == 1 else None,
            stale=any(r.stale for r in non_empty),
            cached=bool(non_empty) and all(r.cached for r in non_empty),
            captured_at=min((r.captured_at for r in non_empty), default=utc_now()),
        )


def build_aggregator(
    settings: Settings | None = None,
    store: Optional[DurableStore] = None,
    http_client: Optional[ProviderHTTPClient] = None,
    allowed_providers: Optional[Iterable[str]] = None,
) -> SportsAggregator:
    """Wire registry, health tracker and caches from settings around one HTTP client."""
    settings = settings or get_settings()
    http_client = http_client or ProviderHTTPClient(
        timeout_s=settings.provider_request_timeout_s,
        retry_policy=RetryPolicy.from_settings(settings),
    )
    registry = build_provider_registry(http_client, settings)
    return SportsAggregator(
        registry=registry,
        health=ProviderHealthTracker(store),
        short_cache=ShortTermCache(settings.cache_max_entries),
        raw_cache=RawSnapshotCache(store),
        settings=settings,
        allowed_providers=allowed_providers,
        http_client=http_client,
    )
