"""
ESPN provider connector.
Uses ESPN's public site APIs (no auth). Scoreboards answer live and fixture
queries; the event state (``pre``/``in``/``post``) picks the subset.
"""
from __future__ import annotations

import asyncio
from typing import Any, Iterable, Optional

from shared.models.domain import DatasetQuery
from shared.models.enums import DatasetType, ProviderName
from shared.models.leagues import LEAGUE_MAPPINGS, provider_code
from shared.utils.http_client import FetchError
from shared.utils.logging import get_logger

from ingest.providers.base import BaseProvider, RequestStrategy, first_list

logger = get_logger(__name__)

# Scoreboards fanned out for "all live matches"; ESPN has no cross-league live feed
_LIVE_ALL_SLUGS: tuple[str, ...] = tuple(m.espn for m in LEAGUE_MAPPINGS.values())


def _event_state(event: Any) -> str:
    try:
        return str(event["status"]["type"]["state"]).lower()
    except (KeyError, TypeError):
        try:
            return str(event["competitions"][0]["status"]["type"]["state"]).lower()
        except (KeyError, IndexError, TypeError):
            return ""


class EspnProvider(BaseProvider):
    datasets = frozenset({
        DatasetType.LIVE,
        DatasetType.LIVE_ALL,
        DatasetType.FIXTURES,
        DatasetType.STANDINGS,
    })

    def _scoreboard_url(self, slug: str) -> str:
        return f"{self.base_url}/site/v2/sports/soccer/{slug}/scoreboard"

    async def fetch(self, query: DatasetQuery) -> list[Any]:
        if query.dataset != DatasetType.LIVE_ALL:
            return await super().fetch(query)
        return await self._fetch_all_scoreboards(query)

    async def _fetch_all_scoreboards(self, query: DatasetQuery) -> list[Any]:
        """
        Query every league scoreboard concurrently and concatenate the
        in-progress events. Raises only when no scoreboard answered.
        """
        strategies = list(self.build_requests(query))
        payloads = await asyncio.gather(
            *(self._http.fetch(s.url, params=s.params or None) for s in strategies),
            return_exceptions=True,
        )

        events: list[Any] = []
        last_error: Optional[FetchError] = None
        answered = 0
        for strategy, payload in zip(strategies, payloads):
            if isinstance(payload, FetchError):
                last_error = payload
                logger.debug("provider_strategy_failed", provider=self.name, strategy=strategy.name,
                             status=payload.status_code, kind=payload.kind.value)
                continue
            if isinstance(payload, BaseException):
                raise payload
            answered += 1
            events.extend(self.extract_records(query, strategy, payload))

        if not answered and last_error is not None:
            raise last_error
        logger.info("provider_fetch_ok" if events else "provider_fetch_empty", provider=self.name,
                    dataset=query.dataset.value, scoreboards=answered, count=len(events))
        return events

    def build_requests(self, query: DatasetQuery) -> Iterable[RequestStrategy]:
        if query.dataset == DatasetType.LIVE_ALL:
            for slug in _LIVE_ALL_SLUGS:
                yield RequestStrategy(f"scoreboard_{slug}", self._scoreboard_url(slug))
            return

        slug = provider_code(ProviderName.ESPN.value, query.scope_id or "")
        if query.dataset in (DatasetType.LIVE, DatasetType.FIXTURES):
            yield RequestStrategy("scoreboard", self._scoreboard_url(slug))
        elif query.dataset == DatasetType.STANDINGS:
            params = {"season": query.season} if query.season else {}
            yield RequestStrategy("standings", f"{self.base_url}/v2/sports/soccer/{slug}/standings", params)

    def extract(self, query: DatasetQuery, payload: Any) -> list[Any]:
        if query.dataset == DatasetType.STANDINGS:
            return self._standing_entries(payload)

        events = first_list(payload, "events")
        if query.dataset in (DatasetType.LIVE, DatasetType.LIVE_ALL):
            return [e for e in events if _event_state(e) == "in"]
        if query.dataset == DatasetType.FIXTURES:
            return [e for e in events if _event_state(e) != "post"]
        return events

    @staticmethod
    def _standing_entries(payload: Any) -> list[Any]:
        if not isinstance(payload, dict):
            return []
        # Single-table leagues put standings at the root, group stages under children
        blocks: list[tuple[str, Any]] = [("", payload)]
        for child in payload.get("children") or []:
            if isinstance(child, dict):
                blocks.append((str(child.get("name") or ""), child))

        rows: list[Any] = []
        for group, block in blocks:
            standings = block.get("standings")
            entries = standings.get("entries") if isinstance(standings, dict) else None
            for entry in entries or []:
                if isinstance(entry, dict):
                    rows.append({**entry, "group": group})
        return rows
