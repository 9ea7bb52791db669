"""
API-Football (API-Sports v3) connector.

The same key works against the direct API-Sports host (``x-apisports-key``)
and the RapidAPI gateway (``x-rapidapi-key`` / ``x-rapidapi-host``); every
query is tried on the direct host first, then through RapidAPI.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional

import httpx

from shared.models.domain import DatasetQuery, ProviderConfig
from shared.models.enums import DatasetType
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

from ingest.providers.base import BaseProvider, RequestStrategy, current_season, first_list, team_pair

logger = get_logger(__name__)

_LIVE_STATUSES = "1H-HT-2H-ET-BT-P-LIVE"
_FIXTURES_PAGE = 50
_RECENT_LIMIT = 10


class ApiFootballProvider(BaseProvider):
    datasets = frozenset({
        DatasetType.LIVE,
        DatasetType.LIVE_ALL,
        DatasetType.FIXTURES,
        DatasetType.STANDINGS,
        DatasetType.ODDS,
        DatasetType.LEAGUES,
        DatasetType.HEAD_TO_HEAD,
        DatasetType.RECENT_FORM,
    })

    def __init__(
        self,
        config: ProviderConfig,
        http_client: ProviderHTTPClient,
        rapidapi_base_url: Optional[str] = None,
    ) -> None:
        super().__init__(config, http_client)
        self._rapidapi_base_url = (rapidapi_base_url or "").rstrip("/")

    def _hosts(self) -> list[tuple[str, str, dict[str, str]]]:
        key = self._config.auth_token
        hosts = [("direct", self.base_url, {"x-apisports-key": key})]
        if self._rapidapi_base_url:
            hosts.append((
                "rapidapi",
                self._rapidapi_base_url,
                {"x-rapidapi-key": key, "x-rapidapi-host": httpx.URL(self._rapidapi_base_url).host},
            ))
        return hosts

    def _paths(self, query: DatasetQuery) -> list[tuple[str, str, dict[str, Any]]]:
        league = query.scope_id or ""
        season = query.season or str(current_season())

        if query.dataset == DatasetType.LIVE_ALL:
            return [("live_all", "/fixtures", {"live": "all"})]
        if query.dataset == DatasetType.LIVE:
            return [
                ("league_live", "/fixtures", {"live": league}),
                ("league_season_live", "/fixtures", {"league": league, "season": season, "status": _LIVE_STATUSES}),
            ]
        if query.dataset == DatasetType.FIXTURES:
            return [
                ("league_next", "/fixtures", {"league": league, "next": _FIXTURES_PAGE}),
                ("league_season_scheduled", "/fixtures", {"league": league, "season": season, "status": "NS"}),
            ]
        if query.dataset == DatasetType.STANDINGS:
            return [("standings", "/standings", {"league": league, "season": season})]
        if query.dataset == DatasetType.ODDS:
            return [
                ("odds_live", "/odds/live", {"league": league}),
                ("odds_season", "/odds", {"league": league, "season": season}),
            ]
        if query.dataset == DatasetType.LEAGUES:
            return [("leagues", "/leagues", {"type": "league"})]
        if query.dataset == DatasetType.HEAD_TO_HEAD:
            pair = team_pair(query.scope_id)
            return [("headtohead", "/fixtures/headtohead", {"h2h": "-".join(pair)})] if pair else []
        if query.dataset == DatasetType.RECENT_FORM and query.scope_id:
            return [("team_last", "/fixtures", {"team": query.scope_id, "last": _RECENT_LIMIT})]
        return []

    def build_requests(self, query: DatasetQuery) -> Iterable[RequestStrategy]:
        for host_tag, base, headers in self._hosts():
            for name, path, params in self._paths(query):
                yield RequestStrategy(f"{host_tag}_{name}", f"{base}{path}", dict(params), headers)

    def extract(self, query: DatasetQuery, payload: Any) -> list[Any]:
        records = first_list(payload, "response")
        if query.dataset != DatasetType.STANDINGS:
            return records

        # response[].league.standings is a list of groups, each a list of rows
        rows: list[Any] = []
        for entry in records:
            if not isinstance(entry, dict):
                continue
            league = entry.get("league")
            groups = league.get("standings") if isinstance(league, dict) else None
            for group in groups or []:
                if isinstance(group, list):
                    rows.extend(row for row in group if isinstance(row, dict))
        return rows
