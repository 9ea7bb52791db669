"""
football-data.org v4 connector.

Auth: ``X-Auth-Token`` header. Competition codes come from the league
mapping table (39 → PL, 140 → PD, ...). Odds are not offered.
"""
from __future__ import annotations

from typing import Any, Iterable

from shared.models.domain import DatasetQuery
from shared.models.enums import DatasetType, ProviderName
from shared.models.leagues import provider_code
from shared.utils.logging import get_logger

from ingest.providers.base import BaseProvider, RequestStrategy, first_list

logger = get_logger(__name__)

_LIVE_STATUSES = "IN_PLAY,PAUSED,LIVE"
_RECENT_LIMIT = 10


class FootballDataProvider(BaseProvider):
    datasets = frozenset({
        DatasetType.LIVE,
        DatasetType.LIVE_ALL,
        DatasetType.FIXTURES,
        DatasetType.STANDINGS,
        DatasetType.LEAGUES,
        DatasetType.RECENT_FORM,
    })

    def _headers(self) -> dict[str, str]:
        return {"X-Auth-Token": self._config.auth_token}

    def build_requests(self, query: DatasetQuery) -> Iterable[RequestStrategy]:
        headers = self._headers()
        code = provider_code(ProviderName.FOOTBALL_DATA.value, query.scope_id or "")

        if query.dataset == DatasetType.LIVE_ALL:
            yield RequestStrategy("matches_live", f"{self.base_url}/matches",
                                  {"status": _LIVE_STATUSES}, headers)
        elif query.dataset == DatasetType.LIVE:
            yield RequestStrategy("competition_live", f"{self.base_url}/competitions/{code}/matches",
                                  {"status": _LIVE_STATUSES}, headers)
            yield RequestStrategy("matches_live_filtered", f"{self.base_url}/matches",
                                  {"status": _LIVE_STATUSES, "competitions": code}, headers)
        elif query.dataset == DatasetType.FIXTURES:
            yield RequestStrategy("competition_scheduled", f"{self.base_url}/competitions/{code}/matches",
                                  {"status": "SCHEDULED,TIMED"}, headers)
        elif query.dataset == DatasetType.STANDINGS:
            params = {"season": query.season} if query.season else {}
            yield RequestStrategy("competition_standings", f"{self.base_url}/competitions/{code}/standings",
                                  params, headers)
        elif query.dataset == DatasetType.LEAGUES:
            yield RequestStrategy("competitions", f"{self.base_url}/competitions", {}, headers)
        elif query.dataset == DatasetType.RECENT_FORM and query.scope_id:
            yield RequestStrategy("team_finished", f"{self.base_url}/teams/{query.scope_id}/matches",
                                  {"status": "FINISHED", "limit": _RECENT_LIMIT}, headers)

    def extract(self, query: DatasetQuery, payload: Any) -> list[Any]:
        if query.dataset == DatasetType.LEAGUES:
            return first_list(payload, "competitions")
        if query.dataset != DatasetType.STANDINGS:
            return first_list(payload, "matches")

        rows: list[Any] = []
        for table in first_list(payload, "standings"):
            if not isinstance(table, dict):
                continue
            if table.get("type", "TOTAL") != "TOTAL":
                continue
            group = table.get("group") or ""
            for row in table.get("table") or []:
                if isinstance(row, dict):
                    rows.append({**row, "group": row.get("group") or group})
        return rows
