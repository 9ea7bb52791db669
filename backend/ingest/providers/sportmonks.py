"""
SportMonks football v3 connector.

Auth: ``api_token`` query parameter. Fixtures carry participants, scores and
state through ``include``; league filtering uses SportMonks league ids.
"""
from __future__ import annotations

from typing import Any, Iterable

from shared.models.domain import DatasetQuery
from shared.models.enums import DatasetType, MatchStatus, ProviderName
from shared.models.leagues import provider_code
from shared.utils.logging import get_logger

from ingest.normalization.status import sportmonks_status
from ingest.providers.base import BaseProvider, RequestStrategy, first_list, team_pair

logger = get_logger(__name__)

_MATCH_INCLUDES = "participants;scores;state;league;venue;periods"
_LATEST_INCLUDES = "latest.participants;latest.scores;latest.state;latest.league"
_ODDS_INCLUDES = "participants;odds.bookmaker;odds.market"
_LIVE_DATASETS = (DatasetType.LIVE, DatasetType.LIVE_ALL)


class SportMonksProvider(BaseProvider):
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

    def _params(self, **extra: Any) -> dict[str, Any]:
        return {"api_token": self._config.auth_token, **extra}

    def build_requests(self, query: DatasetQuery) -> Iterable[RequestStrategy]:
        base = f"{self.base_url}/football"
        league_id = provider_code(ProviderName.SPORTMONKS.value, query.scope_id or "")

        if query.dataset == DatasetType.LIVE_ALL:
            yield RequestStrategy("livescores_inplay", f"{base}/livescores/inplay",
                                  self._params(include=_MATCH_INCLUDES))
            yield RequestStrategy("livescores", f"{base}/livescores",
                                  self._params(include=_MATCH_INCLUDES))
        elif query.dataset == DatasetType.LIVE:
            league_filter = f"fixtureLeagues:{league_id}"
            yield RequestStrategy("livescores_inplay_league", f"{base}/livescores/inplay",
                                  self._params(include=_MATCH_INCLUDES, filters=league_filter))
            yield RequestStrategy("livescores_league", f"{base}/livescores",
                                  self._params(include=_MATCH_INCLUDES, filters=league_filter))
        elif query.dataset == DatasetType.FIXTURES:
            yield RequestStrategy("fixtures_upcoming", f"{base}/fixtures",
                                  self._params(include=_MATCH_INCLUDES,
                                               filters=f"fixtureLeagues:{league_id};fixtureStates:1"))
        elif query.dataset == DatasetType.STANDINGS:
            if query.season:
                yield RequestStrategy("standings_season", f"{base}/standings/seasons/{query.season}",
                                      self._params(include="participant;details"))
            else:
                yield RequestStrategy("standings_live_league", f"{base}/standings/live/leagues/{league_id}",
                                      self._params(include="participant;details"))
        elif query.dataset == DatasetType.ODDS:
            yield RequestStrategy("odds_fixtures", f"{base}/fixtures",
                                  self._params(include=_ODDS_INCLUDES,
                                               filters=f"fixtureLeagues:{league_id};markets:1"))
        elif query.dataset == DatasetType.LEAGUES:
            yield RequestStrategy("leagues", f"{base}/leagues", self._params(include="country"))
        elif query.dataset == DatasetType.HEAD_TO_HEAD:
            pair = team_pair(query.scope_id)
            if pair is not None:
                yield RequestStrategy("head_to_head", f"{base}/fixtures/head-to-head/{pair[0]}/{pair[1]}",
                                      self._params(include=_MATCH_INCLUDES))
        elif query.dataset == DatasetType.RECENT_FORM and query.scope_id:
            yield RequestStrategy("team_latest", f"{base}/teams/{query.scope_id}",
                                  self._params(include=_LATEST_INCLUDES))

    def extract(self, query: DatasetQuery, payload: Any) -> list[Any]:
        if query.dataset == DatasetType.RECENT_FORM:
            team = payload.get("data") if isinstance(payload, dict) else None
            return first_list(team, "latest")

        records = first_list(payload, "data", "result", "results")
        if query.dataset in _LIVE_DATASETS:
            # /livescores also lists the day's scheduled, postponed and finished fixtures
            return [r for r in records if sportmonks_status(r) == MatchStatus.LIVE]
        return records
