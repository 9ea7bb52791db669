"""
Connector tests against a mocked transport: URL shapes, auth, strategy
fallback and envelope extraction.

Run: pytest backend/tests/test_providers.py -v
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import httpx
import pytest

from ingest.providers.api_football import ApiFootballProvider
from ingest.providers.base import BaseProvider, current_season, first_list, team_pair
from ingest.providers.espn import EspnProvider
from ingest.providers.football_data import FootballDataProvider
from ingest.providers.openligadb import OpenLigaDbProvider
from ingest.providers.sportmonks import SportMonksProvider
from shared.models.domain import DatasetQuery, ProviderConfig
from shared.models.enums import DatasetType
from shared.models.leagues import LEAGUE_MAPPINGS
from shared.utils.http_client import FetchError, ProviderHTTPClient, RetryPolicy

Handler = Callable[[httpx.Request], httpx.Response]


async def _no_sleep(_: float) -> None:
    return None


class Recorder:
    """MockTransport handler that records requests and delegates to ``respond``."""

    def __init__(self, respond: Handler) -> None:
        self.respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)


def make_provider(cls: type[BaseProvider], name: str, base_url: str, recorder: Recorder,
                  token: str = "", **kwargs: Any) -> Any:
    http = ProviderHTTPClient(
        timeout_s=1.0,
        retry_policy=RetryPolicy(max_attempts=1),
        client=httpx.AsyncClient(transport=httpx.MockTransport(recorder)),
        sleep=_no_sleep,
    )
    config = ProviderConfig(name=name, priority=1, base_url=base_url, auth_token=token, datasets=cls.datasets)
    return cls(config, http, **kwargs)


def query(dataset: DatasetType, scope_id: str | None = None, season: str | None = None) -> DatasetQuery:
    return DatasetQuery(dataset=dataset, scope_id=scope_id, season=season)


# ── Base helpers ────────────────────────────────────────────────────────

def test_first_list_and_season() -> None:
    assert first_list([1, 2]) == [1, 2]
    assert first_list({"data": None, "result": [3]}, "data", "result") == [3]
    assert first_list("text", "data") == []
    assert current_season(datetime(2025, 3, 1, tzinfo=timezone.utc)) == 2024
    assert current_season(datetime(2025, 8, 1, tzinfo=timezone.utc)) == 2025


def test_team_pair() -> None:
    assert team_pair("33-34") == ("33", "34")
    assert team_pair("33") is None
    assert team_pair("-34") is None
    assert team_pair(None) is None


# ── football-data.org ───────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_football_data_live_request_shape() -> None:
    recorder = Recorder(lambda r: httpx.Response(200, json={"matches": [{"id": 1}]}))
    provider = make_provider(FootballDataProvider, "football_data",
                             "https://api.football-data.org/v4", recorder, token="fd-key")

    records = await provider.fetch(query(DatasetType.LIVE, "140"))

    assert records == [{"id": 1}]
    request = recorder.requests[0]
    assert request.url.path == "/v4/competitions/PD/matches"
    assert request.url.params["status"] == "IN_PLAY,PAUSED,LIVE"
    assert request.headers["X-Auth-Token"] == "fd-key"


@pytest.mark.asyncio
async def test_football_data_falls_back_to_second_strategy() -> None:
    def respond(request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/v4/competitions"):
            return httpx.Response(500, text="boom")
        return httpx.Response(200, json={"matches": [{"id": 2}]})

    recorder = Recorder(respond)
    provider = make_provider(FootballDataProvider, "football_data",
                             "https://api.football-data.org/v4", recorder, token="fd-key")

    records = await provider.fetch(query(DatasetType.LIVE, "39"))

    assert records == [{"id": 2}]
    assert recorder.requests[1].url.path == "/v4/matches"
    assert recorder.requests[1].url.params["competitions"] == "PL"


@pytest.mark.asyncio
async def test_football_data_standings_keep_total_tables() -> None:
    payload = {"standings": [
        {"type": "TOTAL", "group": None, "table": [{"position": 1}, {"position": 2}]},
        {"type": "HOME", "table": [{"position": 1}]},
    ]}
    recorder = Recorder(lambda r: httpx.Response(200, json=payload))
    provider = make_provider(FootballDataProvider, "football_data",
                             "https://api.football-data.org/v4", recorder, token="fd-key")

    rows = await provider.fetch(query(DatasetType.STANDINGS, "61", season="2024"))

    assert rows == [{"position": 1, "group": ""}, {"position": 2, "group": ""}]
    assert recorder.requests[0].url.path == "/v4/competitions/FL1/standings"
    assert recorder.requests[0].url.params["season"] == "2024"


@pytest.mark.asyncio
async def test_answered_but_empty_returns_empty_list() -> None:
    recorder = Recorder(lambda r: httpx.Response(200, json={"matches": []}))
    provider = make_provider(FootballDataProvider, "football_data",
                             "https://api.football-data.org/v4", recorder, token="fd-key")

    assert await provider.fetch(query(DatasetType.LIVE, "39")) == []
    assert len(recorder.requests) == 2


@pytest.mark.asyncio
async def test_malformed_envelope_counts_as_empty_answer() -> None:
    payload = {"standings": [{"type": "TOTAL", "table": 5}]}
    recorder = Recorder(lambda r: httpx.Response(200, json=payload))
    provider = make_provider(FootballDataProvider, "football_data",
                             "https://api.football-data.org/v4", recorder, token="fd-key")

    assert await provider.fetch(query(DatasetType.STANDINGS, "39")) == []


@pytest.mark.asyncio
async def test_football_data_competitions_and_team_matches() -> None:
    def respond(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v4/competitions":
            return httpx.Response(200, json={"competitions": [{"id": 2021, "code": "PL"}]})
        return httpx.Response(200, json={"matches": [{"id": 7}]})

    recorder = Recorder(respond)
    provider = make_provider(FootballDataProvider, "football_data",
                             "https://api.football-data.org/v4", recorder, token="fd-key")

    assert await provider.fetch(query(DatasetType.LEAGUES)) == [{"id": 2021, "code": "PL"}]
    assert await provider.fetch(query(DatasetType.RECENT_FORM, "57")) == [{"id": 7}]
    team_request = recorder.requests[1]
    assert team_request.url.path == "/v4/teams/57/matches"
    assert team_request.url.params["status"] == "FINISHED"
    assert not provider.supports(DatasetType.HEAD_TO_HEAD)


# ── API-Football ────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_api_football_falls_back_to_rapidapi_host() -> None:
    def respond(request: httpx.Request) -> httpx.Response:
        if request.url.host == "v3.football.api-sports.io":
            return httpx.Response(403, json={"errors": {"token": "invalid"}})
        return httpx.Response(200, json={"response": [{"fixture": {"id": 868}}]})

    recorder = Recorder(respond)
    provider = make_provider(
        ApiFootballProvider, "api_football", "https://v3.football.api-sports.io", recorder,
        token="af-key", rapidapi_base_url="https://api-football-v1.p.rapidapi.com/v3",
    )

    records = await provider.fetch(query(DatasetType.LIVE, "39"))

    assert records == [{"fixture": {"id": 868}}]
    assert len(recorder.requests) == 3
    assert recorder.requests[0].headers["x-apisports-key"] == "af-key"
    assert recorder.requests[0].url.params["live"] == "39"
    rapid = recorder.requests[2]
    assert rapid.url.path == "/v3/fixtures"
    assert rapid.headers["x-rapidapi-key"] == "af-key"
    assert rapid.headers["x-rapidapi-host"] == "api-football-v1.p.rapidapi.com"


@pytest.mark.asyncio
async def test_every_strategy_failing_raises_last_error() -> None:
    recorder = Recorder(lambda r: httpx.Response(502, text="bad gateway"))
    provider = make_provider(ApiFootballProvider, "api_football",
                             "https://v3.football.api-sports.io", recorder, token="af-key")

    with pytest.raises(FetchError) as info:
        await provider.fetch(query(DatasetType.ODDS, "39"))

    assert info.value.status_code == 502
    assert [r.url.path for r in recorder.requests] == ["/odds/live", "/odds"]


@pytest.mark.asyncio
async def test_api_football_standings_flatten_groups() -> None:
    payload = {"response": [{"league": {"standings": [
        [{"rank": 1, "group": "Group A"}, {"rank": 2, "group": "Group A"}],
        [{"rank": 1, "group": "Group B"}],
    ]}}]}
    recorder = Recorder(lambda r: httpx.Response(200, json=payload))
    provider = make_provider(ApiFootballProvider, "api_football",
                             "https://v3.football.api-sports.io", recorder, token="af-key")

    rows = await provider.fetch(query(DatasetType.STANDINGS, "2", season="2024"))

    assert [r["group"] for r in rows] == ["Group A", "Group A", "Group B"]
    assert recorder.requests[0].url.params["season"] == "2024"


@pytest.mark.asyncio
async def test_malformed_direct_answer_moves_on_to_rapidapi() -> None:
    def respond(request: httpx.Request) -> httpx.Response:
        if request.url.host == "v3.football.api-sports.io":
            return httpx.Response(200, json={"response": [{"league": {"standings": 5}}]})
        return httpx.Response(200, json={"response": [{"league": {"standings": [[{"rank": 1}]]}}]})

    recorder = Recorder(respond)
    provider = make_provider(
        ApiFootballProvider, "api_football", "https://v3.football.api-sports.io", recorder,
        token="af-key", rapidapi_base_url="https://api-football-v1.p.rapidapi.com/v3",
    )

    rows = await provider.fetch(query(DatasetType.STANDINGS, "39", season="2024"))

    assert rows == [{"rank": 1}]
    assert len(recorder.requests) == 2


@pytest.mark.asyncio
async def test_api_football_head_to_head_leagues_and_recent_form() -> None:
    recorder = Recorder(lambda r: httpx.Response(200, json={"response": [{"fixture": {"id": 1}}]}))
    provider = make_provider(ApiFootballProvider, "api_football",
                             "https://v3.football.api-sports.io", recorder, token="af-key")

    await provider.fetch(query(DatasetType.HEAD_TO_HEAD, "33-34"))
    await provider.fetch(query(DatasetType.LEAGUES))
    await provider.fetch(query(DatasetType.RECENT_FORM, "33"))

    h2h, leagues, form = recorder.requests
    assert h2h.url.path == "/fixtures/headtohead"
    assert h2h.url.params["h2h"] == "33-34"
    assert leagues.url.path == "/leagues"
    assert leagues.url.params["type"] == "league"
    assert form.url.params["team"] == "33"
    assert form.url.params["last"] == "10"


@pytest.mark.asyncio
async def test_head_to_head_without_team_pair_makes_no_requests() -> None:
    recorder = Recorder(lambda r: httpx.Response(200, json={"response": []}))
    provider = make_provider(ApiFootballProvider, "api_football",
                             "https://v3.football.api-sports.io", recorder, token="af-key")

    assert await provider.fetch(query(DatasetType.HEAD_TO_HEAD, "33")) == []
    assert recorder.requests == []


# ── SportMonks ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_sportmonks_token_and_league_filter() -> None:
    recorder = Recorder(lambda r: httpx.Response(200, json={"data": [{"id": 19134}]}))
    provider = make_provider(SportMonksProvider, "sportmonks",
                             "https://api.sportmonks.com/v3", recorder, token="sm-key")

    records = await provider.fetch(query(DatasetType.FIXTURES, "78"))

    assert records == [{"id": 19134}]
    request = recorder.requests[0]
    assert request.url.path == "/v3/football/fixtures"
    assert request.url.params["api_token"] == "sm-key"
    assert request.url.params["filters"] == "fixtureLeagues:82;fixtureStates:1"


def _sm_fixture(fixture_id: int, state_id: int) -> dict[str, Any]:
    return {"id": fixture_id, "state_id": state_id}


@pytest.mark.asyncio
@pytest.mark.parametrize("dataset", [DatasetType.LIVE_ALL, DatasetType.LIVE])
async def test_sportmonks_livescores_keep_only_in_play(dataset: DatasetType) -> None:
    def respond(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/livescores/inplay"):
            return httpx.Response(200, json={"data": []})
        return httpx.Response(200, json={"data": [
            _sm_fixture(1, 1), _sm_fixture(2, 2), _sm_fixture(3, 5), _sm_fixture(4, 3),
        ]})

    recorder = Recorder(respond)
    provider = make_provider(SportMonksProvider, "sportmonks",
                             "https://api.sportmonks.com/v3", recorder, token="sm-key")

    records = await provider.fetch(query(dataset, "78"))

    assert [r["id"] for r in records] == [2, 4]
    assert [r.url.path for r in recorder.requests] == [
        "/v3/football/livescores/inplay", "/v3/football/livescores",
    ]


@pytest.mark.asyncio
async def test_sportmonks_livescores_without_live_fixtures_is_empty() -> None:
    recorder = Recorder(lambda r: httpx.Response(200, json={"data": [_sm_fixture(1, 1), _sm_fixture(2, 5)]}))
    provider = make_provider(SportMonksProvider, "sportmonks",
                             "https://api.sportmonks.com/v3", recorder, token="sm-key")

    assert await provider.fetch(query(DatasetType.LIVE_ALL)) == []


@pytest.mark.asyncio
async def test_sportmonks_head_to_head_and_team_latest() -> None:
    def respond(request: httpx.Request) -> httpx.Response:
        if "/teams/" in request.url.path:
            return httpx.Response(200, json={"data": {"id": 85, "latest": [{"id": 9}, {"id": 8}]}})
        return httpx.Response(200, json={"data": [{"id": 5}]})

    recorder = Recorder(respond)
    provider = make_provider(SportMonksProvider, "sportmonks",
                             "https://api.sportmonks.com/v3", recorder, token="sm-key")

    assert await provider.fetch(query(DatasetType.HEAD_TO_HEAD, "85-62")) == [{"id": 5}]
    assert await provider.fetch(query(DatasetType.RECENT_FORM, "85")) == [{"id": 9}, {"id": 8}]
    h2h, latest = recorder.requests
    assert h2h.url.path == "/v3/football/fixtures/head-to-head/85/62"
    assert latest.url.path == "/v3/football/teams/85"
    assert latest.url.params["include"].startswith("latest.")


# ── ESPN ────────────────────────────────────────────────────────────────

def _event(event_id: str, state: str) -> dict[str, Any]:
    return {"id": event_id, "status": {"type": {"state": state}}}


@pytest.mark.asyncio
async def test_espn_live_keeps_in_progress_events() -> None:
    events = {"events": [_event("1", "pre"), _event("2", "in"), _event("3", "post")]}
    recorder = Recorder(lambda r: httpx.Response(200, json=events))
    provider = make_provider(EspnProvider, "espn", "https://site.api.espn.com/apis", recorder)

    live = await provider.fetch(query(DatasetType.LIVE, "140"))
    fixtures = await provider.fetch(query(DatasetType.FIXTURES, "140"))

    assert [e["id"] for e in live] == ["2"]
    assert [e["id"] for e in fixtures] == ["1", "2"]
    assert recorder.requests[0].url.path == "/apis/site/v2/sports/soccer/esp.1/scoreboard"


@pytest.mark.asyncio
async def test_espn_standings_collect_group_children() -> None:
    payload = {"children": [
        {"name": "Group A", "standings": {"entries": [{"team": {"displayName": "Arsenal"}}]}},
        {"name": "Group B", "standings": {"entries": [{"team": {"displayName": "Inter"}}]}},
    ]}
    recorder = Recorder(lambda r: httpx.Response(200, json=payload))
    provider = make_provider(EspnProvider, "espn", "https://site.api.espn.com/apis", recorder)

    rows = await provider.fetch(query(DatasetType.STANDINGS, "2"))

    assert [r["group"] for r in rows] == ["Group A", "Group B"]
    assert recorder.requests[0].url.path == "/apis/v2/sports/soccer/uefa.champions/standings"


@pytest.mark.asyncio
async def test_espn_live_all_gathers_every_league_scoreboard() -> None:
    def respond(request: httpx.Request) -> httpx.Response:
        if "/eng.1/" in request.url.path:
            return httpx.Response(200, json={"events": [_event("1", "in")]})
        if "/esp.1/" in request.url.path:
            return httpx.Response(200, json={"events": [_event("2", "in"), _event("3", "pre")]})
        if "/ita.1/" in request.url.path:
            return httpx.Response(404, json={"message": "not found"})
        return httpx.Response(200, json={"events": []})

    recorder = Recorder(respond)
    provider = make_provider(EspnProvider, "espn", "https://site.api.espn.com/apis", recorder)

    events = await provider.fetch(query(DatasetType.LIVE_ALL))

    assert {e["id"] for e in events} == {"1", "2"}
    assert len(recorder.requests) == len(LEAGUE_MAPPINGS)


@pytest.mark.asyncio
async def test_espn_live_all_raises_when_no_scoreboard_answers() -> None:
    recorder = Recorder(lambda r: httpx.Response(503, text="unavailable"))
    provider = make_provider(EspnProvider, "espn", "https://site.api.espn.com/apis", recorder)

    with pytest.raises(FetchError) as info:
        await provider.fetch(query(DatasetType.LIVE_ALL))

    assert info.value.status_code == 503


# ── OpenLigaDB ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_openligadb_unmapped_scope_makes_no_requests() -> None:
    recorder = Recorder(lambda r: httpx.Response(200, json=[]))
    provider = make_provider(OpenLigaDbProvider, "openligadb", "https://api.openligadb.de", recorder)

    assert await provider.fetch(query(DatasetType.LIVE, "39")) == []
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_openligadb_live_filters_running_matches() -> None:
    matches = [
        {"matchID": 1, "matchIsFinished": True, "matchDateTimeUTC": "2020-01-01T14:30:00Z"},
        {"matchID": 2, "matchIsFinished": False, "matchDateTimeUTC": "2020-01-01T14:30:00Z"},
        {"matchID": 3, "matchIsFinished": False, "matchDateTimeUTC": "2999-01-01T14:30:00Z"},
    ]
    recorder = Recorder(lambda r: httpx.Response(200, json=matches))
    provider = make_provider(OpenLigaDbProvider, "openligadb", "https://api.openligadb.de", recorder)

    live = await provider.fetch(query(DatasetType.LIVE, "78"))
    fixtures = await provider.fetch(query(DatasetType.FIXTURES, "78"))

    assert [m["matchID"] for m in live] == [2]
    assert [m["matchID"] for m in fixtures] == [2, 3]
    assert recorder.requests[0].url.path == "/getmatchdata/bl1"
