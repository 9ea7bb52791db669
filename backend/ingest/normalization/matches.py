"""
Match adapters: raw provider fixture/event records → canonical Match.

Each provider gets an explicit table of ordered accessors per field. The
table for an unknown provider tag is the generic one, which tries the
common shapes seen across feeds.
"""
from __future__ import annotations

from typing import Any, Mapping

from pydantic import ValidationError

from shared.models.domain import Match
from shared.models.enums import MatchStatus, ProviderName
from shared.utils.logging import get_logger

from ingest.normalization.fields import (
    Accessor,
    FieldResolver,
    find,
    path,
    resolve_all,
    title_part,
    to_datetime,
    to_int,
    to_str,
    whole,
)
from ingest.normalization.status import (
    api_football_status,
    espn_status,
    football_data_status,
    generic_status,
    openligadb_status,
    sportmonks_status,
)

logger = get_logger(__name__)

# field -> (default, coercion)
_MATCH_FIELD_TYPES: dict[str, tuple[Any, Any]] = {
    "id": ("", to_str),
    "home": ("Home", to_str),
    "away": ("Away", to_str),
    "home_id": ("", to_str),
    "away_id": ("", to_str),
    "home_score": (None, to_int),
    "away_score": (None, to_int),
    "status": (MatchStatus.UNKNOWN, lambda v: v),
    "minute": (None, to_int),
    "kickoff": (None, to_datetime),
    "venue": ("TBA", to_str),
    "league": ("Unknown", to_str),
    "league_id": ("", to_str),
}


def _fields(**accessors: tuple[Accessor, ...]) -> dict[str, FieldResolver]:
    resolvers = {}
    for name, accs in accessors.items():
        default, coerce = _MATCH_FIELD_TYPES[name]
        resolvers[name] = FieldResolver(name, accs, default, coerce)
    return resolvers


# ── football-data.org ───────────────────────────────────────────────────
FOOTBALL_DATA_MATCH = _fields(
    id=(path("id"),),
    home=(path("homeTeam.name"), path("homeTeam.shortName"), path("homeTeam.tla"),
          path("homeTeamName"), title_part(0)),
    away=(path("awayTeam.name"), path("awayTeam.shortName"), path("awayTeam.tla"),
          path("awayTeamName"), title_part(1)),
    home_id=(path("homeTeam.id"),),
    away_id=(path("awayTeam.id"),),
    home_score=(path("score.fullTime.home"), path("score.current.home"),
                path("score.halfTime.home"), path("homeTeamScore")),
    away_score=(path("score.fullTime.away"), path("score.current.away"),
                path("score.halfTime.away"), path("awayTeamScore")),
    status=(whole(football_data_status, "status"),),
    minute=(path("minute"),),
    kickoff=(path("utcDate"),),
    venue=(path("venue"),),
    league=(path("competition.name"), path("competition.shortName")),
    league_id=(path("competition.code"), path("competition.id")),
)

# ── SportMonks v3 ───────────────────────────────────────────────────────
SPORTMONKS_MATCH = _fields(
    id=(path("id"),),
    home=(find("participants", {"meta.location": "home"}, "name"),
          path("participants.0.name"), path("teams.home.name"), path("homeTeam.name"),
          path("home_team.name"), title_part(0)),
    away=(find("participants", {"meta.location": "away"}, "name"),
          path("participants.1.name"), path("teams.away.name"), path("awayTeam.name"),
          path("away_team.name"), title_part(1)),
    home_id=(find("participants", {"meta.location": "home"}, "id"), path("participants.0.id")),
    away_id=(find("participants", {"meta.location": "away"}, "id"), path("participants.1.id")),
    home_score=(find("scores", {"description": "CURRENT", "score.participant": "home"}, "score.goals"),
                find("participants", {"meta.location": "home"}, "meta.goals"),
                path("participants.0.score"), path("teams.home.goals")),
    away_score=(find("scores", {"description": "CURRENT", "score.participant": "away"}, "score.goals"),
                find("participants", {"meta.location": "away"}, "meta.goals"),
                path("participants.1.score"), path("teams.away.goals")),
    status=(whole(sportmonks_status, "state"),),
    minute=(find("periods", {"ticking": True}, "minutes"), path("minute")),
    kickoff=(path("starting_at"), path("starting_at_timestamp"), path("scheduled_at")),
    venue=(path("venue.name"), path("venue.city_name")),
    league=(path("league.name"),),
    league_id=(path("league_id"), path("league.id")),
)

# ── API-Football ────────────────────────────────────────────────────────
API_FOOTBALL_MATCH = _fields(
    id=(path("fixture.id"), path("id")),
    home=(path("teams.home.name"), title_part(0)),
    away=(path("teams.away.name"), title_part(1)),
    home_id=(path("teams.home.id"),),
    away_id=(path("teams.away.id"),),
    home_score=(path("goals.home"), path("score.fulltime.home")),
    away_score=(path("goals.away"), path("score.fulltime.away")),
    status=(whole(api_football_status, "fixture.status"),),
    minute=(path("fixture.status.elapsed"),),
    kickoff=(path("fixture.date"), path("fixture.timestamp")),
    venue=(path("fixture.venue.name"),),
    league=(path("league.name"),),
    league_id=(path("league.id"),),
)

# ── ESPN scoreboard events ──────────────────────────────────────────────
_ESPN_COMPETITORS = "competitions.0.competitors"

ESPN_MATCH = _fields(
    id=(path("id"),),
    home=(find(_ESPN_COMPETITORS, {"homeAway": "home"}, "team.displayName"),
          find(_ESPN_COMPETITORS, {"homeAway": "home"}, "team.name"),
          path("home.name"), title_part(0)),
    away=(find(_ESPN_COMPETITORS, {"homeAway": "away"}, "team.displayName"),
          find(_ESPN_COMPETITORS, {"homeAway": "away"}, "team.name"),
          path("away.name"), title_part(1)),
    home_id=(find(_ESPN_COMPETITORS, {"homeAway": "home"}, "team.id"),),
    away_id=(find(_ESPN_COMPETITORS, {"homeAway": "away"}, "team.id"),),
    home_score=(find(_ESPN_COMPETITORS, {"homeAway": "home"}, "score"), path("home.score")),
    away_score=(find(_ESPN_COMPETITORS, {"homeAway": "away"}, "score"), path("away.score")),
    status=(whole(espn_status, "status.type"),),
    minute=(path("status.displayClock"), path("competitions.0.status.displayClock")),
    kickoff=(path("date"), path("competitions.0.date")),
    venue=(path("competitions.0.venue.fullName"), path("venue.fullName")),
    league=(path("league.name"), path("league.abbreviation")),
    league_id=(path("league.slug"), path("league.id")),
)

# ── OpenLigaDB (camelCase current API, PascalCase legacy) ───────────────
OPENLIGADB_MATCH = _fields(
    id=(path("matchID"), path("MatchID")),
    home=(path("team1.teamName"), path("Team1.TeamName"), path("team1.shortName")),
    away=(path("team2.teamName"), path("Team2.TeamName"), path("team2.shortName")),
    home_id=(path("team1.teamId"), path("Team1.TeamId")),
    away_id=(path("team2.teamId"), path("Team2.TeamId")),
    home_score=(find("matchResults", {"resultTypeID": 2}, "pointsTeam1"),
                path("goals.-1.scoreTeam1"), path("MatchResults.0.PointsTeam1")),
    away_score=(find("matchResults", {"resultTypeID": 2}, "pointsTeam2"),
                path("goals.-1.scoreTeam2"), path("MatchResults.0.PointsTeam2")),
    status=(whole(openligadb_status, "matchIsFinished"),),
    kickoff=(path("matchDateTimeUTC"), path("MatchDateTimeUTC"), path("matchDateTime")),
    venue=(path("location.locationStadium"), path("location.locationCity"),
           path("Location.LocationCity")),
    league=(path("leagueName"), path("LeagueName")),
    league_id=(path("leagueShortcut"), path("leagueId")),
)

# ── Generic (unknown provider tags) ─────────────────────────────────────
GENERIC_MATCH = _fields(
    id=(path("id"), path("match_id"), path("fixture_id"), path("fixture.id")),
    home=(path("home"), path("home_team"), path("homeTeam"), path("localteam"), path("team_home"),
          path("teams.home"), path("home_team_name"), path("participants.0.name"), path("teams.0"),
          title_part(0)),
    away=(path("away"), path("away_team"), path("awayTeam"), path("visitorteam"), path("team_away"),
          path("teams.away"), path("away_team_name"), path("participants.1.name"), path("teams.1"),
          title_part(1)),
    home_id=(path("home_id"), path("home_team_id"), path("homeTeam.id"), path("teams.home.id")),
    away_id=(path("away_id"), path("away_team_id"), path("awayTeam.id"), path("teams.away.id")),
    home_score=(path("homeScore"), path("home_score"), path("score.home"), path("scores.home"),
                path("goals.home"), path("home.goals"), path("home.score")),
    away_score=(path("awayScore"), path("away_score"), path("score.away"), path("scores.away"),
                path("goals.away"), path("away.goals"), path("away.score")),
    status=(whole(generic_status, "status"),),
    minute=(path("minute"), path("elapsed"), path("fixture.status.elapsed")),
    kickoff=(path("kickoff"), path("start_time"), path("kick_off"), path("utc_date"),
             path("utcDate"), path("date"), path("fixture.date")),
    venue=(path("venue"), path("fixture.venue.name")),
    league=(path("league"), path("competition")),
    league_id=(path("league_id"), path("league.id")),
)

MATCH_ADAPTERS: dict[str, dict[str, FieldResolver]] = {
    ProviderName.FOOTBALL_DATA.value: FOOTBALL_DATA_MATCH,
    ProviderName.SPORTMONKS.value: SPORTMONKS_MATCH,
    ProviderName.API_FOOTBALL.value: API_FOOTBALL_MATCH,
    ProviderName.ESPN.value: ESPN_MATCH,
    ProviderName.OPENLIGADB.value: OPENLIGADB_MATCH,
}


def time_label(status: MatchStatus, minute: Any, kickoff: Any) -> str:
    if status.is_live and minute is not None:
        return f"{minute}'"
    if kickoff is not None:
        return kickoff.strftime("%Y-%m-%d %H:%M UTC")
    return "TBA"


def normalize_match(raw: Any, provider_tag: str) -> Match:
    """Map one raw record to a Match. Never raises."""
    if not isinstance(raw, Mapping):
        return Match(source_provider=provider_tag, raw=raw)

    values = resolve_all(MATCH_ADAPTERS.get(provider_tag, GENERIC_MATCH), raw)
    status = values["status"]
    values.setdefault("minute", None)
    if not status.is_live:
        values["minute"] = None
    if status == MatchStatus.SCHEDULED:
        values["home_score"] = values["away_score"] = None
    values["time_label"] = time_label(status, values["minute"], values["kickoff"])

    try:
        return Match(source_provider=provider_tag, raw=raw, **values)
    except ValidationError as exc:
        logger.warning("match_normalization_failed", provider=provider_tag, error=str(exc))
        return Match(source_provider=provider_tag, raw=raw)
