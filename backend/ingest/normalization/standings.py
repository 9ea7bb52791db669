"""Standing adapters: raw league table rows → canonical Standing."""
from __future__ import annotations

from typing import Any, Mapping

from pydantic import ValidationError

from shared.models.domain import Standing
from shared.models.enums import ProviderName
from shared.utils.logging import get_logger

from ingest.normalization.fields import (
    Accessor,
    FieldResolver,
    find,
    path,
    resolve_all,
    to_int,
    to_str,
)

logger = get_logger(__name__)

_STR_FIELDS = {"team": "Unknown", "team_id": "", "form": "", "group": ""}
_INT_FIELDS = (
    "position", "played", "won", "drawn", "lost",
    "goals_for", "goals_against", "goal_difference", "points",
)


def _fields(**accessors: tuple[Accessor, ...]) -> dict[str, FieldResolver]:
    resolvers = {}
    for name, accs in accessors.items():
        if name in _STR_FIELDS:
            resolvers[name] = FieldResolver(name, accs, _STR_FIELDS[name], to_str)
        elif name in _INT_FIELDS:
            resolvers[name] = FieldResolver(name, accs, 0, to_int)
        else:
            raise KeyError(f"Unknown standing field: {name}")
    return resolvers


def _espn_stat(stat_name: str) -> Accessor:
    return find("stats", {"name": stat_name}, "value")


def _sportmonks_detail(*type_ids: int) -> Accessor:
    return find("details", {"type_id": type_ids}, "value")


FOOTBALL_DATA_STANDING = _fields(
    position=(path("position"),),
    team=(path("team.name"), path("team.shortName")),
    team_id=(path("team.id"),),
    played=(path("playedGames"),),
    won=(path("won"),),
    drawn=(path("draw"),),
    lost=(path("lost"),),
    goals_for=(path("goalsFor"),),
    goals_against=(path("goalsAgainst"),),
    goal_difference=(path("goalDifference"),),
    points=(path("points"),),
    form=(path("form"),),
    group=(path("group"),),
)

# SportMonks detail type ids: 129 played, 130 won, 131 drawn, 132 lost,
# 133 goals for, 134 goals against, 179 goal difference
SPORTMONKS_STANDING = _fields(
    position=(path("position"),),
    team=(path("participant.name"), path("team.name")),
    team_id=(path("participant_id"), path("participant.id")),
    played=(_sportmonks_detail(129),),
    won=(_sportmonks_detail(130),),
    drawn=(_sportmonks_detail(131),),
    lost=(_sportmonks_detail(132),),
    goals_for=(_sportmonks_detail(133),),
    goals_against=(_sportmonks_detail(134),),
    goal_difference=(_sportmonks_detail(179),),
    points=(path("points"),),
    form=(path("form"),),
    group=(path("group.name"), path("stage.name")),
)

API_FOOTBALL_STANDING = _fields(
    position=(path("rank"),),
    team=(path("team.name"),),
    team_id=(path("team.id"),),
    played=(path("all.played"),),
    won=(path("all.win"),),
    drawn=(path("all.draw"),),
    lost=(path("all.lose"),),
    goals_for=(path("all.goals.for"),),
    goals_against=(path("all.goals.against"),),
    goal_difference=(path("goalsDiff"),),
    points=(path("points"),),
    form=(path("form"),),
    group=(path("group"),),
)

ESPN_STANDING = _fields(
    position=(_espn_stat("rank"),),
    team=(path("team.displayName"), path("team.name")),
    team_id=(path("team.id"),),
    played=(_espn_stat("gamesPlayed"),),
    won=(_espn_stat("wins"),),
    drawn=(_espn_stat("ties"),),
    lost=(_espn_stat("losses"),),
    goals_for=(_espn_stat("pointsFor"),),
    goals_against=(_espn_stat("pointsAgainst"),),
    goal_difference=(_espn_stat("pointDifferential"),),
    points=(_espn_stat("points"),),
    group=(path("group"),),
)

OPENLIGADB_STANDING = _fields(
    team=(path("teamName"), path("shortName")),
    team_id=(path("teamInfoId"),),
    played=(path("matches"),),
    won=(path("won"),),
    drawn=(path("draw"),),
    lost=(path("lost"),),
    goals_for=(path("goals"),),
    goals_against=(path("opponentGoals"),),
    goal_difference=(path("goalDiff"),),
    points=(path("points"),),
)

GENERIC_STANDING = _fields(
    position=(path("position"), path("rank"), path("pos")),
    team=(path("team"), path("team_name"), path("teamName"), path("name"), path("participant.name")),
    team_id=(path("team.id"), path("team_id"), path("teamId")),
    played=(path("played"), path("playedGames"), path("matches"), path("all.played")),
    won=(path("won"), path("wins"), path("win"), path("all.win")),
    drawn=(path("drawn"), path("draw"), path("draws"), path("all.draw")),
    lost=(path("lost"), path("losses"), path("lose"), path("all.lose")),
    goals_for=(path("goals_for"), path("goalsFor"), path("all.goals.for")),
    goals_against=(path("goals_against"), path("goalsAgainst"), path("all.goals.against")),
    goal_difference=(path("goal_difference"), path("goalDifference"), path("goalsDiff"), path("goalDiff")),
    points=(path("points"), path("pts")),
    form=(path("form"),),
    group=(path("group"),),
)

STANDING_ADAPTERS: dict[str, dict[str, FieldResolver]] = {
    ProviderName.FOOTBALL_DATA.value: FOOTBALL_DATA_STANDING,
    ProviderName.SPORTMONKS.value: SPORTMONKS_STANDING,
    ProviderName.API_FOOTBALL.value: API_FOOTBALL_STANDING,
    ProviderName.ESPN.value: ESPN_STANDING,
    ProviderName.OPENLIGADB.value: OPENLIGADB_STANDING,
}


def normalize_standing(raw: Any, provider_tag: str) -> Standing:
    """Map one raw table row to a Standing. Never raises."""
    if not isinstance(raw, Mapping):
        return Standing(source_provider=provider_tag, raw=raw)

    values = resolve_all(STANDING_ADAPTERS.get(provider_tag, GENERIC_STANDING), raw)
    if "goal_difference" in values and values["goal_difference"] == 0:
        values["goal_difference"] = values.get("goals_for", 0) - values.get("goals_against", 0)

    try:
        return Standing(source_provider=provider_tag, raw=raw, **values)
    except ValidationError as exc:
        logger.warning("standing_normalization_failed", provider=provider_tag, error=str(exc))
        return Standing(source_provider=provider_tag, raw=raw)
