"""
Odds adapters: raw bookmaker records → canonical OddsQuote (1X2, decimal odds).

Prices arrive as decimal (``2.10``), fractional (``"5/2"``), American
(``"+150"``, ``-200``) or implied probability (``0.4``, ``"40%"``);
``to_decimal_odds`` folds all of them into decimal odds.
"""
from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from shared.models.domain import OddsQuote
from shared.models.enums import ProviderName
from shared.utils.logging import get_logger

from ingest.normalization.fields import (
    Accessor,
    FieldResolver,
    find,
    path,
    resolve_all,
    title_part,
    to_datetime,
    to_str,
)

logger = get_logger(__name__)

_FRACTION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*/\s*(\d+(?:\.\d+)?)\s*$")
_AMERICAN = re.compile(r"^\s*([+-])\s*(\d+(?:\.\d+)?)\s*$")
_PERCENT = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*%\s*$")


def _american(sign: str, value: float) -> Optional[float]:
    if value == 0:
        return None
    if sign == "+":
        return 1 + value / 100
    return 1 + 100 / value


def to_decimal_odds(value: Any) -> Optional[float]:
    """Decimal odds rounded to 3 places, or None when the price is unusable."""
    if isinstance(value, bool) or value is None:
        return None

    result: Optional[float] = None
    if isinstance(value, (int, float)):
        number = float(value)
        if number <= -100:
            result = _american("-", -number)
        elif 0 < number < 1:
            result = 1 / number
        elif number >= 1:
            result = number
    elif isinstance(value, str):
        text = value.strip()
        fraction = _FRACTION.match(text)
        american = _AMERICAN.match(text)
        percent = _PERCENT.match(text)
        if fraction:
            numerator, denominator = float(fraction.group(1)), float(fraction.group(2))
            result = 1 + numerator / denominator if denominator else None
        elif american:
            result = _american(american.group(1), float(american.group(2)))
        elif percent:
            probability = float(percent.group(1)) / 100
            result = 1 / probability if 0 < probability < 1 else None
        else:
            try:
                return to_decimal_odds(float(text))
            except ValueError:
                return None

    if result is None or result < 1:
        return None
    return round(result, 3)


_STR_DEFAULTS = {"match_id": "", "home": "Home", "away": "Away", "bookmaker": "Unknown", "market": "1X2"}


def _fields(**accessors: tuple[Accessor, ...]) -> dict[str, FieldResolver]:
    resolvers = {}
    for name, accs in accessors.items():
        if name in _STR_DEFAULTS:
            resolvers[name] = FieldResolver(name, accs, _STR_DEFAULTS[name], to_str)
        elif name == "updated_at":
            resolvers[name] = FieldResolver(name, accs, None, to_datetime)
        else:
            resolvers[name] = FieldResolver(name, accs, None, to_decimal_odds)
    return resolvers


# API-Football /odds: bookmakers[].bets[] "Match Winner"; /odds/live: odds[] "Fulltime Result"
_AF_PRE = "bookmakers.0.bets"
_AF_WINNER = ("Match Winner", "1X2")


def _af_price(side: str) -> tuple[Accessor, ...]:
    return (
        find(_AF_PRE, {"name": _AF_WINNER}, find("values", {"value": side}, "odd")),
        find("odds", {"name": ("Fulltime Result", "Match Winner")}, find("values", {"value": side}, "odd")),
    )


API_FOOTBALL_ODDS = _fields(
    match_id=(path("fixture.id"),),
    home=(path("teams.home.name"),),
    away=(path("teams.away.name"),),
    bookmaker=(path("bookmakers.0.name"),),
    home_odds=_af_price("Home"),
    draw_odds=_af_price("Draw"),
    away_odds=_af_price("Away"),
    updated_at=(path("update"), path("fixture.date")),
)

# SportMonks fixtures with odds include: odds[] with market_id 1 (fulltime result)
def _sm_price(*labels: str) -> tuple[Accessor, ...]:
    return (
        find("odds", {"market_id": 1, "label": labels}, "value"),
        find("odds", {"label": labels}, "value"),
    )


SPORTMONKS_ODDS = _fields(
    match_id=(path("id"),),
    home=(find("participants", {"meta.location": "home"}, "name"), title_part(0)),
    away=(find("participants", {"meta.location": "away"}, "name"), title_part(1)),
    bookmaker=(find("odds", {"market_id": 1}, "bookmaker.name"), path("odds.0.bookmaker.name")),
    home_odds=_sm_price("Home", "1"),
    draw_odds=_sm_price("Draw", "X"),
    away_odds=_sm_price("Away", "2"),
    updated_at=(find("odds", {"market_id": 1}, "latest_bookmaker_update"),),
)

GENERIC_ODDS = _fields(
    match_id=(path("match_id"), path("fixture_id"), path("id"), path("fixture.id")),
    home=(path("home"), path("home_team"), path("teams.home"), title_part(0)),
    away=(path("away"), path("away_team"), path("teams.away"), title_part(1)),
    bookmaker=(path("bookmaker"), path("bookmaker_name"), path("source")),
    market=(path("market"),),
    home_odds=(path("home_odds"), path("odds.home"), path("odds.1"), path("homeOdds")),
    draw_odds=(path("draw_odds"), path("odds.draw"), path("odds.x"), path("odds.X"), path("drawOdds")),
    away_odds=(path("away_odds"), path("odds.away"), path("odds.2"), path("awayOdds")),
    updated_at=(path("updated_at"), path("last_update"), path("timestamp")),
)

ODDS_ADAPTERS: dict[str, dict[str, FieldResolver]] = {
    ProviderName.API_FOOTBALL.value: API_FOOTBALL_ODDS,
    ProviderName.SPORTMONKS.value: SPORTMONKS_ODDS,
}


def normalize_odds(raw: Any, provider_tag: str) -> OddsQuote:
    """Map one raw odds record to an OddsQuote. Never raises."""
    if not isinstance(raw, Mapping):
        return OddsQuote(source_provider=provider_tag, raw=raw)

    values = resolve_all(ODDS_ADAPTERS.get(provider_tag, GENERIC_ODDS), raw)
    try:
        return OddsQuote(source_provider=provider_tag, raw=raw, **values)
    except ValidationError as exc:
        logger.warning("odds_normalization_failed", provider=provider_tag, error=str(exc))
        return OddsQuote(source_provider=provider_tag, raw=raw)
