"""League adapters: raw competition records → canonical League."""
from __future__ import annotations

from typing import Any, Mapping

from pydantic import ValidationError

from shared.models.domain import League
from shared.models.enums import ProviderName
from shared.utils.logging import get_logger

from ingest.normalization.fields import Accessor, FieldResolver, path, resolve_all, to_str

logger = get_logger(__name__)

_DEFAULTS = {"id": "", "name": "Unknown", "country": "", "code": ""}


def _fields(**accessors: tuple[Accessor, ...]) -> dict[str, FieldResolver]:
    return {
        name: FieldResolver(name, accs, _DEFAULTS[name], to_str)
        for name, accs in accessors.items()
    }


FOOTBALL_DATA_LEAGUE = _fields(
    id=(path("id"),),
    name=(path("name"),),
    country=(path("area.name"),),
    code=(path("code"),),
)

SPORTMONKS_LEAGUE = _fields(
    id=(path("id"),),
    name=(path("name"),),
    country=(path("country.name"), path("country_id")),
    code=(path("short_code"),),
)

API_FOOTBALL_LEAGUE = _fields(
    id=(path("league.id"),),
    name=(path("league.name"),),
    country=(path("country.name"),),
    code=(path("country.code"),),
)

GENERIC_LEAGUE = _fields(
    id=(path("id"), path("league_id"), path("league.id")),
    name=(path("name"), path("league_name"), path("league.name")),
    country=(path("country"), path("country.name"), path("area.name")),
    code=(path("code"), path("short_code"), path("slug")),
)

LEAGUE_ADAPTERS: dict[str, dict[str, FieldResolver]] = {
    ProviderName.FOOTBALL_DATA.value: FOOTBALL_DATA_LEAGUE,
    ProviderName.SPORTMONKS.value: SPORTMONKS_LEAGUE,
    ProviderName.API_FOOTBALL.value: API_FOOTBALL_LEAGUE,
}


def normalize_league(raw: Any, provider_tag: str) -> League:
    """Map one raw competition record to a League. Never raises."""
    if not isinstance(raw, Mapping):
        return League(source_provider=provider_tag, raw=raw)

    values = resolve_all(LEAGUE_ADAPTERS.get(provider_tag, GENERIC_LEAGUE), raw)
    try:
        return League(source_provider=provider_tag, raw=raw, **values)
    except ValidationError as exc:
        logger.warning("league_normalization_failed", provider=provider_tag, error=str(exc))
        return League(source_provider=provider_tag, raw=raw)
