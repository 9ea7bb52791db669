"""
Competition reference table.

Scope ids across the engine are API-Football style competition ids; each
connector translates them to its own code through this table. Unknown ids
pass through unchanged.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from shared.models.enums import ProviderName


class LeagueMapping(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    country: str
    football_data: str
    sportmonks: str
    espn: str
    openligadb: Optional[str] = None

    def code_for(self, provider: str) -> Optional[str]:
        if provider == ProviderName.API_FOOTBALL.value:
            return self.id
        return getattr(self, provider, None)


LEAGUE_MAPPINGS: dict[str, LeagueMapping] = {
    "39": LeagueMapping(
        id="39", name="Premier League", country="England",
        football_data="PL", sportmonks="8", espn="eng.1",
    ),
    "140": LeagueMapping(
        id="140", name="La Liga", country="Spain",
        football_data="PD", sportmonks="564", espn="esp.1",
    ),
    "135": LeagueMapping(
        id="135", name="Serie A", country="Italy",
        football_data="SA", sportmonks="384", espn="ita.1",
    ),
    "61": LeagueMapping(
        id="61", name="Ligue 1", country="France",
        football_data="FL1", sportmonks="301", espn="fra.1",
    ),
    "78": LeagueMapping(
        id="78", name="Bundesliga", country="Germany",
        football_data="BL1", sportmonks="82", espn="ger.1", openligadb="bl1",
    ),
    "2": LeagueMapping(
        id="2", name="Champions League", country="Europe",
        football_data="CL", sportmonks="2", espn="uefa.champions",
    ),
}


def get_league(scope_id: Optional[str]) -> Optional[LeagueMapping]:
    if scope_id is None:
        return None
    return LEAGUE_MAPPINGS.get(str(scope_id))


def provider_code(provider: str, scope_id: str) -> str:
    """Translate a scope id to the provider's competition code (passthrough when unknown)."""
    league = get_league(scope_id)
    if league is None:
        return str(scope_id)
    return league.code_for(provider) or str(scope_id)
