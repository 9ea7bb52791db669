"""
OpenLigaDB connector (German leagues, no auth).

Only competitions with an OpenLigaDB shortcut in the league mapping table
are answerable; other scopes produce no requests.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from shared.models.domain import DatasetQuery, utc_now
from shared.models.enums import DatasetType
from shared.models.leagues import get_league
from shared.utils.logging import get_logger

from ingest.providers.base import BaseProvider, RequestStrategy, current_season, first_list

logger = get_logger(__name__)


def _kickoff(match: dict[str, Any]) -> Optional[datetime]:
    raw = match.get("matchDateTimeUTC") or match.get("MatchDateTimeUTC")
    if not isinstance(raw, str):
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _is_finished(match: dict[str, Any]) -> bool:
    return bool(match.get("matchIsFinished") or match.get("MatchIsFinished"))


class OpenLigaDbProvider(BaseProvider):
    datasets = frozenset({
        DatasetType.LIVE,
        DatasetType.FIXTURES,
        DatasetType.STANDINGS,
    })

    def build_requests(self, query: DatasetQuery) -> Iterable[RequestStrategy]:
        league = get_league(query.scope_id)
        shortcut = league.openligadb if league else None
        if not shortcut:
            return

        if query.dataset in (DatasetType.LIVE, DatasetType.FIXTURES):
            # Current matchday
            yield RequestStrategy("matchdata_current", f"{self.base_url}/getmatchdata/{shortcut}")
        elif query.dataset == DatasetType.STANDINGS:
            season = query.season or str(current_season())
            yield RequestStrategy("table", f"{self.base_url}/getbltable/{shortcut}/{season}")

    def extract(self, query: DatasetQuery, payload: Any) -> list[Any]:
        records = first_list(payload)
        if query.dataset == DatasetType.STANDINGS:
            return records

        matches = [m for m in records if isinstance(m, dict)]
        if query.dataset == DatasetType.FIXTURES:
            return [m for m in matches if not _is_finished(m)]

        now = utc_now()
        live = []
        for match in matches:
            kickoff = _kickoff(match)
            if not _is_finished(match) and kickoff is not None and kickoff <= now:
                live.append(match)
        return live
