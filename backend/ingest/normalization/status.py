"""
Provider status representations mapped onto the canonical MatchStatus.

Unknown or unmapped values always map to UNKNOWN.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional

from shared.models.domain import utc_now
from shared.models.enums import MatchStatus

from ingest.normalization.fields import dig, to_datetime, to_int

# SportMonks state_id
_SPORTMONKS_STATES: dict[int, MatchStatus] = {
    1: MatchStatus.SCHEDULED,
    2: MatchStatus.LIVE,
    3: MatchStatus.LIVE,
    4: MatchStatus.FINISHED,
    5: MatchStatus.POSTPONED,
}

# API-Football fixture.status.short
_API_FOOTBALL_CODES: dict[str, MatchStatus] = {
    "TBD": MatchStatus.SCHEDULED,
    "NS": MatchStatus.SCHEDULED,
    "1H": MatchStatus.LIVE,
    "HT": MatchStatus.LIVE,
    "2H": MatchStatus.LIVE,
    "ET": MatchStatus.LIVE,
    "BT": MatchStatus.LIVE,
    "P": MatchStatus.LIVE,
    "SUSP": MatchStatus.LIVE,
    "INT": MatchStatus.LIVE,
    "LIVE": MatchStatus.LIVE,
    "FT": MatchStatus.FINISHED,
    "AET": MatchStatus.FINISHED,
    "PEN": MatchStatus.FINISHED,
    "AWD": MatchStatus.FINISHED,
    "WO": MatchStatus.FINISHED,
    "PST": MatchStatus.POSTPONED,
    "CANC": MatchStatus.POSTPONED,
    "ABD": MatchStatus.POSTPONED,
}

# Free text used by football-data.org and generic feeds
_TEXT_STATUSES: dict[str, MatchStatus] = {
    "scheduled": MatchStatus.SCHEDULED,
    "timed": MatchStatus.SCHEDULED,
    "not started": MatchStatus.SCHEDULED,
    "ns": MatchStatus.SCHEDULED,
    "upcoming": MatchStatus.SCHEDULED,
    "in_play": MatchStatus.LIVE,
    "in play": MatchStatus.LIVE,
    "live": MatchStatus.LIVE,
    "paused": MatchStatus.LIVE,
    "halftime": MatchStatus.LIVE,
    "half time": MatchStatus.LIVE,
    "finished": MatchStatus.FINISHED,
    "full time": MatchStatus.FINISHED,
    "ft": MatchStatus.FINISHED,
    "ended": MatchStatus.FINISHED,
    "awarded": MatchStatus.FINISHED,
    "postponed": MatchStatus.POSTPONED,
    "suspended": MatchStatus.POSTPONED,
    "cancelled": MatchStatus.POSTPONED,
    "canceled": MatchStatus.POSTPONED,
}

_LIVE_HINTS = ("live", "in progress", "ht", "1st", "2nd")


def text_status(value: Any) -> Optional[MatchStatus]:
    if isinstance(value, MatchStatus):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip().lower()
    if not text:
        return None
    if text in _TEXT_STATUSES:
        return _TEXT_STATUSES[text]
    code = _API_FOOTBALL_CODES.get(value.strip().upper())
    if code is not None:
        return code
    if text.upper() in MatchStatus.__members__:
        return MatchStatus[text.upper()]
    return None


def sportmonks_status(record: Any) -> Optional[MatchStatus]:
    state_id = to_int(dig(record, "state_id"))
    if state_id is None:
        state_id = to_int(dig(record, "state.id"))
    if state_id in _SPORTMONKS_STATES:
        return _SPORTMONKS_STATES[state_id]

    for key in ("state.short_name", "state.state", "state.name", "state", "result_info"):
        text = dig(record, key)
        if not isinstance(text, str):
            continue
        mapped = text_status(text)
        if mapped is not None:
            return mapped
        lowered = text.lower()
        if any(hint in lowered for hint in _LIVE_HINTS):
            return MatchStatus.LIVE
    return None


def api_football_status(record: Any) -> Optional[MatchStatus]:
    short = dig(record, "fixture.status.short")
    if isinstance(short, str) and short.strip().upper() in _API_FOOTBALL_CODES:
        return _API_FOOTBALL_CODES[short.strip().upper()]
    return text_status(dig(record, "fixture.status.long")) or text_status(dig(record, "fixture.status"))


def football_data_status(record: Any) -> Optional[MatchStatus]:
    return text_status(dig(record, "status"))


def espn_status(record: Any) -> Optional[MatchStatus]:
    status_type = dig(record, "status.type")
    if not isinstance(status_type, Mapping):
        status_type = dig(record, "competitions.0.status.type")
    if not isinstance(status_type, Mapping):
        return None

    name = str(status_type.get("name") or "").upper()
    if "POSTPONED" in name or "CANCELED" in name or "SUSPENDED" in name:
        return MatchStatus.POSTPONED
    state = str(status_type.get("state") or "").lower()
    return {
        "pre": MatchStatus.SCHEDULED,
        "in": MatchStatus.LIVE,
        "post": MatchStatus.FINISHED,
    }.get(state)


def openligadb_status(record: Any, now: Optional[datetime] = None) -> Optional[MatchStatus]:
    if not isinstance(record, Mapping):
        return None
    finished = record.get("matchIsFinished", record.get("MatchIsFinished"))
    if finished is True:
        return MatchStatus.FINISHED
    kickoff = to_datetime(
        record.get("matchDateTimeUTC") or record.get("MatchDateTimeUTC") or record.get("MatchDateTime")
    )
    if finished is False and kickoff is not None:
        return MatchStatus.SCHEDULED if kickoff > (now or utc_now()) else MatchStatus.LIVE
    return None


def generic_status(record: Any) -> Optional[MatchStatus]:
    for key in ("status", "match_status", "state", "status_text", "fixture.status.short", "fixture.status"):
        mapped = text_status(dig(record, key))
        if mapped is not None:
            return mapped
    return None
