"""Domain enumerations for the Scoreline aggregation engine."""
from __future__ import annotations

from enum import Enum


class MatchStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    LIVE = "LIVE"
    FINISHED = "FINISHED"
    POSTPONED = "POSTPONED"
    UNKNOWN = "UNKNOWN"

    @property
    def is_live(self) -> bool:
        return self == MatchStatus.LIVE


class DatasetType(str, Enum):
    """Logical dataset a caller asks for; drives cache TTL and provider endpoints."""
    LIVE = "live"
    LIVE_ALL = "live_all"
    FIXTURES = "fixtures"
    STANDINGS = "standings"
    ODDS = "odds"
    LEAGUES = "leagues"
    HEAD_TO_HEAD = "head_to_head"
    RECENT_FORM = "recent_form"


class ProviderName(str, Enum):
    FOOTBALL_DATA = "football_data"
    SPORTMONKS = "sportmonks"
    API_FOOTBALL = "api_football"
    ESPN = "espn"
    OPENLIGADB = "openligadb"


class FailureClass(str, Enum):
    """Health tracker classification of a provider failure."""
    AUTH = "AUTH"
    RATE_LIMIT = "RATE_LIMIT"
    SERVER_ERROR = "SERVER_ERROR"
    TRANSIENT = "TRANSIENT"


class ErrorKind(str, Enum):
    TRANSPORT = "TRANSPORT"
    HTTP_CLIENT_ERROR = "HTTP_CLIENT_ERROR"
    HTTP_RATE_LIMIT = "HTTP_RATE_LIMIT"
    HTTP_SERVER_ERROR = "HTTP_SERVER_ERROR"
    HTTP_ERROR = "HTTP_ERROR"
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"
    NO_DATA = "NO_DATA"
