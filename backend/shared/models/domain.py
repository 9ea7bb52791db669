"""
Pydantic v2 domain models shared across the aggregation engine.
These are the canonical internal representations handed to callers.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import DatasetType, FailureClass, MatchStatus


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ── Providers ───────────────────────────────────────────────────────────
class ProviderConfig(DomainModel):
    """Static identity of one data source. Built once from settings; immutable."""
    model_config = ConfigDict(frozen=True)

    name: str
    priority: int
    base_url: str
    auth_token: str = ""
    enabled: bool = True
    datasets: frozenset[DatasetType] = Field(default_factory=frozenset)

    def supports(self, dataset: DatasetType) -> bool:
        return dataset in self.datasets


class HealthRecord(DomainModel):
    """Per-provider disable window. Disabled iff ``now < disabled_until``."""
    provider_name: str
    disabled_until: datetime
    reason: str = ""
    failure_class: FailureClass = FailureClass.TRANSIENT
    captured_at: datetime = Field(default_factory=utc_now)

    def is_active(self, now: datetime) -> bool:
        return now < self.disabled_until

    def remaining_s(self, now: datetime) -> float:
        return max(0.0, (self.disabled_until - now).total_seconds())


# ── Queries ─────────────────────────────────────────────────────────────
class DatasetQuery(DomainModel):
    """Logical query: a dataset plus its scope parameters."""
    model_config = ConfigDict(frozen=True)

    dataset: DatasetType
    scope_id: Optional[str] = None
    season: Optional[str] = None

    @property
    def scope_key(self) -> str:
        """Scope segment of durable raw snapshot keys."""
        scope = self.scope_id or "all"
        if self.dataset == DatasetType.STANDINGS and self.season:
            return f"{scope}:{self.season}"
        return scope

    @property
    def cache_key(self) -> str:
        key = f"{self.dataset.value}:{self.scope_id or 'all'}"
        if self.dataset == DatasetType.STANDINGS:
            key += f":{self.season or 'current'}"
        return key


class RawSnapshot(DomainModel):
    """Last-known-good raw provider payload for one dataset/scope."""
    provider: str
    dataset_type: DatasetType
    scope_id: str
    payload: list[Any] = Field(default_factory=list)
    captured_at: datetime = Field(default_factory=utc_now)


# ── Normalized records ──────────────────────────────────────────────────
class NormalizedRecord(DomainModel):
    """Every field has a default; ``raw`` keeps the originating record for debugging."""
    source_provider: str = "unknown"
    raw: Any = None


class Match(NormalizedRecord):
    id: str = ""
    home: str = "Home"
    away: str = "Away"
    home_id: str = ""
    away_id: str = ""
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    status: MatchStatus = MatchStatus.UNKNOWN
    minute: Optional[int] = None
    kickoff: Optional[datetime] = None
    time_label: str = "TBA"
    venue: str = "TBA"
    league: str = "Unknown"
    league_id: str = ""


class Standing(NormalizedRecord):
    position: int = 0
    team: str = "Unknown"
    team_id: str = ""
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    goal_difference: int = 0
    points: int = 0
    form: str = ""
    group: str = ""


class OddsQuote(NormalizedRecord):
    match_id: str = ""
    home: str = "Home"
    away: str = "Away"
    bookmaker: str = "Unknown"
    market: str = "1X2"
    home_odds: Optional[float] = None
    draw_odds: Optional[float] = None
    away_odds: Optional[float] = None
    updated_at: Optional[datetime] = None


class League(NormalizedRecord):
    id: str = ""
    name: str = "Unknown"
    country: str = ""
    code: str = ""


AnyRecord = Union[Match, Standing, OddsQuote, League]


# ── Results ─────────────────────────────────────────────────────────────
class AggregateResult(DomainModel):
    """
    What callers receive. An empty ``records`` list means "no data right now";
    ``stale`` marks results served from the durable raw cache.
    """
    dataset: DatasetType
    scope_id: Optional[str] = None
    records: list[AnyRecord] = Field(default_factory=list)
    source_provider: Optional[str] = None
    stale: bool = False
    cached: bool = False
    captured_at: datetime = Field(default_factory=utc_now)

    @property
    def is_empty(self) -> bool:
        return not self.records


class HeadToHead(DomainModel):
    """
    Meeting history between two teams. ``home_*`` counts are from the side of
    the first team asked for, not the venue.
    """
    home_team_id: str
    away_team_id: str
    total_matches: int = 0
    home_wins: int = 0
    away_wins: int = 0
    draws: int = 0
    matches: list[Match] = Field(default_factory=list)
    source_provider: Optional[str] = None
    stale: bool = False
    cached: bool = False
