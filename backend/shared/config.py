"""
Central configuration for the Scoreline aggregation engine.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Optional
from urllib.parse import urlparse

from pydantic import Field, RedisDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Root settings for the aggregator and the prefetch worker."""

    model_config = SettingsConfigDict(
        env_prefix="SL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    log_level: str = "INFO"
    log_json: Optional[bool] = Field(default=None, description="Force JSON (true) or console (false) logs; unset = JSON outside dev")
    instance_id: str = Field(default="", description="Pod/container ID bound to every log line")

    # ── Redis (durable store, optional) ──────────────────────
    redis_url: Optional[RedisDsn] = Field(
        default=None,
        description="Durable store for raw snapshots and provider health. Unset = memory only.",
    )
    redis_max_connections: int = 20

    # ── Provider cascade ─────────────────────────────────────
    provider_order: list[str] = Field(
        default=["football_data", "sportmonks", "api_football", "espn", "openligadb"],
        description="Priority order; first provider that answers wins.",
    )
    allowed_providers: list[str] = Field(
        default_factory=list,
        description="Optional allow-list restricting the cascade (empty = all).",
    )

    # ── Provider credentials / toggles ───────────────────────
    football_data_api_key: str = ""
    football_data_base_url: str = "https://api.football-data.org/v4"
    football_data_enabled: bool = True

    sportmonks_api_key: str = ""
    sportmonks_base_url: str = "https://api.sportmonks.com/v3"
    sportmonks_enabled: bool = True

    api_football_key: str = ""
    api_football_base_url: str = "https://v3.football.api-sports.io"
    api_football_rapidapi_base_url: str = "https://api-football-v1.p.rapidapi.com/v3"
    api_football_enabled: bool = True

    espn_base_url: str = "https://site.api.espn.com/apis"
    espn_enabled: bool = True

    openligadb_base_url: str = "https://api.openligadb.de"
    openligadb_enabled: bool = True

    # ── HTTP / retry ─────────────────────────────────────────
    provider_request_timeout_s: float = 10.0
    provider_max_attempts: int = 2
    retry_base_delay_s: float = 2.0
    retry_max_delay_s: float = 8.0
    retry_transport_base_delay_s: float = 0.5
    retry_transport_max_delay_s: float = 3.0
    retry_rate_limit_base_delay_s: float = 0.5
    retry_rate_limit_max_delay_s: float = 5.0

    # ── Orchestration ────────────────────────────────────────
    request_deadline_s: float = Field(default=30.0, description="Caller-level time limit per aggregate call")

    # ── Short-term cache ─────────────────────────────────────
    cache_max_entries: int = 1024
    cache_ttl_live_s: int = 120
    cache_ttl_fixtures_s: int = 300
    cache_ttl_standings_s: int = 1800
    cache_ttl_odds_s: int = 600
    cache_ttl_leagues_s: int = 86400
    cache_ttl_head_to_head_s: int = 3600
    cache_ttl_recent_form_s: int = 900

    # ── Prefetch ─────────────────────────────────────────────
    prefetch_competitions: list[str] = Field(default=["39", "140", "135", "61", "78", "2"])
    prefetch_interval_s: float = 60.0
    prefetch_base_backoff_s: float = 60.0
    prefetch_max_backoff_s: float = 3600.0
    prefetch_concurrency: int = 4

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @field_validator("provider_order", "allowed_providers", mode="after")
    @classmethod
    def lowercase_provider_names(cls, value: list[str]) -> list[str]:
        return [v.strip().lower() for v in value if v and v.strip()]

    @property
    def redis_url_str(self) -> Optional[str]:
        return str(self.redis_url) if self.redis_url else None

    @property
    def redis_url_safe_log(self) -> str:
        """URL with password redacted, for logging only."""
        if not self.redis_url:
            return "<unset>"
        try:
            u = urlparse(str(self.redis_url))
            netloc = (u.hostname or "?") + (f":{u.port}" if u.port else "")
            return f"{u.scheme}://{netloc}{u.path or ''}"
        except Exception:
            return "redis://***"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
