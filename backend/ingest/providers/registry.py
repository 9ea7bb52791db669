"""
Provider registry with a deterministic priority cascade.

Providers are ordered by ascending priority (distinct integers). The
registry only answers "who can serve this dataset, in which order"; health
filtering happens in the orchestrator so that history can cause skipping
but never reordering.
"""
from __future__ import annotations

from typing import Callable, Iterable, Optional

from shared.config import Settings, get_settings
from shared.models.domain import ProviderConfig
from shared.models.enums import DatasetType, ProviderName
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

from ingest.providers.api_football import ApiFootballProvider
from ingest.providers.base import BaseProvider
from ingest.providers.espn import EspnProvider
from ingest.providers.football_data import FootballDataProvider
from ingest.providers.openligadb import OpenLigaDbProvider
from ingest.providers.sportmonks import SportMonksProvider

logger = get_logger(__name__)


class ProviderRegistry:
    """
    Holds provider instances and yields attempt lists per dataset.

    Args:
        providers: Provider connectors; priorities must be distinct.
        allowed: Optional allow-list of provider names restricting every cascade.
    """

    def __init__(
        self,
        providers: Iterable[BaseProvider],
        allowed: Optional[Iterable[str]] = None,
    ) -> None:
        ordered = sorted(providers, key=lambda p: p.priority)
        seen: dict[int, str] = {}
        names: set[str] = set()
        for provider in ordered:
            if provider.priority in seen:
                raise ValueError(
                    f"Duplicate provider priority {provider.priority}: "
                    f"{seen[provider.priority]} and {provider.name}"
                )
            if provider.name in names:
                raise ValueError(f"Duplicate provider name: {provider.name}")
            seen[provider.priority] = provider.name
            names.add(provider.name)

        self._providers = ordered
        allowed_set = {a.lower() for a in allowed} if allowed else set()
        self._allowed: Optional[frozenset[str]] = frozenset(allowed_set) if allowed_set else None

    @property
    def providers(self) -> list[BaseProvider]:
        return list(self._providers)

    @property
    def allowed(self) -> Optional[frozenset[str]]:
        return self._allowed

    def is_allowed(self, name: str) -> bool:
        return self._allowed is None or name.lower() in self._allowed

    def configured_for(self, dataset: DatasetType) -> list[BaseProvider]:
        """Enabled providers that can answer ``dataset``, ignoring the allow-list."""
        return [p for p in self._providers if p.config.enabled and p.supports(dataset)]

    def candidates(self, dataset: DatasetType) -> list[BaseProvider]:
        """Attempt list for ``dataset``: priority order, allow-list applied."""
        return [p for p in self.configured_for(dataset) if self.is_allowed(p.name)]


# ── Construction from settings ──────────────────────────────────────────
ProviderFactory = Callable[[ProviderConfig, ProviderHTTPClient, Settings], BaseProvider]

_FACTORIES: dict[ProviderName, ProviderFactory] = {
    ProviderName.FOOTBALL_DATA: lambda c, h, s: FootballDataProvider(c, h),
    ProviderName.SPORTMONKS: lambda c, h, s: SportMonksProvider(c, h),
    ProviderName.API_FOOTBALL: lambda c, h, s: ApiFootballProvider(
        c, h, rapidapi_base_url=s.api_football_rapidapi_base_url
    ),
    ProviderName.ESPN: lambda c, h, s: EspnProvider(c, h),
    ProviderName.OPENLIGADB: lambda c, h, s: OpenLigaDbProvider(c, h),
}

_PROVIDER_CLASSES: dict[ProviderName, type[BaseProvider]] = {
    ProviderName.FOOTBALL_DATA: FootballDataProvider,
    ProviderName.SPORTMONKS: SportMonksProvider,
    ProviderName.API_FOOTBALL: ApiFootballProvider,
    ProviderName.ESPN: EspnProvider,
    ProviderName.OPENLIGADB: OpenLigaDbProvider,
}


def _provider_settings(name: ProviderName, settings: Settings) -> tuple[str, str, bool, bool]:
    """(base_url, auth_token, enabled flag, requires key) for a provider."""
    if name == ProviderName.FOOTBALL_DATA:
        return settings.football_data_base_url, settings.football_data_api_key, settings.football_data_enabled, True
    if name == ProviderName.SPORTMONKS:
        return settings.sportmonks_base_url, settings.sportmonks_api_key, settings.sportmonks_enabled, True
    if name == ProviderName.API_FOOTBALL:
        return settings.api_football_base_url, settings.api_football_key, settings.api_football_enabled, True
    if name == ProviderName.ESPN:
        return settings.espn_base_url, "", settings.espn_enabled, False
    return settings.openligadb_base_url, "", settings.openligadb_enabled, False


def build_provider_configs(settings: Settings | None = None) -> list[ProviderConfig]:
    """
    Provider configs in ``provider_order``; priority is the 1-based position.

    Raises:
        ValueError: Unknown or repeated provider name in the order list.
    """
    settings = settings or get_settings()
    configs: list[ProviderConfig] = []
    seen: set[str] = set()

    for index, raw_name in enumerate(settings.provider_order):
        try:
            name = ProviderName(raw_name)
        except ValueError:
            raise ValueError(f"Unknown provider in provider_order: {raw_name!r}") from None
        if name.value in seen:
            raise ValueError(f"Provider listed twice in provider_order: {raw_name!r}")
        seen.add(name.value)

        base_url, token, enabled, requires_key = _provider_settings(name, settings)
        if enabled and requires_key and not token:
            logger.info("provider_disabled_no_key", provider=name.value)
            enabled = False

        configs.append(ProviderConfig(
            name=name.value,
            priority=index + 1,
            base_url=base_url,
            auth_token=token,
            enabled=enabled,
            datasets=_PROVIDER_CLASSES[name].datasets,
        ))
    return configs


def build_provider_registry(
    http_client: ProviderHTTPClient,
    settings: Settings | None = None,
    allowed: Optional[Iterable[str]] = None,
) -> ProviderRegistry:
    """Instantiate every configured connector around one shared HTTP client."""
    settings = settings or get_settings()
    providers = [
        _FACTORIES[ProviderName(cfg.name)](cfg, http_client, settings)
        for cfg in build_provider_configs(settings)
    ]
    registry = ProviderRegistry(
        providers,
        allowed=allowed if allowed is not None else settings.allowed_providers,
    )
    logger.info(
        "provider_registry_built",
        order=[p.name for p in registry.providers if p.config.enabled],
        allowed=sorted(registry.allowed) if registry.allowed else None,
    )
    return registry
