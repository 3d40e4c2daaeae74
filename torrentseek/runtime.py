"""Runtime bootstrap for the torrentseek search engine."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional

from .core.cache import LRUCache
from .core.event_bus import EventBus
from .core.search_orchestrator import SearchOrchestrator
from .core.settings_manager import SettingsManager
from .services.metadata_fetcher import MetadataFetcher
from .sources.apibay import ApiBayProvider
from .sources.torrentscsv import TorrentsCsvProvider
from .sources.ygg import YggProvider

logger = logging.getLogger(__name__)

PROVIDER_FACTORIES = {
    "ygg": YggProvider,
    "apibay": ApiBayProvider,
    "torrentscsv": TorrentsCsvProvider,
}


@dataclass
class SearchRuntime:
    """Shared service graph used by callers of the engine."""

    settings: SettingsManager
    event_bus: EventBus
    cache: LRUCache
    metadata_fetcher: MetadataFetcher
    orchestrator: SearchOrchestrator

    def shutdown(self):
        self.cache.stop_cleanup()


def build_runtime(settings: Optional[SettingsManager] = None) -> SearchRuntime:
    """Create and wire core services from settings."""

    settings = settings or SettingsManager()
    event_bus = EventBus()
    cache = LRUCache(
        capacity=int(settings.get("cache_size", 1000) or 1000),
        ttl_seconds=float(settings.get("cache_ttl_seconds", 86400.0) or 86400.0),
    )
    if settings.get("cache_cleanup_enabled", False):
        cache.start_cleanup(float(settings.get("cache_cleanup_interval_seconds", 3600.0) or 3600.0))

    metadata_fetcher = MetadataFetcher(cache=cache, settings=settings)
    orchestrator = SearchOrchestrator(
        cache=cache,
        metadata_fetcher=metadata_fetcher,
        event_bus=event_bus,
        settings=settings,
    )

    for name in settings.enabled_provider_names():
        factory = PROVIDER_FACTORIES.get(name)
        if factory is None:
            logger.warning("Unknown provider %r in enabled_providers; skipping", name)
            continue
        orchestrator.register(factory(settings))

    return SearchRuntime(
        settings=settings,
        event_bus=event_bus,
        cache=cache,
        metadata_fetcher=metadata_fetcher,
        orchestrator=orchestrator,
    )


def build_default_orchestrator(settings: Optional[SettingsManager] = None) -> SearchOrchestrator:
    return build_runtime(settings).orchestrator
