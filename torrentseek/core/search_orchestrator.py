"""
Search Orchestrator
Routes a query to every registered provider concurrently, using TMDB metadata to
pick which title variant each provider receives
"""
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple
import logging
import re
import threading

from .cache import LRUCache
from .classifier import TorrentClassifier
from .errors import ConfigurationError, MetadataUnavailableError, NoResultsError, ProviderSearchError
from .event_bus import EventBus, Events
from ..models.search_result import (
    CandidateTorrent,
    CategoryBuckets,
    CombinedSearchResults,
    ContentMetadata,
    SearchQuery,
)
from ..services.metadata_fetcher import MetadataFetcher
from ..sources.base import BaseProvider

logger = logging.getLogger(__name__)

# provider name, provider, query variant it receives
Assignment = Tuple[str, BaseProvider, SearchQuery]


class SearchOrchestrator:
    """Language-aware concurrent search across torrent providers"""

    IMDB_ID_RE = re.compile(r"^tt\d+$")
    DEFAULT_SECONDARY_PROVIDER = "ygg"

    def __init__(
        self,
        cache: Optional[LRUCache] = None,
        metadata_fetcher: Optional[MetadataFetcher] = None,
        event_bus: Optional[EventBus] = None,
        settings=None,
        classifier: Optional[TorrentClassifier] = None,
    ):
        self.cache = cache
        self.metadata_fetcher = metadata_fetcher
        self.event_bus = event_bus or EventBus()
        self.classifier = classifier or TorrentClassifier()
        self._providers: Dict[str, BaseProvider] = {}
        self._lock = threading.RLock()

        settings_get = settings.get if settings is not None else (lambda key, default=None: default)
        self.secondary_language_provider = str(
            settings_get("secondary_language_provider", self.DEFAULT_SECONDARY_PROVIDER)
            or self.DEFAULT_SECONDARY_PROVIDER
        )
        self.max_workers = max(1, int(settings_get("max_search_workers", 10) or 10))

    def register(self, provider: BaseProvider):
        """Register a provider; do this before the first search"""
        if not isinstance(provider, BaseProvider):
            raise TypeError(f"Invalid provider type for register(): {type(provider)}. Expected BaseProvider.")
        if not getattr(provider, "name", ""):
            raise ValueError("Provider must define non-empty 'name'.")
        if self.cache is not None:
            provider.set_cache(self.cache)
        with self._lock:
            self._providers[provider.name] = provider

    def unregister(self, provider_name: str):
        with self._lock:
            self._providers.pop(provider_name, None)

    def get_provider_names(self) -> List[str]:
        with self._lock:
            return list(self._providers.keys())

    def get_provider(self, provider_name: str) -> BaseProvider:
        with self._lock:
            provider = self._providers.get(provider_name)
        if provider is None:
            raise ValueError(f"Provider {provider_name} not found")
        return provider

    def _provider_items(self) -> List[Tuple[str, BaseProvider]]:
        with self._lock:
            return list(self._providers.items())

    def is_imdb_id(self, query: str) -> bool:
        return bool(self.IMDB_ID_RE.match(query))

    def search_smart(
        self,
        query: str,
        content_type: str,
        season: int = 0,
        episode: int = 0,
        specific_episode: bool = False,
    ) -> Tuple[CombinedSearchResults, Optional[ContentMetadata]]:
        """
        Search every provider, routing title variants by original language.

        English-language content sends the English title to every provider
        except the secondary-language one. Other content additionally sends
        the localized title to the secondary-language provider. When metadata
        cannot be resolved, the raw query goes to every provider.

        Returns:
            (combined results, metadata or None when the fallback path ran)

        Raises:
            ConfigurationError: no metadata fetcher / TMDB key configured
            NoResultsError: fallback path and every provider failed
        """
        if self.metadata_fetcher is None:
            raise ConfigurationError("TMDB API key not configured")

        base = SearchQuery(
            free_text=query,
            content_type=content_type,
            season=season,
            episode=episode,
            want_specific_episode=specific_episode,
        )
        self.event_bus.emit(Events.SEARCH_STARTED, {"query": query, "content_type": content_type})

        try:
            if self.is_imdb_id(query):
                metadata = self.metadata_fetcher.fetch_metadata_by_external_id(query, content_type)
            else:
                metadata = self.metadata_fetcher.fetch_metadata(query, content_type)
        except MetadataUnavailableError as e:
            logger.info("No metadata for %r (%s); searching all providers with the raw query", query, e)
            self.event_bus.emit(Events.METADATA_FALLBACK, {"query": query, "error": str(e)})
            combined = self._search_without_metadata(base)
            self._emit_completed(query, combined, None)
            return combined, None

        self.event_bus.emit(Events.METADATA_RESOLVED, {"query": query, "metadata": metadata})
        combined = self._dispatch(self.route(replace(base, year=metadata.year), metadata))
        self._emit_completed(query, combined, metadata)
        return combined, metadata

    def route(self, base: SearchQuery, metadata: ContentMetadata) -> List[Assignment]:
        """Pick the query variant each registered provider receives"""
        english = base.with_title(metadata.english_title)
        assignments: List[Assignment] = []
        for name, provider in self._provider_items():
            if name != self.secondary_language_provider:
                assignments.append((name, provider, english))
            elif metadata.original_language != "en" and metadata.localized_title:
                localized = base.with_title(metadata.localized_title, metadata.localized_language)
                assignments.append((name, provider, localized))
        return assignments

    def _search_without_metadata(self, base: SearchQuery) -> CombinedSearchResults:
        combined = self._dispatch([(name, provider, base) for name, provider in self._provider_items()])
        if not combined.succeeded():
            raise NoResultsError("no results found from any provider")
        return combined

    def _dispatch(self, assignments: Sequence[Assignment]) -> CombinedSearchResults:
        """Run one search per assignment concurrently; returns once all have finished"""
        combined = CombinedSearchResults()
        if not assignments:
            return combined
        lock = threading.Lock()
        workers = min(len(assignments), self.max_workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="provider-search") as pool:
            futures = {
                pool.submit(self._search_provider, name, provider, query, combined, lock): name
                for name, provider, query in assignments
            }
            for completed, future in enumerate(as_completed(futures), start=1):
                source_name = futures[future]
                future.result()
                self.event_bus.emit(Events.SEARCH_PROGRESS, {
                    "completed": completed,
                    "total": len(futures),
                    "provider": source_name,
                    "error": combined.errors.get(source_name, ""),
                })
        return combined

    def _search_provider(
        self,
        name: str,
        provider: BaseProvider,
        query: SearchQuery,
        combined: CombinedSearchResults,
        lock: threading.Lock,
    ) -> None:
        """One provider's unit of work; never raises"""
        try:
            url = provider.build_search_url(query)
        except Exception as e:
            url = f"unavailable ({e})"
        with lock:
            combined.debug_info[name] = url
        logger.debug("[%s] searching %s", name, url)

        try:
            results = self.classifier.sort_results(provider.search(query))
        except Exception as e:
            if isinstance(e, ProviderSearchError) and e.url:
                url = e.url
            logger.warning("[%s] search failed: %s", name, e)
            with lock:
                combined.results[name] = CategoryBuckets()
                combined.errors[name] = str(e)
                combined.debug_info[name] = url
            self.event_bus.emit(Events.PROVIDER_FAILED, {"provider": name, "error": str(e), "url": url})
            return

        with lock:
            combined.results[name] = results
        logger.debug("[%s] %d results", name, results.total())

    def _emit_completed(self, query: str, combined: CombinedSearchResults, metadata: Optional[ContentMetadata]):
        self.event_bus.emit(Events.SEARCH_COMPLETED, {
            "query": query,
            "providers": sorted(combined.results),
            "count": sum(r.total() for r in combined.results.values()),
            "errors": dict(combined.errors),
            "metadata": metadata,
        })

    def search(self, provider_name: str, query: SearchQuery) -> CategoryBuckets:
        """Search a single provider; errors propagate to the caller"""
        provider = self.get_provider(provider_name)
        return self.classifier.sort_results(provider.search(query))

    def get_provider_hash(self, provider_name: str, candidate_id: str) -> str:
        return self.get_provider(provider_name).get_content_hash(candidate_id)

    def filter_by_min_confidence(self, results: CategoryBuckets, min_confidence: float) -> CategoryBuckets:
        return self.classifier.filter_results_by_min_confidence(results, min_confidence)

    def get_debug_info(self, candidates: Sequence[CandidateTorrent]) -> List[str]:
        return self.classifier.debug_lines(candidates)
