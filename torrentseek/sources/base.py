"""
Provider SDK
Base interface for torrent indexer providers.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..core.cache import LRUCache
from ..models.search_result import CategoryBuckets, SearchQuery


class BaseProvider(ABC):
    """
    Provider contract used by the orchestrator.

    search() performs at most one network call per query, classifies the
    rows into CategoryBuckets and raises ProviderSearchError on network or
    decode failure. Zero rows is an empty result, not an error.
    """
    name = "UnnamedProvider"

    @abstractmethod
    def search(self, query: SearchQuery) -> CategoryBuckets:
        """Return classified results for a query."""
        raise NotImplementedError

    @abstractmethod
    def get_content_hash(self, candidate_id: str) -> str:
        """Resolve the info hash of one of this provider's candidates."""
        raise NotImplementedError

    @abstractmethod
    def set_cache(self, cache: LRUCache) -> None:
        """Attach the shared cache; providers work uncached until called."""
        raise NotImplementedError

    @abstractmethod
    def build_search_url(self, query: SearchQuery) -> str:
        """Exact outbound URL search() would request for this query."""
        raise NotImplementedError

    def reload_from_settings(self) -> None:
        """Optional hook called when settings are reloaded."""
        return None


def search_cache_key(query: SearchQuery) -> str:
    # Everything that changes the outbound URL is part of the key.
    return "|".join(str(part) for part in (
        query.free_text,
        query.content_type,
        query.season,
        query.episode,
        int(query.want_specific_episode),
        query.year,
    ))


def to_int(value: Any) -> int:
    """Lenient int conversion for indexer payloads that send numbers as strings"""
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0
