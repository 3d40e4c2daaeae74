"""
YGG Search Provider
French-language indexer (yggapi.eu); hashes may need a second lookup per torrent
"""
from typing import List, Optional

import requests

from .base import BaseProvider, search_cache_key, to_int
from ..core.cache import CacheView, LRUCache
from ..core.classifier import TorrentClassifier
from ..core.errors import ProviderSearchError
from ..models.search_result import MOVIE, SERIES, CandidateTorrent, CategoryBuckets, SearchQuery
from ..utils.query import build_search_query


class YggProvider(BaseProvider):
    """yggapi.eu search with per-torrent hash lookup"""

    name = "ygg"

    API_BASE = "https://yggapi.eu"
    PER_PAGE = 100
    CATEGORY_IDS = {
        MOVIE: (2178, 2181, 2183),
        SERIES: (2179, 2181, 2182, 2184),
    }

    def __init__(self, settings=None, classifier: Optional[TorrentClassifier] = None):
        self.settings = settings
        self.classifier = classifier or TorrentClassifier()
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": "Mozilla/5.0 (torrentseek)",
            "Accept": "application/json",
        })
        self._search_cache: Optional[CacheView[CategoryBuckets]] = None
        self._hash_cache: Optional[CacheView[str]] = None
        self._api_base = self.API_BASE
        self._timeout_seconds = 30.0
        self.reload_from_settings()

    def reload_from_settings(self):
        if self.settings is None:
            return
        self._api_base = str(self.settings.get("ygg_api_base", self.API_BASE) or self.API_BASE).rstrip("/")
        self._timeout_seconds = float(self.settings.get("provider_timeout_seconds", 30.0) or 30.0)
        user_agent = self.settings.get("user_agent")
        if user_agent:
            self.session.headers["User-Agent"] = user_agent

    def set_cache(self, cache: LRUCache):
        self._search_cache = CacheView(cache, "ygg_search", CategoryBuckets)
        self._hash_cache = CacheView(cache, "ygg_hash", str)

    def build_search_url(self, query: SearchQuery) -> str:
        categories = "".join(f"&category_id={c}" for c in self.CATEGORY_IDS.get(query.content_type, ()))
        return (
            f"{self._api_base}/torrents?q={build_search_query(query)}"
            f"&page=1&per_page={self.PER_PAGE}{categories}"
        )

    def search(self, query: SearchQuery) -> CategoryBuckets:
        cache_key = search_cache_key(query)
        if self._search_cache is not None:
            cached, found = self._search_cache.get(cache_key)
            if found:
                return cached

        url = self.build_search_url(query)
        rows = self._get_json(url)
        if not isinstance(rows, list):
            raise ProviderSearchError(self.name, "YGG returned unexpected response.", url)
        results = self.classifier.classify(self._parse_rows(rows), query)

        if self._search_cache is not None:
            self._search_cache.set(cache_key, results)
        return results

    def get_content_hash(self, candidate_id: str) -> str:
        """Fetch the info hash from the torrent detail endpoint"""
        if self._hash_cache is not None:
            cached, found = self._hash_cache.get(candidate_id)
            if found:
                return cached

        url = f"{self._api_base}/torrent/{candidate_id}"
        detail = self._get_json(url)
        info_hash = ""
        if isinstance(detail, dict):
            info_hash = str(detail.get("hash") or "").strip().lower()
        if not info_hash:
            raise ProviderSearchError(self.name, f"no hash for torrent {candidate_id}", url)

        if self._hash_cache is not None:
            self._hash_cache.set(candidate_id, info_hash)
        return info_hash

    def _get_json(self, url: str):
        try:
            response = self.session.get(url, timeout=self._timeout_seconds)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            message = f"YGG request failed: {e}"
            raise ProviderSearchError(self.name, message, url) from e
        except ValueError as e:
            message = f"YGG returned invalid JSON: {e}"
            raise ProviderSearchError(self.name, message, url) from e

    def _parse_rows(self, rows: List[dict]) -> List[CandidateTorrent]:
        candidates: List[CandidateTorrent] = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            title = str(row.get("title") or "").strip()
            if row.get("id") is None or not title:
                continue
            candidates.append(CandidateTorrent(
                id=str(row.get("id")),
                title=title,
                # Often absent; resolved later through get_content_hash().
                content_hash=str(row.get("hash") or "").strip().lower(),
                source_provider=self.name,
                size_bytes=to_int(row.get("size")),
                seeder_count=to_int(row.get("seeders")),
                leecher_count=to_int(row.get("leechers")),
            ))
        return candidates
