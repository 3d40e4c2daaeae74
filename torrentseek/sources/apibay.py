"""
ApiBay Search Provider
JSON API behind The Pirate Bay; returns info hashes directly in search rows
"""
from typing import List, Optional

import requests

from .base import BaseProvider, search_cache_key, to_int
from ..core.cache import CacheView, LRUCache
from ..core.classifier import TorrentClassifier
from ..core.errors import ProviderSearchError
from ..models.search_result import CandidateTorrent, CategoryBuckets, SearchQuery
from ..utils.query import build_search_query


class ApiBayProvider(BaseProvider):
    """apibay.org video search"""

    name = "apibay"

    API_BASE = "https://apibay.org"
    VIDEO_CATEGORY = "video"
    NULL_HASH = "0" * 40

    def __init__(self, settings=None, classifier: Optional[TorrentClassifier] = None):
        self.settings = settings
        self.classifier = classifier or TorrentClassifier()
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": "Mozilla/5.0 (torrentseek)",
            "Accept": "application/json,text/plain,*/*",
        })
        self._search_cache: Optional[CacheView[CategoryBuckets]] = None
        self._api_base = self.API_BASE
        self._timeout_seconds = 30.0
        self.reload_from_settings()

    def reload_from_settings(self):
        if self.settings is None:
            return
        self._api_base = str(self.settings.get("apibay_api_base", self.API_BASE) or self.API_BASE).rstrip("/")
        self._timeout_seconds = float(self.settings.get("provider_timeout_seconds", 30.0) or 30.0)
        user_agent = self.settings.get("user_agent")
        if user_agent:
            self.session.headers["User-Agent"] = user_agent

    def set_cache(self, cache: LRUCache):
        self._search_cache = CacheView(cache, "apibay_search", CategoryBuckets)

    def build_search_url(self, query: SearchQuery) -> str:
        return f"{self._api_base}/q.php?q={build_search_query(query)}&cat={self.VIDEO_CATEGORY}"

    def search(self, query: SearchQuery) -> CategoryBuckets:
        cache_key = search_cache_key(query)
        if self._search_cache is not None:
            cached, found = self._search_cache.get(cache_key)
            if found:
                return cached

        url = self.build_search_url(query)
        rows = self._fetch_rows(url)
        results = self.classifier.classify(self._parse_rows(rows), query)

        if self._search_cache is not None:
            self._search_cache.set(cache_key, results)
        return results

    def get_content_hash(self, candidate_id: str) -> str:
        raise ProviderSearchError(self.name, "hash already included in search results")

    def _fetch_rows(self, url: str) -> List[dict]:
        try:
            response = self.session.get(url, timeout=self._timeout_seconds)
            response.raise_for_status()
            rows = response.json()
        except requests.RequestException as e:
            message = f"ApiBay request failed: {e}"
            raise ProviderSearchError(self.name, message, url) from e
        except ValueError as e:
            message = f"ApiBay returned invalid JSON: {e}"
            raise ProviderSearchError(self.name, message, url) from e

        if not isinstance(rows, list):
            raise ProviderSearchError(self.name, "ApiBay returned unexpected response.", url)
        # A lone placeholder row means zero hits.
        if len(rows) == 1 and isinstance(rows[0], dict) and str(rows[0].get("id")) == "0" \
                and rows[0].get("name") == "No results returned":
            return []
        return rows

    def _parse_rows(self, rows: List[dict]) -> List[CandidateTorrent]:
        candidates: List[CandidateTorrent] = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            torrent_id = str(row.get("id") or "").strip()
            info_hash = str(row.get("info_hash") or "").strip().lower()
            name = str(row.get("name") or "").strip()
            if not torrent_id or torrent_id == "0" or not name:
                continue
            if not info_hash or info_hash == self.NULL_HASH:
                continue
            candidates.append(CandidateTorrent(
                id=torrent_id,
                title=name,
                content_hash=info_hash,
                source_provider=self.name,
                size_bytes=to_int(row.get("size")),
                seeder_count=to_int(row.get("seeders")),
                leecher_count=to_int(row.get("leechers")),
            ))
        return candidates
