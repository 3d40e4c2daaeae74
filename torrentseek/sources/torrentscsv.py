"""
Torrents-CSV Search Provider
Open torrent database keyed by info hash
"""
import re
from typing import List, Optional

import requests

from .base import BaseProvider, search_cache_key, to_int
from ..core.cache import CacheView, LRUCache
from ..core.classifier import TorrentClassifier
from ..core.errors import ProviderSearchError
from ..models.search_result import MOVIE, CandidateTorrent, CategoryBuckets, SearchQuery
from ..utils.query import build_search_query


class TorrentsCsvProvider(BaseProvider):
    """torrents-csv.com search; drops multi-movie packs from movie searches"""

    name = "torrentscsv"

    API_BASE = "https://torrents-csv.com"
    PAGE_SIZE = 100

    PACK_MARKERS = [
        "collection", "trilogy", "quadrilogy", "pentalogy",
        "hexalogy", "saga", "complete", "duology", "anthology",
        "box set", "boxset", " pack", "movie series", "film series",
        "all parts", "all movies", "movies collection",
        "1-2", "1-3", "1-4", "1-5", "1-6", "1-7", "1-8", "1-9",
        "i-ii", "i-iii", "i-iv", "i-v", "i-vi",
    ]
    YEAR_RANGE_RE = re.compile(r"\d{4}\s*[-–—]\s*\d{4}")

    def __init__(self, settings=None, classifier: Optional[TorrentClassifier] = None):
        self.settings = settings
        self.classifier = classifier or TorrentClassifier()
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": "Mozilla/5.0 (torrentseek)",
            "Accept": "application/json",
        })
        self._search_cache: Optional[CacheView[CategoryBuckets]] = None
        self._api_base = self.API_BASE
        self._timeout_seconds = 30.0
        self.reload_from_settings()

    def reload_from_settings(self):
        if self.settings is None:
            return
        self._api_base = str(self.settings.get("torrentscsv_api_base", self.API_BASE) or self.API_BASE).rstrip("/")
        self._timeout_seconds = float(self.settings.get("provider_timeout_seconds", 30.0) or 30.0)
        user_agent = self.settings.get("user_agent")
        if user_agent:
            self.session.headers["User-Agent"] = user_agent

    def set_cache(self, cache: LRUCache):
        self._search_cache = CacheView(cache, "torrentscsv_search", CategoryBuckets)

    def build_search_url(self, query: SearchQuery) -> str:
        return f"{self._api_base}/service/search?q={build_search_query(query)}&size={self.PAGE_SIZE}"

    def search(self, query: SearchQuery) -> CategoryBuckets:
        cache_key = search_cache_key(query)
        if self._search_cache is not None:
            cached, found = self._search_cache.get(cache_key)
            if found:
                return cached

        url = self.build_search_url(query)
        try:
            response = self.session.get(url, timeout=self._timeout_seconds)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            message = f"Torrents-CSV request failed: {e}"
            raise ProviderSearchError(self.name, message, url) from e
        except ValueError as e:
            message = f"Torrents-CSV returned invalid JSON: {e}"
            raise ProviderSearchError(self.name, message, url) from e

        if not isinstance(payload, dict) or not isinstance(payload.get("torrents") or [], list):
            raise ProviderSearchError(self.name, "Torrents-CSV returned unexpected response.", url)

        candidates = self._parse_rows(payload.get("torrents") or [])
        if query.content_type == MOVIE:
            candidates = [c for c in candidates if not self.is_movie_pack(c.title)]
        results = self.classifier.classify(candidates, query)

        if self._search_cache is not None:
            self._search_cache.set(cache_key, results)
        return results

    def get_content_hash(self, candidate_id: str) -> str:
        # Candidates are identified by their info hash.
        return candidate_id.lower()

    def is_movie_pack(self, title: str) -> bool:
        lowered = title.lower()
        if any(marker in lowered for marker in self.PACK_MARKERS):
            return True
        return bool(self.YEAR_RANGE_RE.search(title))

    def _parse_rows(self, rows: List[dict]) -> List[CandidateTorrent]:
        candidates: List[CandidateTorrent] = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            info_hash = str(row.get("infohash") or "").strip().lower()
            name = str(row.get("name") or "").strip()
            if not info_hash or not name:
                continue
            candidates.append(CandidateTorrent(
                id=info_hash,
                title=name,
                content_hash=info_hash,
                source_provider=self.name,
                size_bytes=to_int(row.get("size_bytes")),
                seeder_count=to_int(row.get("seeders")),
                leecher_count=to_int(row.get("leechers")),
            ))
        return candidates
