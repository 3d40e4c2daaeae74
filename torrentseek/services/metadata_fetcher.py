"""
Metadata Fetcher
Resolves canonical, English and secondary-language titles from TMDB
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional, Tuple

import requests

from ..core.cache import CacheView, LRUCache
from ..core.errors import ConfigurationError, MetadataUnavailableError
from ..models.search_result import MOVIE, ContentMetadata

logger = logging.getLogger(__name__)


class MetadataFetcher:
    """TMDB v3 client producing ContentMetadata for language routing"""

    BASE_URL = "https://api.themoviedb.org/3"
    LOCALES = {
        "en": "en-US",
        "fr": "fr-FR",
        "es": "es-ES",
        "de": "de-DE",
        "it": "it-IT",
        "pt": "pt-BR",
    }

    def __init__(self, api_key: Optional[str] = None, cache: Optional[LRUCache] = None, settings=None):
        self.settings = settings
        self.api_key = api_key if api_key is not None else str(self._setting("tmdb_api_key", "") or "")
        self.base_url = str(self._setting("tmdb_api_base", self.BASE_URL) or self.BASE_URL).rstrip("/")
        self.secondary_language = str(self._setting("secondary_language", "fr") or "fr")
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        self._search_cache: Optional[CacheView[ContentMetadata]] = None
        self._external_cache: Optional[CacheView[ContentMetadata]] = None
        if cache is not None:
            self.set_cache(cache)

    def _setting(self, key: str, default: Any) -> Any:
        if self.settings is None:
            return default
        return self.settings.get(key, default)

    def _timeout(self) -> float:
        try:
            return float(self._setting("tmdb_request_timeout_seconds", 10.0) or 10.0)
        except (TypeError, ValueError):
            return 10.0

    def set_cache(self, cache: LRUCache) -> None:
        self._search_cache = CacheView(cache, "metadata", ContentMetadata)
        self._external_cache = CacheView(cache, "metadata:imdb", ContentMetadata)

    def fetch_metadata(self, free_text: str, content_type: str) -> ContentMetadata:
        """
        Resolve metadata for a free-text title.

        Raises:
            ConfigurationError: no TMDB API key configured
            MetadataUnavailableError: TMDB failed or matched nothing
        """
        self._require_api_key()
        cache_key = f"{content_type}:{free_text}"
        if self._search_cache is not None:
            cached, found = self._search_cache.get(cache_key)
            if found:
                return cached

        payload = self._api_get(f"/search/{self._endpoint(content_type)}", {"query": free_text})
        results = payload.get("results") or []
        if not isinstance(results, list) or not results:
            raise MetadataUnavailableError(f"No TMDB match for '{free_text}'")

        first = results[0]
        metadata = self._build_metadata(first, content_type)

        if self._search_cache is not None:
            self._search_cache.set(cache_key, metadata)
        return metadata

    def fetch_metadata_by_external_id(self, imdb_id: str, content_type: str) -> ContentMetadata:
        """Resolve metadata for an IMDB id (e.g. "tt0903747") via TMDB's find endpoint."""
        self._require_api_key()
        cache_key = f"{content_type}:{imdb_id}"
        if self._external_cache is not None:
            cached, found = self._external_cache.get(cache_key)
            if found:
                return cached

        payload = self._api_get(f"/find/{imdb_id}", {"external_source": "imdb_id"})
        key = "movie_results" if content_type == MOVIE else "tv_results"
        matches = payload.get(key) or []
        if not isinstance(matches, list) or not matches:
            raise MetadataUnavailableError(f"No TMDB match for IMDB id {imdb_id}")

        metadata = self._build_metadata(matches[0], content_type)

        if self._external_cache is not None:
            self._external_cache.set(cache_key, metadata)
        return metadata

    def _require_api_key(self) -> None:
        if not self.api_key:
            raise ConfigurationError("TMDB API key not configured")

    @staticmethod
    def _endpoint(content_type: str) -> str:
        return "movie" if content_type == MOVIE else "tv"

    def _locale(self, language: str) -> str:
        return self.LOCALES.get(language, f"{language}-{language.upper()}")

    def _build_metadata(self, match: Dict[str, Any], content_type: str) -> ContentMetadata:
        try:
            tmdb_id = int(match.get("id") or 0)
        except (AttributeError, TypeError, ValueError):
            tmdb_id = 0
        if not tmdb_id:
            raise MetadataUnavailableError("TMDB match has no id")

        english_title, localized_title = self._fetch_localized_titles(tmdb_id, content_type)
        if not english_title:
            english_title = str(match.get("title") or match.get("name") or "")
        if not english_title:
            raise MetadataUnavailableError(f"No English title for TMDB id {tmdb_id}")

        metadata = ContentMetadata(
            original_language=str(match.get("original_language") or ""),
            english_title=english_title,
            localized_title=localized_title,
            localized_language=self.secondary_language,
            year=self._year(match.get("release_date") or match.get("first_air_date")),
            original_title=str(match.get("original_title") or match.get("original_name") or ""),
            tmdb_id=tmdb_id,
        )
        logger.info(
            "Resolved TMDB %s %s: lang=%s en=%r %s=%r year=%s",
            self._endpoint(content_type), tmdb_id, metadata.original_language,
            metadata.english_title, self.secondary_language, metadata.localized_title, metadata.year,
        )
        return metadata

    def _fetch_localized_titles(self, tmdb_id: int, content_type: str) -> Tuple[str, str]:
        """English and secondary-language titles, fetched concurrently"""
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="tmdb-title") as pool:
            english = pool.submit(self._fetch_title_in_language, tmdb_id, content_type, self._locale("en"))
            localized = pool.submit(
                self._fetch_title_in_language, tmdb_id, content_type, self._locale(self.secondary_language)
            )
            return english.result(), localized.result()

    def _fetch_title_in_language(self, tmdb_id: int, content_type: str, locale: str) -> str:
        """Localized title, or "" when the lookup fails"""
        try:
            detail = self._api_get(f"/{self._endpoint(content_type)}/{tmdb_id}", {"language": locale})
        except MetadataUnavailableError as e:
            logger.debug("TMDB %s title lookup failed for %s: %s", locale, tmdb_id, e)
            return ""
        key = "title" if content_type == MOVIE else "name"
        return str(detail.get(key) or "")

    def _api_get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        query = {"api_key": self.api_key}
        query.update(params)
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=query, timeout=self._timeout())
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise MetadataUnavailableError(f"TMDB request to {path} failed: {e}") from e
        except ValueError as e:
            raise MetadataUnavailableError(f"TMDB returned invalid JSON for {path}: {e}") from e
        if not isinstance(payload, dict):
            raise MetadataUnavailableError(f"TMDB returned unexpected response for {path}")
        return payload

    @staticmethod
    def _year(date_text: Any) -> int:
        text = str(date_text or "")
        try:
            return int(text[:4]) if len(text) >= 4 else 0
        except ValueError:
            return 0
