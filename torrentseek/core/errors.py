"""
Error types raised by the search engine.
"""
from typing import Optional


class TorrentSeekError(Exception):
    """Base class for search engine errors"""


class ConfigurationError(TorrentSeekError):
    """A required setting (e.g. the TMDB API key) is missing"""


class MetadataUnavailableError(TorrentSeekError):
    """Metadata lookup failed or matched nothing"""


class ProviderSearchError(TorrentSeekError):
    """One provider's request or response decoding failed"""

    def __init__(self, provider: str, message: str, url: Optional[str] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
        self.url = url


class NoResultsError(TorrentSeekError):
    """Every provider failed on the no-metadata fallback path"""
