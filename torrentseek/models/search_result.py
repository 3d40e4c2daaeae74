"""
Search Result Models
Query, candidate torrent and bucketed result types shared by providers and the orchestrator
"""
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional, Tuple


MOVIE = "movie"
SERIES = "series"

# Bucket names, in display order
BUCKET_MOVIE = "movie"
BUCKET_COMPLETE_SERIES = "complete_series"
BUCKET_COMPLETE_SEASON = "complete_season"
BUCKET_EPISODE = "episode"
BUCKET_NAMES = (BUCKET_MOVIE, BUCKET_COMPLETE_SERIES, BUCKET_COMPLETE_SEASON, BUCKET_EPISODE)


@dataclass(frozen=True)
class SearchQuery:
    """One logical search request; derive variants with with_title()"""
    free_text: str
    content_type: str = MOVIE
    season: int = 0
    episode: int = 0
    want_specific_episode: bool = False
    year: int = 0
    language_hint: str = ""

    def with_title(self, title: str, language_hint: str = "") -> "SearchQuery":
        """Copy of this query routed with another title variant"""
        return replace(self, free_text=title, language_hint=language_hint)

    @property
    def is_series(self) -> bool:
        return self.content_type == SERIES


@dataclass(frozen=True)
class ParsedInfo:
    """Fields the filename parser recognized in a torrent title"""
    resolved_title: str = ""
    year: int = 0
    season: int = 0
    episode: int = 0
    is_complete_bundle: bool = False
    resolution: str = ""
    codec: str = ""
    source_tag: str = ""
    confidence: float = 0.0


@dataclass(frozen=True)
class CandidateTorrent:
    """Torrent search result as returned by one provider"""
    id: str
    title: str
    content_hash: str
    source_provider: str
    size_bytes: int = 0
    seeder_count: int = 0
    leecher_count: int = 0
    parsed_info: Optional[ParsedInfo] = None
    confidence: float = 0.0

    def with_parse(self, parsed: Optional[ParsedInfo]) -> "CandidateTorrent":
        """Copy with parsed info and confidence attached (0 when unparseable)"""
        return replace(
            self,
            parsed_info=parsed,
            confidence=parsed.confidence if parsed is not None else 0.0,
        )

    @staticmethod
    def format_size(bytes_size: int) -> str:
        """Format bytes to human readable size"""
        size = float(bytes_size)
        for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
            if size < 1024.0:
                return f"{size:.2f} {unit}"
            size /= 1024.0
        return f"{size:.2f} PB"

    @property
    def size_formatted(self) -> str:
        return self.format_size(self.size_bytes)


@dataclass
class CategoryBuckets:
    """Candidates of one provider split into the four content categories"""
    movie: List[CandidateTorrent] = field(default_factory=list)
    complete_series: List[CandidateTorrent] = field(default_factory=list)
    complete_season: List[CandidateTorrent] = field(default_factory=list)
    episode: List[CandidateTorrent] = field(default_factory=list)

    def add(self, bucket: str, candidate: CandidateTorrent) -> None:
        if bucket not in BUCKET_NAMES:
            raise ValueError(f"Unknown bucket: {bucket}")
        getattr(self, bucket).append(candidate)

    def buckets(self) -> Iterator[Tuple[str, List[CandidateTorrent]]]:
        for name in BUCKET_NAMES:
            yield name, getattr(self, name)

    def total(self) -> int:
        return sum(len(items) for _, items in self.buckets())

    def is_empty(self) -> bool:
        return self.total() == 0


@dataclass(frozen=True)
class ContentMetadata:
    """Canonical and localized titles resolved for one query"""
    original_language: str = ""
    english_title: str = ""
    # title in the secondary language (French by default)
    localized_title: str = ""
    localized_language: str = ""
    year: int = 0
    original_title: str = ""
    tmdb_id: int = 0


@dataclass
class CombinedSearchResults:
    """Per-provider buckets plus diagnostics for one search_smart call"""
    results: Dict[str, CategoryBuckets] = field(default_factory=dict)
    # provider name -> outbound URL used
    debug_info: Dict[str, str] = field(default_factory=dict)
    # provider name -> error message for failed providers
    errors: Dict[str, str] = field(default_factory=dict)

    def succeeded(self) -> List[str]:
        return [name for name in self.results if name not in self.errors]
