"""
Torrent Classifier
Buckets candidates into movie / complete series / complete season / episode and
orders each bucket by parser confidence
"""
from __future__ import annotations

import re
from operator import attrgetter
from typing import Iterable, List, Optional, Protocol

from ..models.search_result import (
    BUCKET_COMPLETE_SEASON,
    BUCKET_COMPLETE_SERIES,
    BUCKET_EPISODE,
    BUCKET_MOVIE,
    MOVIE,
    CandidateTorrent,
    CategoryBuckets,
    ParsedInfo,
    SearchQuery,
)
from ..utils.title_parser import GuessitParser


class TitleParser(Protocol):
    def parse(self, title: str) -> Optional[ParsedInfo]:
        ...


# Filename heuristics used when the parser gives up
_SXXEYY_RE = re.compile(r"\bs(\d{1,2})[ ._-]?e(\d{1,3})\b", re.IGNORECASE)
_NXNN_RE = re.compile(r"\b(\d{1,2})x(\d{2,3})\b", re.IGNORECASE)
_SEASON_WORD_RE = re.compile(r"\b(?:season|saison)[ ._-]?(\d{1,2})\b", re.IGNORECASE)
_SXX_RE = re.compile(r"\bs(\d{1,2})\b", re.IGNORECASE)
_COMPLETE_RE = re.compile(r"\b(compl[eè]te|int[eé]grale)\b", re.IGNORECASE)


def heuristic_parse(title: str) -> ParsedInfo:
    """Season/episode tokens found by plain pattern matching (confidence 0)"""
    match = _SXXEYY_RE.search(title) or _NXNN_RE.search(title)
    if match:
        return ParsedInfo(season=int(match.group(1)), episode=int(match.group(2)))
    match = _SEASON_WORD_RE.search(title) or _SXX_RE.search(title)
    if match:
        return ParsedInfo(season=int(match.group(1)))
    return ParsedInfo(is_complete_bundle=bool(_COMPLETE_RE.search(title)))


class TorrentClassifier:
    """Classifies and sorts provider candidates using a filename parser"""

    def __init__(self, parser: Optional[TitleParser] = None):
        self.parser = parser or GuessitParser()

    def parse_and_score(self, candidates: Iterable[CandidateTorrent]) -> List[CandidateTorrent]:
        return [c.with_parse(self.parser.parse(c.title)) for c in candidates]

    def classify(self, candidates: Iterable[CandidateTorrent], query: SearchQuery) -> CategoryBuckets:
        """Parse every candidate and place it in exactly one bucket, keeping provider order"""
        buckets = CategoryBuckets()
        for candidate in self.parse_and_score(candidates):
            buckets.add(self.bucket_for(candidate, query), candidate)
        return buckets

    def bucket_for(self, candidate: CandidateTorrent, query: SearchQuery) -> str:
        if query.content_type == MOVIE:
            return BUCKET_MOVIE

        parsed = candidate.parsed_info
        info = parsed if parsed is not None else heuristic_parse(candidate.title)

        if info.is_complete_bundle:
            return BUCKET_COMPLETE_SERIES
        if query.episode > 0 and info.season == query.season and info.episode == query.episode:
            return BUCKET_EPISODE
        if query.season > 0 and info.season == query.season and info.episode == 0:
            return BUCKET_COMPLETE_SEASON
        if parsed is not None and parsed.season == 0 and parsed.episode == 0:
            return BUCKET_COMPLETE_SERIES
        # Ambiguous or partially parsed: loose episode content.
        return BUCKET_EPISODE

    def sort_by_confidence(self, candidates: Iterable[CandidateTorrent]) -> List[CandidateTorrent]:
        """Descending confidence; equal scores keep provider order"""
        return sorted(candidates, key=attrgetter("confidence"), reverse=True)

    def sort_results(self, results: CategoryBuckets) -> CategoryBuckets:
        return CategoryBuckets(
            movie=self.sort_by_confidence(results.movie),
            complete_series=self.sort_by_confidence(results.complete_series),
            complete_season=self.sort_by_confidence(results.complete_season),
            episode=self.sort_by_confidence(results.episode),
        )

    @staticmethod
    def filter_by_min_confidence(candidates: Iterable[CandidateTorrent], threshold: float) -> List[CandidateTorrent]:
        return [c for c in candidates if c.confidence >= threshold]

    def filter_results_by_min_confidence(self, results: CategoryBuckets, threshold: float) -> CategoryBuckets:
        return CategoryBuckets(
            movie=self.filter_by_min_confidence(results.movie, threshold),
            complete_series=self.filter_by_min_confidence(results.complete_series, threshold),
            complete_season=self.filter_by_min_confidence(results.complete_season, threshold),
            episode=self.filter_by_min_confidence(results.episode, threshold),
        )

    def matches_episode(self, title: str, season: int, episode: int) -> bool:
        parsed = self.parser.parse(title)
        return parsed is not None and parsed.season == season and parsed.episode == episode

    def matches_season(self, title: str, season: int) -> bool:
        """Season pack of the given season (no episode number)"""
        parsed = self.parser.parse(title)
        return parsed is not None and parsed.season == season and parsed.episode == 0

    def debug_lines(self, candidates: Iterable[CandidateTorrent]) -> List[str]:
        """Human-readable ranking, e.g. "1. 85% - Title [Title, 1999, 1080p, Blu-ray, H.264]" """
        lines = []
        for i, c in enumerate(self.sort_by_confidence(candidates), start=1):
            details = ""
            if c.parsed_info is not None:
                p = c.parsed_info
                details = f" [{p.resolved_title}, {p.year}, {p.resolution}, {p.source_tag}, {p.codec}]"
            lines.append(f"{i}. {c.confidence:.0f}% - {c.title}{details}")
        return lines
