"""
Release-name parser adapter.

Wraps guessit and turns its guess into a ParsedInfo with a 0-100 confidence
score: the more release fields guessit recognizes, the more the title looks
like a well-formed scene name.
"""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Any, Dict, Optional

from guessit import guessit
from guessit.api import GuessitException

from ..models.search_result import ParsedInfo

logger = logging.getLogger(__name__)

# field -> points; sums to 100
CONFIDENCE_WEIGHTS = {
    "title": 30,
    "year": 10,
    "screen_size": 15,
    "source": 15,
    "video_codec": 10,
    "audio_codec": 5,
    "release_group": 10,
    "season_or_episode": 5,
}

_COMPLETE_RE = re.compile(r"\b(compl[eè]te|int[eé]grale|full[ ._-]series)\b", re.IGNORECASE)


class GuessitParser:
    """Default filename parser: parse(title) -> ParsedInfo or None"""

    def parse(self, title: str) -> Optional[ParsedInfo]:
        return parse_title(title)


@lru_cache(maxsize=4096)
def parse_title(title: str) -> Optional[ParsedInfo]:
    if not title or not title.strip():
        return None
    try:
        guess = dict(guessit(title))
    except GuessitException as e:
        logger.debug("guessit could not parse %r: %s", title, e)
        return None
    if not guess.get("title"):
        return None
    return _to_parsed_info(title, guess)


def _first_int(value: Any) -> int:
    if isinstance(value, list):
        value = value[0] if value else 0
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _as_text(value: Any) -> str:
    if isinstance(value, list):
        return " ".join(str(v) for v in value)
    return str(value) if value is not None else ""


def _is_complete(raw_title: str, guess: Dict[str, Any]) -> bool:
    """Whole-series bundle: a season range, or a complete marker with no season."""
    season = guess.get("season")
    if isinstance(season, list) and len(season) > 1:
        return True
    if season is not None:
        # "Show.S01.COMPLETE" is a season pack, not a series bundle
        return False
    other = guess.get("other") or []
    if isinstance(other, str):
        other = [other]
    return "Complete" in other or bool(_COMPLETE_RE.search(raw_title))


def score_guess(guess: Dict[str, Any]) -> float:
    score = 0
    for key, weight in CONFIDENCE_WEIGHTS.items():
        if key == "season_or_episode":
            present = guess.get("season") is not None or guess.get("episode") is not None
        else:
            present = bool(guess.get(key))
        if present:
            score += weight
    return float(score)


def _to_parsed_info(raw_title: str, guess: Dict[str, Any]) -> ParsedInfo:
    return ParsedInfo(
        resolved_title=_as_text(guess.get("title")),
        year=_first_int(guess.get("year")),
        season=_first_int(guess.get("season")),
        episode=_first_int(guess.get("episode")),
        is_complete_bundle=_is_complete(raw_title, guess),
        resolution=_as_text(guess.get("screen_size")),
        codec=_as_text(guess.get("video_codec")),
        source_tag=_as_text(guess.get("source")),
        confidence=score_guess(guess),
    )
