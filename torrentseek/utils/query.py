"""Outbound search query construction shared by all providers."""
from __future__ import annotations

import re
from typing import Tuple

from ..models.search_result import MOVIE, SearchQuery

_YEAR_RE = re.compile(r"^\d{4}$")
_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9\s]+")
_SPACES_RE = re.compile(r"\s+")


def extract_title_and_year(text: str) -> Tuple[str, str]:
    """Split a trailing 4-digit year off free text: "Dune 2021" -> ("Dune", "2021")."""
    parts = text.split()
    if len(parts) <= 1:
        return text, ""
    if _YEAR_RE.match(parts[-1]):
        return " ".join(parts[:-1]), parts[-1]
    return text, ""


def format_query_string(text: str) -> str:
    # Accented letters are dropped too; indexers match the remaining tokens.
    text = _NON_ALNUM_RE.sub(" ", text.strip())
    text = _SPACES_RE.sub(" ", text)
    return text.replace(" ", "+").strip("+")


def build_search_query(query: SearchQuery) -> str:
    """
    Build the provider query string for a SearchQuery.

    Movies get "+year" when one is known, series get "+sNNeMM" for a specific
    episode or "+sNN" for a season. Spaces are already encoded as "+".
    """
    title, year = extract_title_and_year(query.free_text)
    title = format_query_string(title)

    if query.content_type == MOVIE:
        if not year and query.year:
            year = str(query.year)
        return f"{title}+{year}" if year else title
    if query.is_series:
        if query.want_specific_episode and query.episode > 0:
            return f"{title}+s{query.season:02d}e{query.episode:02d}"
        if query.season > 0:
            return f"{title}+s{query.season:02d}"
    return title
