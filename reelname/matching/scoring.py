"""Confidence scoring of catalog candidates against parsed folder metadata."""

from __future__ import annotations

from typing import Optional

from rapidfuzz.distance import Levenshtein

from reelname.catalog.types import CatalogResult

TITLE_WEIGHT = 0.60
YEAR_WEIGHT = 0.25
MEDIA_TYPE_WEIGHT = 0.10
POPULARITY_WEIGHT = 0.05

# Partial year credit by absolute difference; anything further apart scores 0.
_YEAR_DIFF_SCORES = {0: 0.25, 1: 0.15, 2: 0.05}
_UNKNOWN_YEAR_SCORE = 0.10
_UNKNOWN_MEDIA_TYPE_SCORE = 0.05


def title_similarity(a: str, b: str) -> float:
    """Normalized Levenshtein similarity of trimmed, lowercased titles in [0, 1]."""
    s1 = a.strip().lower()
    s2 = b.strip().lower()
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    return 1.0 - Levenshtein.distance(s1, s2) / max(len(s1), len(s2))


def year_score(parsed_year: Optional[int], candidate_year: Optional[int]) -> float:
    if parsed_year is None:
        return _UNKNOWN_YEAR_SCORE
    if candidate_year is None:
        return 0.0
    return _YEAR_DIFF_SCORES.get(abs(parsed_year - candidate_year), 0.0)


def media_type_score(parsed_media_type: Optional[str], candidate_media_type: str) -> float:
    if parsed_media_type in (None, "unknown"):
        return _UNKNOWN_MEDIA_TYPE_SCORE
    return MEDIA_TYPE_WEIGHT if parsed_media_type == candidate_media_type else 0.0


def popularity_score(popularity: float) -> float:
    return min(max(popularity, 0.0) / 100.0, 1.0) * POPULARITY_WEIGHT


def score(
    parsed_title: str,
    parsed_year: Optional[int],
    parsed_media_type: Optional[str],
    candidate: CatalogResult,
) -> float:
    """
    Weighted confidence that ``candidate`` is the parsed title.

    Title similarity carries 60%, year proximity 25%, media type agreement 10%
    and catalog popularity 5% as a tiebreaker.
    """
    total = (
        title_similarity(parsed_title, candidate.title) * TITLE_WEIGHT
        + year_score(parsed_year, candidate.year)
        + media_type_score(parsed_media_type, candidate.media_type)
        + popularity_score(candidate.popularity)
    )
    return min(max(total, 0.0), 1.0)
