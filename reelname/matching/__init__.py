"""Candidate scoring and the auto-match policy."""

from .matcher import ConfidenceMatcher, MatchSummary, is_auto_match, rank_results
from .scoring import score, title_similarity

__all__ = [
    "ConfidenceMatcher",
    "MatchSummary",
    "is_auto_match",
    "rank_results",
    "score",
    "title_similarity",
]
