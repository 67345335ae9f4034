"""Shared data structures for catalog lookups."""

from dataclasses import dataclass
from typing import Literal, Optional


@dataclass
class CatalogResult:
    """One search hit, normalized across movie and tv payloads."""

    id: int
    media_type: Literal["movie", "tv"]
    title: str
    year: Optional[int] = None
    poster_path: Optional[str] = None
    overview: Optional[str] = None
    popularity: float = 0.0


@dataclass
class SeasonSummary:
    season_number: int
    name: str
    episode_count: int = 0
    air_date: Optional[str] = None
    poster_path: Optional[str] = None


def parse_year(date_value: object) -> Optional[int]:
    """Leading four-digit year of a catalog date string, if any."""
    if not isinstance(date_value, str) or len(date_value) < 4:
        return None
    head = date_value[:4]
    return int(head) if head.isdigit() else None
