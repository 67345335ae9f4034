"""Metadata catalog access (TMDB)."""

from .protocols import CatalogClient
from .tmdb_client import TmdbClient
from .types import CatalogResult, SeasonSummary, parse_year

__all__ = [
    "CatalogClient",
    "CatalogResult",
    "SeasonSummary",
    "TmdbClient",
    "parse_year",
]
