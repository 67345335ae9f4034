"""Protocol definition for the metadata catalog client."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from reelname.catalog.types import CatalogResult, SeasonSummary


class CatalogClient(Protocol):
    """Catalog API used by the matcher and review operations."""

    def ensure_credential(self) -> None:
        ...

    async def search(
        self,
        query: str,
        media_type_hint: Optional[str] = None,
        year: Optional[int] = None,
    ) -> Sequence[CatalogResult]:
        ...

    async def fetch_episode_title(self, show_id: int, season: int, episode: int) -> Optional[str]:
        ...

    async def list_seasons(self, show_id: int) -> Sequence[SeasonSummary]:
        ...
