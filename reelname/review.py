"""Manual review of match results: confirm, skip, pick a candidate, search again."""

from __future__ import annotations

from typing import Iterable, List, Optional

from reelname import logger
from reelname.catalog.protocols import CatalogClient
from reelname.errors import EntityNotFoundError
from reelname.matching.matcher import DEFAULT_AUTO_MATCH_THRESHOLD, ConfidenceMatcher, rank_results
from reelname.models import FileUpdate, Group, GroupUpdate, MatchCandidate, can_transition, ensure_transition
from reelname.store.protocols import Store


class ReviewService:
    """User-driven group decisions that sit between matching and transfer."""

    def __init__(
        self,
        store: Store,
        catalog: CatalogClient,
        matcher: Optional[ConfidenceMatcher] = None,
        threshold: float = DEFAULT_AUTO_MATCH_THRESHOLD,
    ):
        self.store = store
        self.catalog = catalog
        self.matcher = matcher or ConfidenceMatcher(store, catalog, threshold=threshold)

    def _require_group(self, group_id: int) -> Group:
        group = self.store.get_group(group_id)
        if group is None:
            raise EntityNotFoundError("Group", group_id)
        return group

    def _set_status(self, group_ids: Iterable[int], target: str, allowed: Optional[frozenset] = None) -> int:
        log = logger.get_logger()
        changed = 0
        for group_id in group_ids:
            group = self.store.get_group(group_id)
            if group is None:
                log.warning(f"Group #{group_id} not found; skipping")
                continue
            if (allowed is not None and group.status not in allowed) or not can_transition(group.status, target):
                log.warning(f"Group #{group_id} is {group.status}; cannot mark {target}")
                continue
            self.store.update_group(group_id, GroupUpdate(status=target))
            self.store.update_group_files(group_id, FileUpdate(status=target))
            changed += 1
        return changed

    def confirm_groups(self, group_ids: Iterable[int]) -> int:
        """Move matched or ambiguous groups (and their files) to confirmed. Returns how many changed."""
        changed = self._set_status(group_ids, "confirmed", frozenset({"matched", "ambiguous"}))
        logger.get_logger().info(f"Confirmed {changed} group(s)")
        return changed

    def skip_groups(self, group_ids: Iterable[int]) -> int:
        changed = self._set_status(group_ids, "skipped")
        logger.get_logger().info(f"Skipped {changed} group(s)")
        return changed

    async def select_candidate(self, group_id: int, catalog_id: int) -> Group:
        """
        Match a group to one of its stored candidates.

        The candidate's confidence is kept as the match confidence and tv
        matches get the same episode-title backfill as automatic ones.
        """
        group = self._require_group(group_id)
        ensure_transition(group.status, "matched")
        candidate = next(
            (c for c in self.store.list_candidates(group_id) if c.catalog_id == catalog_id),
            None,
        )
        if candidate is None:
            raise EntityNotFoundError("Candidate", catalog_id)
        updated = await self.matcher.apply_match(group, candidate)
        logger.get_logger().match_outcome(
            updated.id, updated.catalog_title or updated.folder_name, updated.status, updated.match_confidence
        )
        return updated

    async def manual_search(
        self,
        group_id: int,
        query: str,
        media_type: Optional[str] = None,
        year: Optional[int] = None,
    ) -> List[MatchCandidate]:
        """Search with a user query and replace the group's candidates; status is left alone."""
        group = self._require_group(group_id)
        results = await self.catalog.search(
            query,
            media_type_hint=media_type or group.media_type,
            year=year,
        )
        candidates = rank_results(group, results, self.matcher.scorer)
        stored = self.store.replace_candidates(group_id, candidates)
        logger.get_logger().info(f"Search '{query}' for group #{group_id}: {len(stored)} candidate(s)")
        return stored
