"""Auto-match policy: search the catalog, rank candidates, decide matched vs ambiguous."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, Union

from reelname import logger
from reelname.catalog.protocols import CatalogClient
from reelname.catalog.types import CatalogResult
from reelname.errors import CatalogUnavailableError, EntityNotFoundError, InvalidTransitionError
from reelname.matching import scoring
from reelname.models import FileUpdate, Group, GroupUpdate, MatchCandidate, ensure_transition
from reelname.store.protocols import Store

DEFAULT_AUTO_MATCH_THRESHOLD = 0.85
MIN_CONFIDENCE_GAP = 0.15
MAX_SCORED_RESULTS = 10
# Absorbs float error so a 0.85 vs 0.70 pair still clears the gap.
GAP_TOLERANCE = 1e-9

MATCHABLE_STATUSES = frozenset({"scanned", "matched", "ambiguous"})

Scorer = Callable[[str, Optional[int], Optional[str], CatalogResult], float]


@dataclass
class MatchSummary:
    matched: int = 0
    ambiguous: int = 0


def to_candidate(result: CatalogResult, confidence: float) -> MatchCandidate:
    return MatchCandidate(
        catalog_id=result.id,
        media_type=result.media_type,
        title=result.title,
        year=result.year,
        poster_path=result.poster_path,
        overview=result.overview,
        confidence=confidence,
    )


def rank_results(group: Group, results: Sequence[CatalogResult], scorer: Scorer = scoring.score) -> List[MatchCandidate]:
    """Score the top results against the group's parsed fields, best first (stable on ties)."""
    scored: List[Tuple[float, CatalogResult]] = [
        (scorer(group.parsed_title or "", group.parsed_year, group.media_type, result), result)
        for result in list(results)[:MAX_SCORED_RESULTS]
    ]
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [to_candidate(result, confidence) for confidence, result in scored]


def is_auto_match(candidates: Sequence[MatchCandidate], threshold: float) -> bool:
    if not candidates:
        return False
    top = candidates[0].confidence
    gap = top - candidates[1].confidence if len(candidates) > 1 else 1.0
    return top >= threshold - GAP_TOLERANCE and gap >= MIN_CONFIDENCE_GAP - GAP_TOLERANCE


class ConfidenceMatcher:
    """Matches groups against the catalog and cascades accepted matches to their files."""

    def __init__(
        self,
        store: Store,
        catalog: CatalogClient,
        threshold: float = DEFAULT_AUTO_MATCH_THRESHOLD,
        scorer: Scorer = scoring.score,
    ):
        self.store = store
        self.catalog = catalog
        self.threshold = threshold
        self.scorer = scorer

    def _load_group(self, group: Union[Group, int]) -> Group:
        group_id = group.id if isinstance(group, Group) else group
        loaded = self.store.get_group(group_id)
        if loaded is None:
            raise EntityNotFoundError("Group", group_id)
        return loaded

    async def match_group(self, group: Union[Group, int]) -> Group:
        """
        Run one match attempt for a scanned, matched or ambiguous group.

        Returns the updated group. Catalog failures propagate and leave the
        group as it was.
        """
        current = self._load_group(group)
        if current.status not in MATCHABLE_STATUSES:
            raise InvalidTransitionError(current.status, "matched")

        if not current.parsed_title:
            updated = self._mark_ambiguous(current, GroupUpdate(match_confidence=None))
            self._log_outcome(updated)
            return updated

        results = await self.catalog.search(
            current.parsed_title,
            media_type_hint=current.media_type,
            year=current.parsed_year,
        )
        if not results:
            updated = self._mark_ambiguous(current, GroupUpdate())
            self._log_outcome(updated)
            return updated

        candidates = rank_results(current, results, self.scorer)
        self.store.replace_candidates(current.id, candidates)

        if is_auto_match(candidates, self.threshold):
            updated = await self.apply_match(current, candidates[0])
        else:
            updated = self._mark_ambiguous(current, GroupUpdate(match_confidence=candidates[0].confidence))
        self._log_outcome(updated)
        return updated

    def _mark_ambiguous(self, group: Group, update: GroupUpdate) -> Group:
        ensure_transition(group.status, "ambiguous")
        update.status = "ambiguous"
        return self.store.update_group(group.id, update)

    async def apply_match(self, group: Group, candidate: MatchCandidate) -> Group:
        """Copy a candidate onto the group and all its files, then backfill episode titles for tv."""
        ensure_transition(group.status, "matched")
        updated = self.store.update_group(
            group.id,
            GroupUpdate(
                status="matched",
                media_type=candidate.media_type,
                catalog_id=candidate.catalog_id,
                catalog_title=candidate.title,
                catalog_year=candidate.year,
                poster_path=candidate.poster_path,
                match_confidence=candidate.confidence,
            ),
        )
        self.store.update_group_files(
            group.id,
            FileUpdate(
                status="matched",
                catalog_id=candidate.catalog_id,
                catalog_title=candidate.title,
                catalog_year=candidate.year,
                poster_path=candidate.poster_path,
                match_confidence=candidate.confidence,
            ),
        )
        if candidate.media_type == "tv":
            await self.backfill_episode_titles(group.id, candidate.catalog_id)
        return updated

    async def backfill_episode_titles(self, group_id: int, show_id: int) -> int:
        """Fill episode titles for numbered, non-extra files. Returns how many were found."""
        found = 0
        for media_file in self.store.list_files(group_id=group_id):
            if (
                media_file.file_category == "extra"
                or media_file.parsed_season is None
                or media_file.parsed_episode is None
            ):
                continue
            try:
                title = await self.catalog.fetch_episode_title(
                    show_id, media_file.parsed_season, media_file.parsed_episode
                )
            except CatalogUnavailableError as exc:
                logger.get_logger().warning(
                    f"Episode title lookup failed for file #{media_file.id} "
                    f"(S{media_file.parsed_season:02d}E{media_file.parsed_episode:02d}): {exc}"
                )
                continue
            if title:
                self.store.update_file(media_file.id, FileUpdate(episode_title=title))
                found += 1
        return found

    async def match_all_groups(self) -> MatchSummary:
        """Match every scanned group; one group's failure never stops the batch."""
        self.catalog.ensure_credential()
        summary = MatchSummary()
        pending = self.store.list_groups(status="scanned")
        for index, group in enumerate(pending, start=1):
            logger.get_logger().debug(f"Matching group {index}/{len(pending)}: {group.folder_name}")
            try:
                updated = await self.match_group(group.id)
            except Exception as exc:
                logger.get_logger().error(f"Failed to match group #{group.id} ({group.folder_name}): {exc}")
                summary.ambiguous += 1
                continue
            if updated.status == "matched":
                summary.matched += 1
            else:
                summary.ambiguous += 1
        logger.get_logger().info(f"Match run finished: {summary.matched} matched, {summary.ambiguous} ambiguous")
        return summary

    def _log_outcome(self, group: Group) -> None:
        title = group.catalog_title or group.parsed_title or group.folder_name
        logger.get_logger().match_outcome(group.id, title, group.status, group.match_confidence)
