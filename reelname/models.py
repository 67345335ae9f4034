"""Entity records, partial-update models and the group state machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from reelname.errors import InvalidTransitionError

Status = Literal[
    "scanned",
    "matched",
    "ambiguous",
    "confirmed",
    "transferring",
    "completed",
    "failed",
    "skipped",
]
MediaType = Literal["movie", "tv", "unknown"]
FileCategory = Literal["episode", "movie", "special", "extra"]
ExtraType = Literal[
    "behind_the_scenes",
    "deleted_scenes",
    "featurettes",
    "interviews",
    "scenes",
    "shorts",
    "trailers",
    "other",
]
DestinationType = Literal["local", "ssh"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class Group:
    """One scanned folder; the unit of catalog matching."""

    folder_path: str
    folder_name: str
    id: int = 0
    status: Status = "scanned"
    media_type: MediaType = "unknown"
    total_file_count: int = 0
    total_file_size: int = 0
    parsed_title: Optional[str] = None
    parsed_year: Optional[int] = None
    catalog_id: Optional[int] = None
    catalog_title: Optional[str] = None
    catalog_year: Optional[int] = None
    poster_path: Optional[str] = None
    match_confidence: Optional[float] = None
    destination_id: Optional[int] = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)


@dataclass
class MediaFile:
    """One media file inside a group; the unit of transfer."""

    source_path: str
    file_name: str
    file_size: int
    file_extension: str
    id: int = 0
    group_id: Optional[int] = None
    status: Status = "scanned"
    media_type: MediaType = "unknown"
    file_category: FileCategory = "episode"
    extra_type: Optional[ExtraType] = None
    parsed_title: Optional[str] = None
    parsed_year: Optional[int] = None
    parsed_season: Optional[int] = None
    parsed_episode: Optional[int] = None
    parsed_quality: Optional[str] = None
    parsed_codec: Optional[str] = None
    catalog_id: Optional[int] = None
    catalog_title: Optional[str] = None
    catalog_year: Optional[int] = None
    poster_path: Optional[str] = None
    match_confidence: Optional[float] = None
    episode_title: Optional[str] = None
    destination_id: Optional[int] = None
    destination_path: Optional[str] = None
    transfer_progress: Optional[float] = None
    transfer_error: Optional[str] = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)


@dataclass
class MatchCandidate:
    """Ranked catalog hit attached to a group (rank 0 is the best)."""

    catalog_id: int
    media_type: Literal["movie", "tv"]
    title: str
    confidence: float
    year: Optional[int] = None
    poster_path: Optional[str] = None
    overview: Optional[str] = None
    rank: int = 0
    id: int = 0
    group_id: Optional[int] = None
    file_id: Optional[int] = None


@dataclass
class Destination:
    """Named transfer target, either a local directory or an SSH host."""

    name: str
    base_path: str
    type: DestinationType = "local"
    id: int = 0
    ssh_host: Optional[str] = None
    ssh_port: int = 22
    ssh_user: Optional[str] = None
    ssh_key_path: Optional[str] = None
    ssh_key_passphrase: Optional[str] = None
    movie_template: Optional[str] = None
    tv_template: Optional[str] = None


class _PartialUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    def changes(self) -> Dict[str, Any]:
        """Fields explicitly set by the caller, including explicit ``None``."""
        return self.model_dump(exclude_unset=True)


class GroupUpdate(_PartialUpdate):
    status: Optional[Status] = None
    media_type: Optional[MediaType] = None
    total_file_count: Optional[int] = Field(default=None, ge=0)
    total_file_size: Optional[int] = Field(default=None, ge=0)
    parsed_title: Optional[str] = None
    parsed_year: Optional[int] = None
    catalog_id: Optional[int] = None
    catalog_title: Optional[str] = None
    catalog_year: Optional[int] = None
    poster_path: Optional[str] = None
    match_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    destination_id: Optional[int] = None


class FileUpdate(_PartialUpdate):
    group_id: Optional[int] = None
    status: Optional[Status] = None
    media_type: Optional[MediaType] = None
    file_category: Optional[FileCategory] = None
    extra_type: Optional[ExtraType] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = Field(default=None, ge=0)
    file_extension: Optional[str] = None
    parsed_title: Optional[str] = None
    parsed_year: Optional[int] = None
    parsed_season: Optional[int] = None
    parsed_episode: Optional[int] = None
    parsed_quality: Optional[str] = None
    parsed_codec: Optional[str] = None
    catalog_id: Optional[int] = None
    catalog_title: Optional[str] = None
    catalog_year: Optional[int] = None
    poster_path: Optional[str] = None
    match_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    episode_title: Optional[str] = None
    destination_id: Optional[int] = None
    destination_path: Optional[str] = None
    transfer_progress: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    transfer_error: Optional[str] = None


GROUP_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "scanned": frozenset({"matched", "ambiguous", "skipped"}),
    "matched": frozenset({"matched", "ambiguous", "confirmed", "skipped"}),
    "ambiguous": frozenset({"matched", "ambiguous", "confirmed", "skipped"}),
    "confirmed": frozenset({"transferring", "skipped"}),
    "transferring": frozenset({"transferring", "completed", "failed", "skipped"}),
    "completed": frozenset({"transferring", "skipped"}),
    "failed": frozenset({"transferring", "confirmed", "skipped"}),
    "skipped": frozenset({"scanned", "skipped"}),
}


def can_transition(current: str, target: str) -> bool:
    return target in GROUP_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
