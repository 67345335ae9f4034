"""Ingest scanner output into the store, keyed by folder and source path."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath, PureWindowsPath
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from reelname import logger
from reelname.models import (
    ExtraType,
    FileCategory,
    FileUpdate,
    Group,
    GroupUpdate,
    MediaFile,
    MediaType,
)
from reelname.store.protocols import Store


class _ScanModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScannedFile(_ScanModel):
    source_path: str
    file_name: str
    file_size: int = Field(ge=0)
    file_extension: str
    file_category: FileCategory = "episode"
    extra_type: Optional[ExtraType] = None
    detected_season: Optional[int] = None
    title: Optional[str] = None
    year: Optional[int] = None
    season: Optional[int] = None
    episode: Optional[int] = None
    quality: Optional[str] = None
    codec: Optional[str] = None


class ScannedFolder(_ScanModel):
    folder_path: str
    folder_name: str
    media_type: Optional[MediaType] = None
    parsed_title: Optional[str] = None
    parsed_year: Optional[int] = None
    files: List[ScannedFile] = Field(default_factory=list)

    @field_validator("folder_path")
    @classmethod
    def _require_absolute(cls, value: str) -> str:
        if not (PurePosixPath(value).is_absolute() or PureWindowsPath(value).is_absolute()):
            raise ValueError(f"folder path must be absolute: {value!r}")
        return value

    def inferred_media_type(self) -> MediaType:
        """Scanner hint, else all-movie folders are movies and any episode or special makes tv."""
        if self.media_type:
            return self.media_type
        categories = {f.file_category for f in self.files}
        if categories and categories == {"movie"}:
            return "movie"
        if categories & {"episode", "special"}:
            return "tv"
        return "unknown"


@dataclass
class IngestSummary:
    groups_created: int = 0
    groups_updated: int = 0
    files_created: int = 0
    files_relinked: int = 0


ScanInput = Union[ScannedFolder, Mapping[str, Any]]


def _parsed_fields(scanned: ScannedFile) -> dict:
    return {
        "parsed_title": scanned.title,
        "parsed_year": scanned.year,
        "parsed_season": scanned.detected_season if scanned.detected_season is not None else scanned.season,
        "parsed_episode": scanned.episode,
        "parsed_quality": scanned.quality,
        "parsed_codec": scanned.codec,
    }


def ingest_scan(store: Store, folders: Iterable[ScanInput]) -> IngestSummary:
    """
    Attach scanned folders and files to the store.

    The whole scan is validated before anything is written. Files already
    known by source path are re-linked to their folder's group with catalog
    fields cleared, so a later match run fills them again.
    """
    validated = [
        folder if isinstance(folder, ScannedFolder) else ScannedFolder.model_validate(folder)
        for folder in folders
    ]
    summary = IngestSummary()

    for folder in validated:
        media_type = folder.inferred_media_type()
        group = store.find_group_by_folder_path(folder.folder_path)
        if group is None:
            group = store.add_group(
                Group(
                    folder_path=folder.folder_path,
                    folder_name=folder.folder_name,
                    media_type=media_type,
                    parsed_title=folder.parsed_title,
                    parsed_year=folder.parsed_year,
                )
            )
            summary.groups_created += 1
        else:
            summary.groups_updated += 1

        for scanned in folder.files:
            existing = store.find_file_by_source_path(scanned.source_path)
            if existing is None:
                store.add_file(
                    MediaFile(
                        source_path=scanned.source_path,
                        file_name=scanned.file_name,
                        file_size=scanned.file_size,
                        file_extension=scanned.file_extension,
                        group_id=group.id,
                        media_type=media_type,
                        file_category=scanned.file_category,
                        extra_type=scanned.extra_type,
                        **_parsed_fields(scanned),
                    )
                )
                summary.files_created += 1
            elif existing.group_id != group.id:
                store.update_file(
                    existing.id,
                    FileUpdate(
                        group_id=group.id,
                        status="scanned",
                        media_type=media_type,
                        file_category=scanned.file_category,
                        extra_type=scanned.extra_type,
                        file_name=scanned.file_name,
                        file_size=scanned.file_size,
                        file_extension=scanned.file_extension,
                        catalog_id=None,
                        catalog_title=None,
                        catalog_year=None,
                        poster_path=None,
                        match_confidence=None,
                        episode_title=None,
                        **_parsed_fields(scanned),
                    ),
                )
                summary.files_relinked += 1

        children = store.list_files(group_id=group.id)
        store.update_group(
            group.id,
            GroupUpdate(
                total_file_count=len(children),
                total_file_size=sum(child.file_size for child in children),
            ),
        )

    logger.get_logger().info(
        f"Ingested {len(validated)} folder(s): {summary.groups_created} new group(s), "
        f"{summary.files_created} new file(s), {summary.files_relinked} re-linked"
    )
    return summary
