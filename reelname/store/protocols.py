"""Protocol definition for the persistence store."""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

from reelname.models import Destination, FileUpdate, Group, GroupUpdate, MatchCandidate, MediaFile


class Store(Protocol):
    """
    CRUD and query access over groups, files, candidates and destinations.

    Reads return detached copies. ``update_*`` writes only the fields the
    update explicitly sets and raises ``EntityNotFoundError`` for missing rows.
    Deleting a group removes its files and candidates; deleting a destination
    clears references to it.
    """

    # groups
    def get_group(self, group_id: int) -> Optional[Group]:
        ...

    def find_group_by_folder_path(self, folder_path: str) -> Optional[Group]:
        ...

    def list_groups(self, status: Optional[str] = None) -> List[Group]:
        ...

    def add_group(self, group: Group) -> Group:
        ...

    def update_group(self, group_id: int, update: GroupUpdate) -> Group:
        ...

    def delete_group(self, group_id: int) -> None:
        ...

    # files
    def get_file(self, file_id: int) -> Optional[MediaFile]:
        ...

    def find_file_by_source_path(self, source_path: str) -> Optional[MediaFile]:
        ...

    def list_files(self, group_id: Optional[int] = None, status: Optional[str] = None) -> List[MediaFile]:
        ...

    def add_file(self, media_file: MediaFile) -> MediaFile:
        ...

    def update_file(self, file_id: int, update: FileUpdate) -> MediaFile:
        ...

    def update_group_files(self, group_id: int, update: FileUpdate) -> int:
        ...

    # candidates
    def replace_candidates(self, group_id: int, candidates: Sequence[MatchCandidate]) -> List[MatchCandidate]:
        ...

    def list_candidates(self, group_id: int) -> List[MatchCandidate]:
        ...

    # destinations
    def add_destination(self, destination: Destination) -> Destination:
        ...

    def get_destination(self, destination_id: int) -> Optional[Destination]:
        ...

    def list_destinations(self) -> List[Destination]:
        ...

    def delete_destination(self, destination_id: int) -> None:
        ...

    def close(self) -> None:
        ...
