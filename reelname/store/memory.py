"""In-memory store used by tests and one-shot runs."""

from __future__ import annotations

import dataclasses
import itertools
import threading
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, TypeVar

from reelname.errors import EntityNotFoundError
from reelname.models import (
    Destination,
    FileUpdate,
    Group,
    GroupUpdate,
    MatchCandidate,
    MediaFile,
    utc_now_iso,
)
from reelname.store.protocols import Store

_T = TypeVar("_T")


class MemoryStore(Store):
    """Dict-backed store with one lock per row."""

    def __init__(self) -> None:
        self._groups: Dict[int, Group] = {}
        self._files: Dict[int, MediaFile] = {}
        self._candidates: Dict[int, MatchCandidate] = {}
        self._destinations: Dict[int, Destination] = {}
        self._ids = {
            "group": itertools.count(1),
            "file": itertools.count(1),
            "candidate": itertools.count(1),
            "destination": itertools.count(1),
        }
        self._row_locks: Dict[Tuple[str, int], threading.Lock] = {}
        self._table_lock = threading.Lock()

    def _row_lock(self, kind: str, row_id: int) -> threading.Lock:
        with self._table_lock:
            lock = self._row_locks.get((kind, row_id))
            if lock is None:
                lock = threading.Lock()
                self._row_locks[(kind, row_id)] = lock
            return lock

    def _insert(self, kind: str, table: Dict[int, _T], row: _T) -> _T:
        with self._table_lock:
            stored = dataclasses.replace(row, id=next(self._ids[kind]))
            table[stored.id] = stored
        return dataclasses.replace(stored)

    @staticmethod
    def _copies(rows: Iterator[_T]) -> List[_T]:
        return [dataclasses.replace(row) for row in rows]

    # groups

    def get_group(self, group_id: int) -> Optional[Group]:
        group = self._groups.get(group_id)
        return dataclasses.replace(group) if group else None

    def find_group_by_folder_path(self, folder_path: str) -> Optional[Group]:
        for group in self._groups.values():
            if group.folder_path == folder_path:
                return dataclasses.replace(group)
        return None

    def list_groups(self, status: Optional[str] = None) -> List[Group]:
        rows = sorted(self._groups.values(), key=lambda g: g.id)
        return self._copies(g for g in rows if status is None or g.status == status)

    def add_group(self, group: Group) -> Group:
        return self._insert("group", self._groups, group)

    def update_group(self, group_id: int, update: GroupUpdate) -> Group:
        with self._row_lock("group", group_id):
            current = self._groups.get(group_id)
            if current is None:
                raise EntityNotFoundError("Group", group_id)
            updated = dataclasses.replace(current, **update.changes(), updated_at=utc_now_iso())
            self._groups[group_id] = updated
        return dataclasses.replace(updated)

    def delete_group(self, group_id: int) -> None:
        with self._table_lock:
            self._groups.pop(group_id, None)
            for file_id in [f.id for f in self._files.values() if f.group_id == group_id]:
                del self._files[file_id]
            for candidate_id in [c.id for c in self._candidates.values() if c.group_id == group_id]:
                del self._candidates[candidate_id]

    # files

    def get_file(self, file_id: int) -> Optional[MediaFile]:
        media_file = self._files.get(file_id)
        return dataclasses.replace(media_file) if media_file else None

    def find_file_by_source_path(self, source_path: str) -> Optional[MediaFile]:
        for media_file in self._files.values():
            if media_file.source_path == source_path:
                return dataclasses.replace(media_file)
        return None

    def list_files(self, group_id: Optional[int] = None, status: Optional[str] = None) -> List[MediaFile]:
        rows = sorted(self._files.values(), key=lambda f: f.id)
        return self._copies(
            f
            for f in rows
            if (group_id is None or f.group_id == group_id) and (status is None or f.status == status)
        )

    def add_file(self, media_file: MediaFile) -> MediaFile:
        return self._insert("file", self._files, media_file)

    def update_file(self, file_id: int, update: FileUpdate) -> MediaFile:
        with self._row_lock("file", file_id):
            current = self._files.get(file_id)
            if current is None:
                raise EntityNotFoundError("File", file_id)
            updated = dataclasses.replace(current, **update.changes(), updated_at=utc_now_iso())
            self._files[file_id] = updated
        return dataclasses.replace(updated)

    def update_group_files(self, group_id: int, update: FileUpdate) -> int:
        file_ids = [f.id for f in self._files.values() if f.group_id == group_id]
        for file_id in file_ids:
            self.update_file(file_id, update)
        return len(file_ids)

    # candidates

    def replace_candidates(self, group_id: int, candidates: Sequence[MatchCandidate]) -> List[MatchCandidate]:
        with self._row_lock("candidates", group_id):
            with self._table_lock:
                for candidate_id in [c.id for c in self._candidates.values() if c.group_id == group_id]:
                    del self._candidates[candidate_id]
            stored = [
                self._insert(
                    "candidate",
                    self._candidates,
                    dataclasses.replace(candidate, group_id=group_id, rank=rank),
                )
                for rank, candidate in enumerate(candidates)
            ]
        return stored

    def list_candidates(self, group_id: int) -> List[MatchCandidate]:
        rows = sorted(
            (c for c in self._candidates.values() if c.group_id == group_id),
            key=lambda c: (c.rank, c.id),
        )
        return self._copies(iter(rows))

    # destinations

    def add_destination(self, destination: Destination) -> Destination:
        return self._insert("destination", self._destinations, destination)

    def get_destination(self, destination_id: int) -> Optional[Destination]:
        destination = self._destinations.get(destination_id)
        return dataclasses.replace(destination) if destination else None

    def list_destinations(self) -> List[Destination]:
        return self._copies(iter(sorted(self._destinations.values(), key=lambda d: d.id)))

    def delete_destination(self, destination_id: int) -> None:
        with self._table_lock:
            self._destinations.pop(destination_id, None)
            for group_id, group in list(self._groups.items()):
                if group.destination_id == destination_id:
                    self._groups[group_id] = dataclasses.replace(group, destination_id=None)
            for file_id, media_file in list(self._files.items()):
                if media_file.destination_id == destination_id:
                    self._files[file_id] = dataclasses.replace(media_file, destination_id=None)

    def close(self) -> None:
        return None
