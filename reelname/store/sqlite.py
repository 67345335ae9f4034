"""SQLite-backed store."""

from __future__ import annotations

import dataclasses
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

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

SCHEMA = """
CREATE TABLE IF NOT EXISTS destinations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT 'local' CHECK (type IN ('local', 'ssh')),
    base_path TEXT NOT NULL,
    ssh_host TEXT,
    ssh_port INTEGER NOT NULL DEFAULT 22,
    ssh_user TEXT,
    ssh_key_path TEXT,
    ssh_key_passphrase TEXT,
    movie_template TEXT,
    tv_template TEXT
);

CREATE TABLE IF NOT EXISTS groups (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    status TEXT NOT NULL DEFAULT 'scanned',
    media_type TEXT NOT NULL DEFAULT 'unknown',
    folder_path TEXT NOT NULL UNIQUE,
    folder_name TEXT NOT NULL,
    total_file_count INTEGER NOT NULL DEFAULT 0,
    total_file_size INTEGER NOT NULL DEFAULT 0,
    parsed_title TEXT,
    parsed_year INTEGER,
    catalog_id INTEGER,
    catalog_title TEXT,
    catalog_year INTEGER,
    poster_path TEXT,
    match_confidence REAL,
    destination_id INTEGER REFERENCES destinations(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    group_id INTEGER REFERENCES groups(id) ON DELETE CASCADE,
    status TEXT NOT NULL DEFAULT 'scanned',
    media_type TEXT NOT NULL DEFAULT 'unknown',
    file_category TEXT NOT NULL DEFAULT 'episode',
    extra_type TEXT,
    source_path TEXT NOT NULL UNIQUE,
    file_name TEXT NOT NULL,
    file_size INTEGER NOT NULL,
    file_extension TEXT NOT NULL,
    parsed_title TEXT,
    parsed_year INTEGER,
    parsed_season INTEGER,
    parsed_episode INTEGER,
    parsed_quality TEXT,
    parsed_codec TEXT,
    catalog_id INTEGER,
    catalog_title TEXT,
    catalog_year INTEGER,
    poster_path TEXT,
    match_confidence REAL,
    episode_title TEXT,
    destination_id INTEGER REFERENCES destinations(id) ON DELETE SET NULL,
    destination_path TEXT,
    transfer_progress REAL,
    transfer_error TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS match_candidates (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    group_id INTEGER REFERENCES groups(id) ON DELETE CASCADE,
    file_id INTEGER REFERENCES files(id) ON DELETE CASCADE,
    catalog_id INTEGER NOT NULL,
    media_type TEXT NOT NULL CHECK (media_type IN ('movie', 'tv')),
    title TEXT NOT NULL,
    year INTEGER,
    poster_path TEXT,
    overview TEXT,
    confidence REAL NOT NULL,
    rank INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_groups_status ON groups(status);
CREATE INDEX IF NOT EXISTS idx_files_group ON files(group_id);
CREATE INDEX IF NOT EXISTS idx_candidates_group ON match_candidates(group_id);
"""


def _columns(model: Type[Any]) -> List[str]:
    return [f.name for f in dataclasses.fields(model) if f.name != "id"]


class SqliteStore(Store):
    """
    Store over a single SQLite file (or ``:memory:``).

    Partial updates issue one ``UPDATE ... SET <given columns> WHERE id=?``,
    so concurrent writers to different columns of a row never overwrite each
    other's fields.
    """

    def __init__(self, db_path: Path | str = ":memory:") -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, isolation_level=None, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys=ON")
        if self.db_path != ":memory:":
            self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.executescript(SCHEMA)

    def _insert(self, table: str, row: _T) -> _T:
        columns = _columns(type(row))
        values = [getattr(row, name) for name in columns]
        placeholders = ", ".join("?" for _ in columns)
        cursor = self.conn.execute(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
            values,
        )
        return dataclasses.replace(row, id=cursor.lastrowid)

    def _select(self, model: Type[_T], table: str, where: str = "", params: Sequence[Any] = (), order: str = "id") -> List[_T]:
        sql = f"SELECT * FROM {table}"
        if where:
            sql += f" WHERE {where}"
        sql += f" ORDER BY {order}"
        rows = self.conn.execute(sql, list(params)).fetchall()
        names = {f.name for f in dataclasses.fields(model)}
        return [model(**{key: row[key] for key in row.keys() if key in names}) for row in rows]

    def _select_one(self, model: Type[_T], table: str, where: str, params: Sequence[Any]) -> Optional[_T]:
        rows = self._select(model, table, where, params)
        return rows[0] if rows else None

    def _update(self, table: str, kind: str, row_id: int, changes: Dict[str, Any]) -> None:
        changes = {**changes, "updated_at": utc_now_iso()}
        assignments = ", ".join(f"{name} = ?" for name in changes)
        cursor = self.conn.execute(
            f"UPDATE {table} SET {assignments} WHERE id = ?",
            [*changes.values(), row_id],
        )
        if cursor.rowcount == 0:
            raise EntityNotFoundError(kind, row_id)

    # groups

    def get_group(self, group_id: int) -> Optional[Group]:
        return self._select_one(Group, "groups", "id = ?", [group_id])

    def find_group_by_folder_path(self, folder_path: str) -> Optional[Group]:
        return self._select_one(Group, "groups", "folder_path = ?", [folder_path])

    def list_groups(self, status: Optional[str] = None) -> List[Group]:
        if status is None:
            return self._select(Group, "groups")
        return self._select(Group, "groups", "status = ?", [status])

    def add_group(self, group: Group) -> Group:
        return self._insert("groups", group)

    def update_group(self, group_id: int, update: GroupUpdate) -> Group:
        self._update("groups", "Group", group_id, update.changes())
        group = self.get_group(group_id)
        if group is None:
            raise EntityNotFoundError("Group", group_id)
        return group

    def delete_group(self, group_id: int) -> None:
        self.conn.execute("DELETE FROM groups WHERE id = ?", [group_id])

    # files

    def get_file(self, file_id: int) -> Optional[MediaFile]:
        return self._select_one(MediaFile, "files", "id = ?", [file_id])

    def find_file_by_source_path(self, source_path: str) -> Optional[MediaFile]:
        return self._select_one(MediaFile, "files", "source_path = ?", [source_path])

    def list_files(self, group_id: Optional[int] = None, status: Optional[str] = None) -> List[MediaFile]:
        clauses: List[str] = []
        params: List[Any] = []
        if group_id is not None:
            clauses.append("group_id = ?")
            params.append(group_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        return self._select(MediaFile, "files", " AND ".join(clauses), params)

    def add_file(self, media_file: MediaFile) -> MediaFile:
        return self._insert("files", media_file)

    def update_file(self, file_id: int, update: FileUpdate) -> MediaFile:
        self._update("files", "File", file_id, update.changes())
        media_file = self.get_file(file_id)
        if media_file is None:
            raise EntityNotFoundError("File", file_id)
        return media_file

    def update_group_files(self, group_id: int, update: FileUpdate) -> int:
        changes = {**update.changes(), "updated_at": utc_now_iso()}
        assignments = ", ".join(f"{name} = ?" for name in changes)
        cursor = self.conn.execute(
            f"UPDATE files SET {assignments} WHERE group_id = ?",
            [*changes.values(), group_id],
        )
        return cursor.rowcount

    # candidates

    def replace_candidates(self, group_id: int, candidates: Sequence[MatchCandidate]) -> List[MatchCandidate]:
        stored: List[MatchCandidate] = []
        with self.conn:
            self.conn.execute("BEGIN")
            self.conn.execute("DELETE FROM match_candidates WHERE group_id = ?", [group_id])
            for rank, candidate in enumerate(candidates):
                row = dataclasses.replace(candidate, group_id=group_id, rank=rank)
                stored.append(self._insert("match_candidates", row))
        return stored

    def list_candidates(self, group_id: int) -> List[MatchCandidate]:
        return self._select(MatchCandidate, "match_candidates", "group_id = ?", [group_id], order="rank, id")

    # destinations

    def add_destination(self, destination: Destination) -> Destination:
        return self._insert("destinations", destination)

    def get_destination(self, destination_id: int) -> Optional[Destination]:
        return self._select_one(Destination, "destinations", "id = ?", [destination_id])

    def list_destinations(self) -> List[Destination]:
        return self._select(Destination, "destinations")

    def delete_destination(self, destination_id: int) -> None:
        self.conn.execute("DELETE FROM destinations WHERE id = ?", [destination_id])

    def close(self) -> None:
        self.conn.close()
