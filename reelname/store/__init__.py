"""Persistence for groups, files, match candidates and destinations."""

from pathlib import Path

from .memory import MemoryStore
from .protocols import Store
from .sqlite import SqliteStore


def open_store(path: Path | str) -> Store:
    """SQLite store at ``path``; ``:memory:`` keeps everything in process."""
    return SqliteStore(path)


__all__ = [
    "MemoryStore",
    "SqliteStore",
    "Store",
    "open_store",
]
