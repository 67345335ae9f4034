"""Resumable local file copy with chunked progress."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import BinaryIO, Optional, Tuple

from reelname.errors import TransferIOError
from reelname.transfer.protocols import ProgressCallback

DEFAULT_CHUNK_SIZE = 1024 * 1024


def _size_or_none(path: Path) -> Optional[int]:
    try:
        return path.stat().st_size
    except FileNotFoundError:
        return None


def _open_pair(source: Path, destination: Path, offset: int, mode: str) -> Tuple[BinaryIO, BinaryIO]:
    reader = open(source, "rb")
    try:
        reader.seek(offset)
        writer = open(destination, mode)
    except BaseException:
        reader.close()
        raise
    return reader, writer


def _copy_chunk(reader: BinaryIO, writer: BinaryIO, chunk_size: int) -> int:
    data = reader.read(chunk_size)
    if data:
        writer.write(data)
    return len(data)


def _close_pair(reader: BinaryIO, writer: BinaryIO) -> None:
    try:
        writer.close()
    finally:
        reader.close()


def resume_plan(existing_size: Optional[int], total: int) -> Optional[Tuple[int, str]]:
    """
    Where to start writing given a partial destination.

    Returns None when the destination already holds the whole file, otherwise
    ``(offset, mode)``: append from a shorter partial, or rewrite from zero.
    """
    if existing_size is not None and existing_size == total:
        return None
    if existing_size is not None and existing_size < total:
        return existing_size, "ab"
    return 0, "wb"


async def copy_local(
    source: Path,
    destination: Path,
    on_progress: ProgressCallback,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """Copy ``source`` to ``destination``, resuming a shorter partial. Returns the destination path."""
    try:
        await asyncio.to_thread(destination.parent.mkdir, parents=True, exist_ok=True)
        total = (await asyncio.to_thread(source.stat)).st_size
        existing = await asyncio.to_thread(_size_or_none, destination)
    except OSError as exc:
        raise TransferIOError(f"Cannot prepare copy of {source}: {exc}") from exc

    plan = resume_plan(existing, total)
    if plan is None:
        on_progress(1.0)
        return str(destination)
    offset, mode = plan

    written = offset
    try:
        reader, writer = await asyncio.to_thread(_open_pair, source, destination, offset, mode)
        try:
            while written < total:
                copied = await asyncio.to_thread(_copy_chunk, reader, writer, chunk_size)
                if copied == 0:
                    break
                written += copied
                on_progress(written / total)
        finally:
            await asyncio.to_thread(_close_pair, reader, writer)
    except OSError as exc:
        raise TransferIOError(f"Copy of {source} failed at byte {written}: {exc}") from exc

    if written != total:
        raise TransferIOError(f"Source {source} ended at byte {written} of {total}")
    if total == 0:
        on_progress(1.0)
    return str(destination)
