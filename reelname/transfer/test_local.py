from __future__ import annotations

import pytest

from reelname.errors import TransferIOError
from reelname.transfer import local
from reelname.transfer.local import copy_local, resume_plan


def test_resume_plan_rules() -> None:
    assert resume_plan(None, 100) == (0, "wb")
    assert resume_plan(40, 100) == (40, "ab")
    assert resume_plan(100, 100) is None
    assert resume_plan(150, 100) == (0, "wb")


@pytest.mark.asyncio
async def test_copy_creates_parents_and_reports_progress(tmp_path) -> None:
    source = tmp_path / "src" / "movie.mkv"
    source.parent.mkdir()
    source.write_bytes(b"x" * 10)
    target = tmp_path / "dest" / "Movie (2020)" / "Movie (2020).mkv"
    progress: list[float] = []

    result = await copy_local(source, target, progress.append, chunk_size=4)

    assert result == str(target)
    assert target.read_bytes() == source.read_bytes()
    assert progress == [0.4, 0.8, 1.0]


@pytest.mark.asyncio
async def test_copy_resumes_shorter_partial(tmp_path) -> None:
    source = tmp_path / "movie.mkv"
    source.write_bytes(b"abcdefghij")
    target = tmp_path / "out.mkv"
    target.write_bytes(b"abcd")
    progress: list[float] = []

    await copy_local(source, target, progress.append, chunk_size=3)

    assert target.read_bytes() == b"abcdefghij"
    assert progress[0] == pytest.approx(0.7)
    assert progress[-1] == 1.0
    assert all(0.4 < p <= 1.0 for p in progress)


@pytest.mark.asyncio
async def test_complete_destination_is_not_rewritten(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = tmp_path / "movie.mkv"
    source.write_bytes(b"abcdefghij")
    target = tmp_path / "out.mkv"
    target.write_bytes(b"abcdefghij")

    def _no_open(*_args):
        raise AssertionError("source must not be read")

    monkeypatch.setattr(local, "_open_pair", _no_open)
    progress: list[float] = []

    await copy_local(source, target, progress.append)

    assert progress == [1.0]


@pytest.mark.asyncio
async def test_larger_destination_is_overwritten(tmp_path) -> None:
    source = tmp_path / "movie.mkv"
    source.write_bytes(b"new")
    target = tmp_path / "out.mkv"
    target.write_bytes(b"old and much longer")

    await copy_local(source, target, lambda _p: None)

    assert target.read_bytes() == b"new"


@pytest.mark.asyncio
async def test_empty_source_reports_completion(tmp_path) -> None:
    source = tmp_path / "empty.mkv"
    source.write_bytes(b"")
    target = tmp_path / "out" / "empty.mkv"
    progress: list[float] = []

    await copy_local(source, target, progress.append)

    assert target.exists()
    assert target.read_bytes() == b""
    assert progress == [1.0]


@pytest.mark.asyncio
async def test_missing_source_raises_transfer_io_error(tmp_path) -> None:
    with pytest.raises(TransferIOError, match="missing.mkv"):
        await copy_local(tmp_path / "missing.mkv", tmp_path / "out.mkv", lambda _p: None)


@pytest.mark.asyncio
async def test_write_failure_raises_transfer_io_error(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = tmp_path / "movie.mkv"
    source.write_bytes(b"x" * 10)

    def _broken_chunk(*_args):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(local, "_copy_chunk", _broken_chunk)

    with pytest.raises(TransferIOError, match="No space left"):
        await copy_local(source, tmp_path / "out.mkv", lambda _p: None)
