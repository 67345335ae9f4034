from __future__ import annotations

import json
from pathlib import Path

import pytest

from reelname import cli
from reelname import logger
from reelname.models import Destination, Group, MediaFile
from reelname.store import SqliteStore


@pytest.fixture
def workspace(tmp_path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("TMDB_API_KEY", raising=False)
    monkeypatch.setattr(logger, "_logger", None)
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        '[store]\npath = "reelname.db"\n\n[transfer]\nmax_concurrent_transfers = 1\n',
        encoding="utf-8",
    )
    return tmp_path


@pytest.fixture
def printed(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    lines: list[str] = []
    monkeypatch.setattr(cli.console, "print", lambda msg="", *_args, **_kwargs: lines.append(str(msg)))
    return lines


def _run(workspace: Path, *argv: str) -> int:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["-c", str(workspace), *argv])
    return exc_info.value.code


def test_ui_info_warn_error_emit_prefixed_messages(printed) -> None:
    cli._ui_info("hello")
    cli._ui_warn("careful")
    cli._ui_error("boom")

    assert printed == [
        "[cyan][INFO][/cyan] hello",
        "[yellow][WARNING][/yellow] careful",
        "[red][ERROR][/red] boom",
    ]


@pytest.mark.parametrize(
    ("size", "expected"),
    [(512, "512 B"), (2048, "2.0 KB"), (5 * 1024 ** 3, "5.0 GB"), (3 * 1024 ** 4, "3.0 TB")],
)
def test_format_size(size: int, expected: str) -> None:
    assert cli._format_size(size) == expected


def test_missing_config_exits_with_error(tmp_path, printed, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logger, "_logger", None)

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["-c", str(tmp_path / "nope.toml"), "status"])

    assert exc_info.value.code == 1
    assert printed[0].startswith("[red][ERROR][/red] Configuration file not found")


def test_subcommand_is_required(capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.build_parser().parse_args([])

    assert exc_info.value.code == 2


def test_transfer_requires_group_or_file() -> None:
    parser = cli.build_parser()

    with pytest.raises(SystemExit):
        parser.parse_args(["transfer", "--destination", "1"])
    args = parser.parse_args(["transfer", "--destination", "1", "--group", "3", "4"])
    assert args.group == [3, 4]


def test_ingest_then_status(workspace, printed) -> None:
    scan = workspace / "scan.json"
    scan.write_text(
        json.dumps(
            {
                "folders": [
                    {
                        "folderPath": "/media/Show.Name.2020",
                        "folderName": "Show.Name.2020",
                        "parsedTitle": "Show Name",
                        "parsedYear": 2020,
                        "files": [
                            {
                                "sourcePath": "/media/Show.Name.2020/Show.Name.S01E01.mkv",
                                "fileName": "Show.Name.S01E01.mkv",
                                "fileSize": 2048,
                                "fileExtension": "mkv",
                                "season": 1,
                                "episode": 1,
                            }
                        ],
                    }
                ]
            }
        ),
        encoding="utf-8",
    )

    assert _run(workspace, "ingest", str(scan)) == 0
    assert any("files: 1 new" in line for line in printed)

    store = SqliteStore(workspace / "reelname.db")
    try:
        groups = store.list_groups()
        assert [g.folder_name for g in groups] == ["Show.Name.2020"]
        assert groups[0].total_file_size == 2048
    finally:
        store.close()

    assert _run(workspace, "status") == 0


def test_ingest_rejects_relative_folder(workspace, printed) -> None:
    scan = workspace / "scan.json"
    scan.write_text(json.dumps([{"folderPath": "relative/dir", "folderName": "dir"}]), encoding="utf-8")

    assert _run(workspace, "ingest", str(scan)) == 1
    assert any("must be absolute" in line for line in printed)


def test_match_without_api_key_fails(workspace, printed) -> None:
    assert _run(workspace, "match") == 1
    assert any("TMDB API key is not configured" in line for line in printed)


def test_add_and_list_destinations(workspace, printed) -> None:
    assert _run(workspace, "add-destination", "Library", str(workspace / "library")) == 0
    assert _run(workspace, "add-destination", "NAS", "/srv/media", "--ssh-host", "nas.local", "--ssh-user", "media") == 0

    store = SqliteStore(workspace / "reelname.db")
    try:
        destinations = store.list_destinations()
    finally:
        store.close()
    assert [(d.name, d.type) for d in destinations] == [("Library", "local"), ("NAS", "ssh")]
    assert destinations[1].ssh_host == "nas.local"

    assert _run(workspace, "destinations") == 0
    assert _run(workspace, "verify-destination", str(destinations[0].id)) == 1
    (workspace / "library").mkdir()
    assert _run(workspace, "verify-destination", str(destinations[0].id)) == 0
    assert _run(workspace, "remove-destination", str(destinations[0].id)) == 0


def test_confirm_reports_partial_failure(workspace, printed) -> None:
    store = SqliteStore(workspace / "reelname.db")
    matched = store.add_group(Group(folder_path="/media/A", folder_name="A", status="matched"))
    scanned = store.add_group(Group(folder_path="/media/B", folder_name="B"))
    store.close()

    assert _run(workspace, "confirm", str(matched.id), str(scanned.id)) == 1

    store = SqliteStore(workspace / "reelname.db")
    try:
        assert store.get_group(matched.id).status == "confirmed"
        assert store.get_group(scanned.id).status == "scanned"
    finally:
        store.close()


def test_transfer_copies_confirmed_group(workspace, printed) -> None:
    source = workspace / "incoming" / "Movie.2019.mkv"
    source.parent.mkdir()
    source.write_bytes(b"frames" * 1000)
    library = workspace / "library"
    library.mkdir()

    store = SqliteStore(workspace / "reelname.db")
    group = store.add_group(
        Group(
            folder_path=str(source.parent),
            folder_name="incoming",
            status="confirmed",
            media_type="movie",
            catalog_id=42,
            catalog_title="Movie",
            catalog_year=2019,
        )
    )
    store.add_file(
        MediaFile(
            source_path=str(source),
            file_name=source.name,
            file_size=source.stat().st_size,
            file_extension="mkv",
            group_id=group.id,
            status="confirmed",
            media_type="movie",
            file_category="movie",
        )
    )
    destination = store.add_destination(Destination(name="Library", base_path=str(library)))
    store.close()

    code = _run(workspace, "transfer", "--destination", str(destination.id), "--group", str(group.id))

    assert code == 0
    target = library / "Movie (2019)" / "Movie (2019).mkv"
    assert target.read_bytes() == source.read_bytes()
    assert any("1 completed, 0 failed" in line for line in printed)
    store = SqliteStore(workspace / "reelname.db")
    try:
        assert store.get_group(group.id).status == "completed"
    finally:
        store.close()


def test_transfer_without_confirmed_files_fails(workspace, printed) -> None:
    store = SqliteStore(workspace / "reelname.db")
    group = store.add_group(Group(folder_path="/media/A", folder_name="A"))
    destination = store.add_destination(Destination(name="Library", base_path=str(workspace)))
    store.close()

    assert _run(workspace, "transfer", "--destination", str(destination.id), "--group", str(group.id)) == 1
    assert any("No confirmed files" in line for line in printed)
