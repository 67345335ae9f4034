#!/usr/bin/env python3
"""
cli.py - Entry point for REELNAME
Match scanned media folders against TMDB and move confirmed files into a library.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TextColumn
from rich.table import Table

import reelname as pkg
from . import logger
from .catalog import TmdbClient
from .config import ReelNameConfig, load_config
from .destinations import create_destination, delete_destination, verify_destination
from .errors import ReelNameError
from .ingest import ingest_scan
from .matching import ConfidenceMatcher
from .review import ReviewService
from .store import Store, open_store
from .transfer import TransferScheduler

console = Console()

_STATUS_STYLES = {
    "matched": "green",
    "confirmed": "green",
    "completed": "green",
    "ambiguous": "yellow",
    "transferring": "cyan",
    "failed": "red",
    "skipped": "dim",
}


def _ui_info(message: str) -> None:
    console.print(f"[cyan][INFO][/cyan] {message}")


def _ui_warn(message: str) -> None:
    console.print(f"[yellow][WARNING][/yellow] {message}")


def _ui_error(message: str) -> None:
    console.print(f"[red][ERROR][/red] {message}")


def _styled_status(status: str) -> str:
    style = _STATUS_STYLES.get(status)
    return f"[{style}]{status}[/{style}]" if style else status


def _format_confidence(confidence: Optional[float]) -> str:
    return "-" if confidence is None else f"{confidence:.3f}"


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TB"


class RichTransferObserver:
    """Renders one progress bar per file while the scheduler runs."""

    def __init__(self, progress: Progress):
        self.progress = progress
        self._tasks: Dict[int, TaskID] = {}
        self._labels: Dict[int, str] = {}
        self.failures: Dict[int, str] = {}

    def track(self, file_id: int, label: str) -> None:
        self._labels[file_id] = label
        self._tasks[file_id] = self.progress.add_task(label, total=1.0)

    def on_progress(self, file_id: int, progress: float) -> None:
        task_id = self._tasks.get(file_id)
        if task_id is not None:
            self.progress.update(task_id, completed=progress)

    def on_finished(self, file_id: int, status: str, error: Optional[str]) -> None:
        task_id = self._tasks.get(file_id)
        if status != "completed":
            self.failures[file_id] = error or status
        if task_id is not None:
            description = self._labels[file_id]
            suffix = "[green]done[/green]" if status == "completed" else "[red]failed[/red]"
            self.progress.update(task_id, description=f"{description} {suffix}")


def resolve_config_path(args_config: Optional[str]) -> Path:
    if args_config:
        p = Path(args_config).expanduser()
        if p.is_dir():
            p = p / "config.toml"
        return p
    return Path.cwd() / "config.toml"


def _read_scan(path: Path) -> list:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ReelNameError(f"Cannot read scan file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ReelNameError(f"Scan file {path} is not valid JSON: {e}") from e
    if isinstance(data, dict):
        data = data.get("folders", [])
    if not isinstance(data, list):
        raise ReelNameError(f"Scan file {path} must hold a list of folders")
    return data


def cmd_ingest(store: Store, args) -> int:
    summary = ingest_scan(store, _read_scan(Path(args.scan_json).expanduser()))
    _ui_info(
        f"Groups: {summary.groups_created} new, {summary.groups_updated} updated; "
        f"files: {summary.files_created} new, {summary.files_relinked} re-linked"
    )
    return 0


async def cmd_match(store: Store, catalog: TmdbClient, config: ReelNameConfig, args) -> int:
    matcher = ConfidenceMatcher(store, catalog, threshold=config.matching.auto_match_threshold)
    if args.group:
        for group_id in args.group:
            await matcher.match_group(group_id)
        return 0
    summary = await matcher.match_all_groups()
    _ui_info(f"{summary.matched} matched, {summary.ambiguous} need review")
    return 0


async def cmd_candidates(store: Store, review: ReviewService, args) -> int:
    group = store.get_group(args.group_id)
    if group is None:
        _ui_error(f"Group {args.group_id} not found")
        return 1
    if args.search:
        candidates = await review.manual_search(group.id, args.search, media_type=args.type, year=args.year)
    else:
        candidates = store.list_candidates(group.id)

    table = Table(title=f"Candidates for #{group.id} {group.folder_name} ({group.status})")
    for column in ("Rank", "TMDB ID", "Type", "Title", "Year", "Confidence"):
        table.add_column(column)
    for candidate in candidates:
        table.add_row(
            str(candidate.rank),
            str(candidate.catalog_id),
            candidate.media_type,
            candidate.title,
            str(candidate.year or "-"),
            _format_confidence(candidate.confidence),
        )
    console.print(table)
    return 0


async def cmd_select(review: ReviewService, args) -> int:
    group = await review.select_candidate(args.group_id, args.catalog_id)
    _ui_info(f"Group #{group.id} matched to {group.catalog_title} ({group.catalog_year or 'n/a'})")
    return 0


def cmd_destinations(store: Store) -> int:
    table = Table(title="Destinations")
    for column in ("ID", "Name", "Type", "Target"):
        table.add_column(column)
    for destination in store.list_destinations():
        if destination.type == "ssh":
            user = f"{destination.ssh_user}@" if destination.ssh_user else ""
            target = f"{user}{destination.ssh_host}:{destination.ssh_port}{destination.base_path}"
        else:
            target = destination.base_path
        table.add_row(str(destination.id), destination.name, destination.type, target)
    console.print(table)
    return 0


def cmd_add_destination(store: Store, args) -> int:
    destination = create_destination(
        store,
        args.name,
        args.base_path,
        type="ssh" if args.ssh_host else "local",
        ssh_host=args.ssh_host,
        ssh_port=args.ssh_port,
        ssh_user=args.ssh_user,
        ssh_key_path=args.ssh_key,
        movie_template=args.movie_template,
        tv_template=args.tv_template,
    )
    _ui_info(f"Destination #{destination.id} '{destination.name}' saved")
    return 0


async def cmd_verify_destination(store: Store, config: ReelNameConfig, args) -> int:
    destination = store.get_destination(args.destination_id)
    if destination is None:
        _ui_error(f"Destination {args.destination_id} not found")
        return 1
    ok, message = await verify_destination(destination, config.transfer)
    if ok:
        _ui_info(f"✓ {message}")
        return 0
    _ui_error(message)
    return 1


async def cmd_transfer(store: Store, config: ReelNameConfig, args) -> int:
    if store.get_destination(args.destination) is None:
        _ui_error(f"Destination {args.destination} not found")
        return 1
    scheduler = TransferScheduler(store, config.transfer, config.naming)
    if args.file:
        file_ids = list(args.file)
    else:
        file_ids = [
            media_file.id
            for group_id in args.group
            for media_file in store.list_files(group_id=group_id, status="confirmed")
        ]

    with Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>5.1f}%"),
        console=console,
    ) as progress:
        observer = RichTransferObserver(progress)
        scheduler.add_observer(observer)
        for file_id in file_ids:
            media_file = store.get_file(file_id)
            observer.track(file_id, media_file.file_name if media_file else f"file #{file_id}")
        if args.file:
            scheduler.queue_transfers(file_ids, args.destination)
        else:
            scheduler.queue_groups(args.group, args.destination)
        await scheduler.join()

    done = len(file_ids) - len(observer.failures)
    _ui_info(f"Transfers finished: {done} completed, {len(observer.failures)} failed")
    for file_id, message in observer.failures.items():
        _ui_warn(f"File #{file_id}: {message}")
    return 0 if not observer.failures else 1


def cmd_status(store: Store) -> int:
    table = Table(title="Groups")
    for column in ("ID", "Folder", "Type", "Status", "Match", "Confidence", "Files", "Size"):
        table.add_column(column)
    for group in store.list_groups():
        match = f"{group.catalog_title} ({group.catalog_year})" if group.catalog_title else "-"
        table.add_row(
            str(group.id),
            group.folder_name,
            group.media_type,
            _styled_status(group.status),
            match,
            _format_confidence(group.match_confidence),
            str(group.total_file_count),
            _format_size(group.total_file_size),
        )
    console.print(table)

    in_flight = [f for f in store.list_files() if f.status in ("transferring", "failed")]
    for media_file in in_flight:
        progress = media_file.transfer_progress or 0.0
        line = f"  File #{media_file.id} {media_file.file_name}: {_styled_status(media_file.status)} {progress:.0%}"
        if media_file.transfer_error:
            line += f" ({media_file.transfer_error})"
        console.print(line)
    return 0


async def run_command(args, config: ReelNameConfig) -> int:
    store = open_store(config.store.path)
    catalog = TmdbClient(config.catalog)
    try:
        review = ReviewService(store, catalog, threshold=config.matching.auto_match_threshold)
        if args.command == "ingest":
            return cmd_ingest(store, args)
        if args.command == "match":
            return await cmd_match(store, catalog, config, args)
        if args.command == "candidates":
            return await cmd_candidates(store, review, args)
        if args.command == "confirm":
            changed = review.confirm_groups(args.group_ids)
            return 0 if changed == len(args.group_ids) else 1
        if args.command == "skip":
            changed = review.skip_groups(args.group_ids)
            return 0 if changed == len(args.group_ids) else 1
        if args.command == "select":
            return await cmd_select(review, args)
        if args.command == "destinations":
            return cmd_destinations(store)
        if args.command == "add-destination":
            return cmd_add_destination(store, args)
        if args.command == "remove-destination":
            delete_destination(store, args.destination_id)
            return 0
        if args.command == "verify-destination":
            return await cmd_verify_destination(store, config, args)
        if args.command == "transfer":
            return await cmd_transfer(store, config, args)
        if args.command == "status":
            return cmd_status(store)
        raise ReelNameError(f"Unknown command: {args.command}")
    finally:
        await catalog.close()
        store.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reelname",
        description=f"REELNAME v{getattr(pkg, '__version__', '0.0.0')} - Match media folders against TMDB and transfer them",
    )
    for args, kwargs in (
        (("-c", "--config"), {"metavar": "PATH", "help": "Path to config.toml (file or directory)"}),
        (("-d", "--debug"), {"action": "store_true", "help": "Debug mode with API calls, JSON responses, timestamps"}),
        (("--log-file",), {"metavar": "PATH", "help": "Also write the session log to this file"}),
    ):
        parser.add_argument(*args, **kwargs)

    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Load scanner output (JSON) into the store")
    ingest.add_argument("scan_json", metavar="SCAN_JSON")

    match = sub.add_parser("match", help="Match scanned groups against TMDB")
    match.add_argument("--group", type=int, action="append", metavar="ID", help="Rematch only this group")

    candidates = sub.add_parser("candidates", help="Show (or search for) match candidates of a group")
    candidates.add_argument("group_id", type=int, metavar="GROUP_ID")
    candidates.add_argument("--search", metavar="QUERY", help="Search TMDB with this title instead")
    candidates.add_argument("--type", choices=("movie", "tv"), help="Media type for --search")
    candidates.add_argument("--year", type=int, help="Release year for --search")

    for name, help_text in (("confirm", "Confirm matched or ambiguous groups"), ("skip", "Skip groups")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("group_ids", type=int, nargs="+", metavar="GROUP_ID")

    select = sub.add_parser("select", help="Match a group to one of its candidates")
    select.add_argument("group_id", type=int, metavar="GROUP_ID")
    select.add_argument("catalog_id", type=int, metavar="CATALOG_ID")

    sub.add_parser("destinations", help="List destinations")

    add_dest = sub.add_parser("add-destination", help="Add a local or SSH destination")
    add_dest.add_argument("name")
    add_dest.add_argument("base_path", metavar="BASE_PATH")
    add_dest.add_argument("--ssh-host", metavar="HOST", help="Make this an SSH destination")
    add_dest.add_argument("--ssh-port", type=int, default=22, metavar="PORT")
    add_dest.add_argument("--ssh-user", metavar="USER")
    add_dest.add_argument("--ssh-key", metavar="PATH", help="Private key file")
    add_dest.add_argument("--movie-template", metavar="TEMPLATE")
    add_dest.add_argument("--tv-template", metavar="TEMPLATE")

    remove_dest = sub.add_parser("remove-destination", help="Delete a destination")
    remove_dest.add_argument("destination_id", type=int, metavar="ID")

    verify = sub.add_parser("verify-destination", help="Check that a destination is reachable and writable")
    verify.add_argument("destination_id", type=int, metavar="ID")

    transfer = sub.add_parser("transfer", help="Copy confirmed files to a destination")
    transfer.add_argument("--destination", type=int, required=True, metavar="ID")
    selection = transfer.add_mutually_exclusive_group(required=True)
    selection.add_argument("--group", type=int, nargs="+", metavar="ID")
    selection.add_argument("--file", type=int, nargs="+", metavar="ID")

    sub.add_parser("status", help="Show groups and transfer state")
    return parser


def main(argv: Optional[List[str]] = None):
    """Entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    log_file = Path(args.log_file).expanduser() if args.log_file else None
    session_logger = logger.ReelNameLogger(log_file=log_file, debug=args.debug)
    logger.set_logger(session_logger)
    try:
        config = load_config(resolve_config_path(args.config))
        code = asyncio.run(run_command(args, config))
    except KeyboardInterrupt:
        _ui_info("Interrupted")
        code = 1
    except (ReelNameError, ValueError) as e:
        _ui_error(str(e))
        code = 1
    finally:
        session_logger.close()
    sys.exit(code)


if __name__ == "__main__":
    main()
