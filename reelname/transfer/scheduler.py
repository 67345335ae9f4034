"""Bounded-concurrency transfer queue."""

from __future__ import annotations

import asyncio
import posixpath
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Deque, Iterable, List, Optional, Sequence, Set

from reelname import logger
from reelname.config import NamingConfig, TransferConfig
from reelname.errors import EntityNotFoundError, NothingToTransferError
from reelname.models import Destination, FileUpdate, Group, GroupUpdate, MediaFile, can_transition
from reelname.naming import resolve_path
from reelname.store.protocols import Store
from reelname.transfer.local import copy_local
from reelname.transfer.protocols import NamingResolver, TransferObserver
from reelname.transfer.remote import Connector, upload_sftp


@dataclass(frozen=True)
class TransferRequest:
    file_id: int
    destination_id: int


class TransferScheduler:
    """
    FIFO transfer queue running at most ``max_concurrent_transfers`` at once.

    Owned explicitly by the caller and bound to the running event loop once
    work is queued. Each file runs in its own task; a failure is recorded on
    that file only and never stops siblings or the queue.
    """

    def __init__(
        self,
        store: Store,
        transfer_config: Optional[TransferConfig] = None,
        naming_config: Optional[NamingConfig] = None,
        observers: Sequence[TransferObserver] = (),
        resolver: NamingResolver = resolve_path,
        ssh_connector: Optional[Connector] = None,
    ):
        self.store = store
        self.transfer_config = transfer_config or TransferConfig()
        self.naming_config = naming_config or NamingConfig()
        self.max_concurrent = self.transfer_config.max_concurrent_transfers
        self._observers: List[TransferObserver] = list(observers)
        self._resolver = resolver
        self._ssh_connector = ssh_connector
        self._queue: Deque[TransferRequest] = deque()
        self._active: List[TransferRequest] = []
        self._tasks: Set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()

    def add_observer(self, observer: TransferObserver) -> None:
        self._observers.append(observer)

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    def queue_transfers(self, file_ids: Iterable[int], destination_id: int) -> int:
        """Queue files for one destination and start up to the cap. Returns how many were accepted."""
        accepted = 0
        for file_id in file_ids:
            self._queue.append(TransferRequest(file_id, destination_id))
            accepted += 1
        if accepted:
            logger.get_logger().debug(f"Queued {accepted} transfer(s) to destination #{destination_id}")
            self._drain()
        return accepted

    def queue_groups(self, group_ids: Iterable[int], destination_id: int) -> int:
        """Queue every confirmed file of the given groups."""
        group_ids = list(group_ids)
        file_ids = [
            media_file.id
            for group_id in group_ids
            for media_file in self.store.list_files(group_id=group_id, status="confirmed")
        ]
        if not file_ids:
            raise NothingToTransferError(
                f"No confirmed files in group(s) {', '.join(str(g) for g in group_ids)}"
            )
        return self.queue_transfers(file_ids, destination_id)

    def references_destination(self, destination_id: int) -> bool:
        return any(
            request.destination_id == destination_id
            for request in (*self._queue, *self._active)
        )

    async def join(self) -> None:
        """Wait until the queue is empty and nothing is running."""
        await self._idle.wait()

    def _drain(self) -> None:
        while self._queue and len(self._active) < self.max_concurrent:
            request = self._queue.popleft()
            self._active.append(request)
            self._idle.clear()
            task = asyncio.get_running_loop().create_task(self._run(request))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        if not self._queue and not self._active:
            self._idle.set()

    async def _run(self, request: TransferRequest) -> None:
        try:
            await self.process_transfer(request.file_id, request.destination_id)
        finally:
            self._active.remove(request)
            self._drain()

    def _is_scheduled(self, file_id: int) -> bool:
        return any(request.file_id == file_id for request in (*self._queue, *self._active))

    async def process_transfer(self, file_id: int, destination_id: int) -> Optional[MediaFile]:
        """Move one file to one destination and record the outcome on the file."""
        log = logger.get_logger()
        media_file = self.store.get_file(file_id)
        if media_file is None:
            message = str(EntityNotFoundError("File", file_id))
            log.transfer_failed(file_id, message)
            self._notify_finished(file_id, "failed", message)
            return None

        destination = self.store.get_destination(destination_id)
        if destination is None:
            failed = self._record_failure(media_file, str(EntityNotFoundError("Destination", destination_id)))
            self._roll_up_group(media_file.group_id, file_id)
            return failed

        group = self.store.get_group(media_file.group_id) if media_file.group_id is not None else None
        self.store.update_file(
            file_id,
            FileUpdate(status="transferring", transfer_progress=0.0, transfer_error=None),
        )
        if group is not None and group.status != "transferring" and can_transition(group.status, "transferring"):
            group = self.store.update_group(group.id, GroupUpdate(status="transferring"))

        last_progress = {"value": 0.0}

        def _on_progress(progress: float) -> None:
            # 1.0 is written together with status=completed.
            if last_progress["value"] < progress < 1.0:
                self.store.update_file(file_id, FileUpdate(transfer_progress=progress))
                last_progress["value"] = progress
            for observer in self._observers:
                observer.on_progress(file_id, progress)

        try:
            relative_path = self._resolver(media_file, group, self.naming_config, destination)
            log.transfer_started(file_id, f"{destination.name}:{relative_path}")
            final_path = await self._dispatch(media_file, destination, relative_path, _on_progress)
        except Exception as exc:
            failed = self._record_failure(media_file, str(exc) or type(exc).__name__, last_progress["value"])
            self._roll_up_group(media_file.group_id, file_id)
            return failed

        completed = self.store.update_file(
            file_id,
            FileUpdate(
                status="completed",
                transfer_progress=1.0,
                transfer_error=None,
                destination_id=destination.id,
                destination_path=final_path,
            ),
        )
        log.transfer_completed(file_id, final_path)
        self._notify_finished(file_id, "completed", None)
        self._roll_up_group(media_file.group_id, file_id)
        return completed

    async def _dispatch(self, media_file: MediaFile, destination: Destination, relative_path: str, on_progress) -> str:
        chunk_size = self.transfer_config.chunk_size
        if destination.type == "ssh":
            return await upload_sftp(
                destination,
                Path(media_file.source_path),
                posixpath.join(destination.base_path, relative_path),
                on_progress,
                chunk_size=chunk_size,
                connect_timeout=self.transfer_config.connect_timeout,
                known_hosts=self.transfer_config.known_hosts,
                connector=self._ssh_connector,
            )
        return await copy_local(
            Path(media_file.source_path),
            Path(destination.base_path) / relative_path,
            on_progress,
            chunk_size=chunk_size,
        )

    def _record_failure(self, media_file: MediaFile, message: str, progress: Optional[float] = None) -> MediaFile:
        update = FileUpdate(status="failed", transfer_error=message)
        if progress is not None:
            update.transfer_progress = progress
        failed = self.store.update_file(media_file.id, update)
        logger.get_logger().transfer_failed(media_file.id, message)
        self._notify_finished(media_file.id, "failed", message)
        return failed

    def _notify_finished(self, file_id: int, status: str, error: Optional[str]) -> None:
        for observer in self._observers:
            try:
                observer.on_finished(file_id, status, error)
            except Exception as exc:
                logger.get_logger().warning(f"Transfer observer failed for file #{file_id}: {exc}")

    def _roll_up_group(self, group_id: Optional[int], finished_file_id: int) -> Optional[Group]:
        """Derive the group status from its files once one of them finishes."""
        if group_id is None:
            return None
        group = self.store.get_group(group_id)
        if group is None:
            return None
        siblings = [f for f in self.store.list_files(group_id=group_id) if f.status != "skipped"]
        statuses = {f.status for f in siblings}
        if "transferring" in statuses or any(self._is_scheduled(f.id) for f in siblings if f.id != finished_file_id):
            return group
        if "failed" in statuses:
            target = "failed"
        elif statuses == {"completed"}:
            target = "completed"
        else:
            return group
        if group.status == target or not can_transition(group.status, target):
            return group
        return self.store.update_group(group_id, GroupUpdate(status=target))
