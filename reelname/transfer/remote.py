"""SFTP upload over asyncssh with the same resume and progress rules as local copies."""

from __future__ import annotations

import asyncio
import os
import posixpath
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import asyncssh

from reelname.errors import TransferConnectionError, TransferIOError
from reelname.models import Destination
from reelname.transfer.local import DEFAULT_CHUNK_SIZE, resume_plan
from reelname.transfer.protocols import ProgressCallback

DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0

Connector = Callable[..., Awaitable[Any]]


def _describe(destination: Destination) -> str:
    user = f"{destination.ssh_user}@" if destination.ssh_user else ""
    return f"{user}{destination.ssh_host}:{destination.ssh_port}"


def _load_client_keys(destination: Destination) -> Optional[list]:
    if not destination.ssh_key_path:
        return None
    key_path = os.path.expanduser(destination.ssh_key_path)
    try:
        return [asyncssh.read_private_key(key_path, destination.ssh_key_passphrase or None)]
    except (asyncssh.KeyImportError, asyncssh.KeyEncryptionError, OSError) as exc:
        raise TransferConnectionError(f"Cannot load SSH key {key_path}: {exc}") from exc


async def open_connection(
    destination: Destination,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
    known_hosts: Optional[str] = None,
    connector: Optional[Connector] = None,
) -> Any:
    """Connect to an ssh destination; every failure surfaces as TransferConnectionError."""
    if not destination.ssh_host:
        raise TransferConnectionError(f"Destination '{destination.name}' has no SSH host")
    connect = connector or asyncssh.connect
    options: dict = {
        "port": destination.ssh_port,
        "username": destination.ssh_user,
        "known_hosts": known_hosts,
    }
    client_keys = _load_client_keys(destination)
    if client_keys is not None:
        options["client_keys"] = client_keys
    try:
        return await asyncio.wait_for(connect(destination.ssh_host, **options), timeout=connect_timeout)
    except asyncio.TimeoutError as exc:
        raise TransferConnectionError(
            f"Timed out after {connect_timeout:g}s connecting to {_describe(destination)}"
        ) from exc
    except (asyncssh.Error, OSError) as exc:
        raise TransferConnectionError(f"SSH connection to {_describe(destination)} failed: {exc}") from exc


async def close_connection(conn: Any) -> None:
    conn.close()
    await conn.wait_closed()


async def make_remote_dirs(sftp: Any, remote_dir: str) -> None:
    """Create each missing segment of ``remote_dir``."""
    current = "/" if remote_dir.startswith("/") else ""
    for part in [p for p in remote_dir.split("/") if p]:
        current = posixpath.join(current, part) if current else part
        if await sftp.isdir(current):
            continue
        try:
            await sftp.mkdir(current)
        except (asyncssh.SFTPFileAlreadyExists, asyncssh.SFTPFailure):
            # Older servers report an existing directory as a generic failure.
            if not await sftp.isdir(current):
                raise


async def _remote_size(sftp: Any, remote_path: str) -> Optional[int]:
    try:
        attrs = await sftp.stat(remote_path)
    except asyncssh.SFTPNoSuchFile:
        return None
    return attrs.size


async def upload_sftp(
    destination: Destination,
    source: Path,
    remote_path: str,
    on_progress: ProgressCallback,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
    known_hosts: Optional[str] = None,
    connector: Optional[Connector] = None,
) -> str:
    """Upload ``source`` to ``remote_path``, resuming a shorter remote partial. Returns the remote path."""
    try:
        total = (await asyncio.to_thread(source.stat)).st_size
    except OSError as exc:
        raise TransferIOError(f"Cannot read {source}: {exc}") from exc

    conn = await open_connection(destination, connect_timeout, known_hosts, connector)
    written = 0
    try:
        async with conn.start_sftp_client() as sftp:
            await make_remote_dirs(sftp, posixpath.dirname(remote_path))
            plan = resume_plan(await _remote_size(sftp, remote_path), total)
            if plan is None:
                on_progress(1.0)
                return remote_path
            offset, mode = plan
            written = offset
            reader = await asyncio.to_thread(open, source, "rb")
            try:
                await asyncio.to_thread(reader.seek, offset)
                async with sftp.open(remote_path, "r+b" if mode == "ab" else "wb") as remote:
                    while written < total:
                        data = await asyncio.to_thread(reader.read, chunk_size)
                        if not data:
                            break
                        await remote.write(data, written)
                        written += len(data)
                        on_progress(written / total)
            finally:
                await asyncio.to_thread(reader.close)
    except asyncssh.SFTPError as exc:
        raise TransferIOError(f"SFTP write to {remote_path} failed at byte {written}: {exc}") from exc
    except asyncssh.Error as exc:
        raise TransferConnectionError(f"SSH session to {_describe(destination)} dropped: {exc}") from exc
    except OSError as exc:
        raise TransferIOError(f"Upload of {source} failed at byte {written}: {exc}") from exc
    finally:
        await close_connection(conn)

    if written != total:
        raise TransferIOError(f"Source {source} ended at byte {written} of {total}")
    if total == 0:
        on_progress(1.0)
    return remote_path


async def verify_remote(
    destination: Destination,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
    known_hosts: Optional[str] = None,
    connector: Optional[Connector] = None,
) -> str:
    """Connect and stat the base path; returns a short description on success."""
    conn = await open_connection(destination, connect_timeout, known_hosts, connector)
    try:
        async with conn.start_sftp_client() as sftp:
            await sftp.stat(destination.base_path)
            is_dir = await sftp.isdir(destination.base_path)
    except asyncssh.SFTPNoSuchFile as exc:
        raise TransferIOError(f"Remote path {destination.base_path} does not exist") from exc
    except asyncssh.SFTPError as exc:
        raise TransferIOError(f"Cannot stat {destination.base_path}: {exc}") from exc
    except asyncssh.Error as exc:
        raise TransferConnectionError(f"SSH session to {_describe(destination)} dropped: {exc}") from exc
    finally:
        await close_connection(conn)
    if not is_dir:
        raise TransferIOError(f"Remote path {destination.base_path} is not a directory")
    return f"Connected to {_describe(destination)}; {destination.base_path} is reachable"
