"""Destination management: create, guarded delete and reachability checks."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Tuple

from reelname import logger
from reelname.config import TransferConfig
from reelname.errors import DestinationInUseError, EntityNotFoundError, TransferConnectionError, TransferIOError
from reelname.models import Destination, DestinationType
from reelname.store.protocols import Store
from reelname.transfer.remote import Connector, verify_remote
from reelname.transfer.scheduler import TransferScheduler


def create_destination(
    store: Store,
    name: str,
    base_path: str,
    type: DestinationType = "local",
    ssh_host: Optional[str] = None,
    ssh_port: int = 22,
    ssh_user: Optional[str] = None,
    ssh_key_path: Optional[str] = None,
    ssh_key_passphrase: Optional[str] = None,
    movie_template: Optional[str] = None,
    tv_template: Optional[str] = None,
) -> Destination:
    if not name.strip():
        raise ValueError("destination name must not be empty")
    if not base_path:
        raise ValueError("destination base path must not be empty")
    if type not in ("local", "ssh"):
        raise ValueError(f"unknown destination type: {type!r}")
    if type == "ssh":
        if not ssh_host:
            raise ValueError("ssh destinations need a host")
        if not 0 < ssh_port < 65536:
            raise ValueError(f"invalid ssh port: {ssh_port}")

    destination = store.add_destination(
        Destination(
            name=name.strip(),
            base_path=base_path,
            type=type,
            ssh_host=ssh_host if type == "ssh" else None,
            ssh_port=ssh_port,
            ssh_user=ssh_user if type == "ssh" else None,
            ssh_key_path=ssh_key_path if type == "ssh" else None,
            ssh_key_passphrase=ssh_key_passphrase if type == "ssh" else None,
            movie_template=movie_template,
            tv_template=tv_template,
        )
    )
    logger.get_logger().info(f"Added destination #{destination.id} '{destination.name}' ({destination.type})")
    return destination


def delete_destination(store: Store, destination_id: int, scheduler: Optional[TransferScheduler] = None) -> None:
    """Delete a destination unless queued or running transfers still point at it."""
    if store.get_destination(destination_id) is None:
        raise EntityNotFoundError("Destination", destination_id)
    if scheduler is not None and scheduler.references_destination(destination_id):
        raise DestinationInUseError(f"Destination {destination_id} has queued or active transfers")
    store.delete_destination(destination_id)
    logger.get_logger().info(f"Deleted destination #{destination_id}")


def _verify_local(destination: Destination) -> Tuple[bool, str]:
    base = Path(destination.base_path).expanduser()
    if not base.exists():
        return False, f"{base} does not exist"
    if not base.is_dir():
        return False, f"{base} is not a directory"
    if not os.access(base, os.W_OK):
        return False, f"{base} is not writable"
    return True, f"{base} is a writable directory"


async def verify_destination(
    destination: Destination,
    transfer_config: Optional[TransferConfig] = None,
    connector: Optional[Connector] = None,
) -> Tuple[bool, str]:
    """Check that a destination can receive files. Returns ``(ok, message)``."""
    if destination.type != "ssh":
        ok, message = _verify_local(destination)
    else:
        transfer_config = transfer_config or TransferConfig()
        try:
            message = await verify_remote(
                destination,
                connect_timeout=transfer_config.connect_timeout,
                known_hosts=transfer_config.known_hosts,
                connector=connector,
            )
            ok = True
        except (TransferConnectionError, TransferIOError) as exc:
            ok, message = False, str(exc)
    log = logger.get_logger()
    if ok:
        log.info(f"Destination #{destination.id} '{destination.name}': {message}")
    else:
        log.warning(f"Destination #{destination.id} '{destination.name}' unusable: {message}")
    return ok, message
