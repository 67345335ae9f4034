"""Exception types shared across the matcher, transfer queue and store."""

from __future__ import annotations


class ReelNameError(RuntimeError):
    """Base error type."""


class ConfigError(ReelNameError):
    """Config file missing, unparsable or invalid."""


class MissingCredentialError(ReelNameError):
    """No catalog API key configured; matching refuses to run."""


class CatalogUnavailableError(ReelNameError):
    """Transport or HTTP failure talking to the metadata catalog."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class EntityNotFoundError(ReelNameError):
    """A referenced group, file or destination no longer exists."""

    def __init__(self, kind: str, entity_id: int) -> None:
        super().__init__(f"{kind} {entity_id} not found")
        self.kind = kind
        self.entity_id = entity_id


class InvalidTransitionError(ReelNameError):
    """Status change outside the group state machine."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move from '{current}' to '{target}'")
        self.current = current
        self.target = target


class TransferIOError(ReelNameError):
    """Local read/write failure during a file transfer."""


class TransferConnectionError(ReelNameError):
    """Remote session or authentication failure during a file transfer."""


class DestinationInUseError(ReelNameError):
    """Destination is referenced by queued or running transfers."""


class NothingToTransferError(ReelNameError):
    """None of the requested groups has confirmed files."""
