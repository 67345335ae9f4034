"""Protocol definitions for transfer observers and path resolution."""

from __future__ import annotations

from typing import Callable, Optional, Protocol

from reelname.config import NamingConfig
from reelname.models import Destination, Group, MediaFile

ProgressCallback = Callable[[float], None]


class TransferObserver(Protocol):
    """Receives live progress; called on the event loop thread, in order per file."""

    def on_progress(self, file_id: int, progress: float) -> None:
        ...

    def on_finished(self, file_id: int, status: str, error: Optional[str]) -> None:
        ...


class NamingResolver(Protocol):
    def __call__(
        self,
        media_file: MediaFile,
        group: Optional[Group],
        naming_config: NamingConfig,
        destination: Optional[Destination] = None,
    ) -> str:
        ...
