"""File transfer to local directories and SFTP hosts."""

from .local import copy_local
from .protocols import NamingResolver, TransferObserver
from .remote import upload_sftp, verify_remote
from .scheduler import TransferRequest, TransferScheduler

__all__ = [
    "NamingResolver",
    "TransferObserver",
    "TransferRequest",
    "TransferScheduler",
    "copy_local",
    "upload_sftp",
    "verify_remote",
]
