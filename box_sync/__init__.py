"""
fs-box-sync
===========

Bridge between the Box cloud API and the local Box Drive mirror: token
lifecycle management, resilient requests, chunked uploads, and waiting for
the desktop agent to sync items locally.

Usage example::

    from box_sync import BoxClient, BoxSettings

    async with BoxClient(BoxSettings(), token_provider=get_code) as box:
        file_id = await box.upload_file("12345", "report.pdf")
        status = await box.wait_for_sync(file_id, "file")
        if status.synced:
            print(status.local_path)
"""

__version__ = "1.0.0"

from .client import BoxClient
from .core.config import BoxSettings
from .core.errors import (
    AuthenticationError,
    BoxAPIError,
    BoxError,
    ConflictError,
    CredentialMissingError,
    DriveRootNotFoundError,
    NotFoundError,
    PermissionDeniedError,
    ProtocolViolationError,
    ServerError,
    TransientNetworkError,
)
from .core.logging import configure_logging
from .models import CredentialRecord
from .schemas import ItemKind, SyncStatus, SyncStrategy, UploadPart, UploadSession

__all__ = [
    "AuthenticationError",
    "BoxAPIError",
    "BoxClient",
    "BoxError",
    "BoxSettings",
    "ConflictError",
    "CredentialMissingError",
    "CredentialRecord",
    "DriveRootNotFoundError",
    "ItemKind",
    "NotFoundError",
    "PermissionDeniedError",
    "ProtocolViolationError",
    "ServerError",
    "SyncStatus",
    "SyncStrategy",
    "TransientNetworkError",
    "UploadPart",
    "UploadSession",
    "configure_logging",
]
