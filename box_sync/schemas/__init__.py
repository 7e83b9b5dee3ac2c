"""Expose pydantic schemas used across the package."""

from .sync import ItemKind, SyncStatus, SyncStrategy
from .upload import UploadPart, UploadSession

__all__ = [
    "ItemKind",
    "SyncStatus",
    "SyncStrategy",
    "UploadPart",
    "UploadSession",
]
