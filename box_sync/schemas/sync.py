"""
Pydantic models describing Box Drive sync verification results.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel


class ItemKind(str, Enum):
    FILE = "file"
    FOLDER = "folder"


class SyncStrategy(str, Enum):
    """How :meth:`LocalSyncVerifier.wait_for_sync` decides an item is synced."""

    POLL = "poll"
    SMART = "smart"
    FORCE = "force"


class SyncStatus(BaseModel):
    """Outcome of one sync verification call."""

    synced: bool
    local_path: Optional[Path] = None
    error: Optional[str] = None
    last_modified: Optional[datetime] = None
    size: Optional[int] = None

    @property
    def timed_out(self) -> bool:
        return not self.synced and bool(self.error) and self.error.startswith("Timeout")


__all__ = ["ItemKind", "SyncStatus", "SyncStrategy"]
