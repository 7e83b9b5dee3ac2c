"""
Box Drive sync bridge.

Maps Box item ids to paths inside the local Box Drive mirror and waits for
the desktop agent to materialize them. The mirror root is only looked up the
first time a local path is needed, so cloud-only callers never require Box
Drive to be installed.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Tuple, Union

from box_sync.core.errors import BoxError, DriveRootNotFoundError
from box_sync.schemas import ItemKind, SyncStatus, SyncStrategy

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from box_sync.clients.box_api import BoxAPIClient

ROOT_FOLDER_ID = "0"

logger = logging.getLogger(__name__)


def default_drive_root(platform: str, home: Path) -> Path:
    """Where Box Drive mounts its mirror on each platform."""
    if platform == "darwin":
        return home / "Library" / "CloudStorage" / "Box-Box"
    # Windows installs to %USERPROFILE%\Box; on Linux only unofficial
    # clients exist and they conventionally use ~/Box as well.
    return home / "Box"


@dataclass(frozen=True)
class DriveRootDetection:
    """Outcome of the one-time root lookup: a path or the reason it failed."""

    path: Optional[Path] = None
    error: Optional[str] = None

    def unwrap(self) -> Path:
        if self.path is None:
            raise DriveRootNotFoundError(self.error or "Box Drive root not found")
        return self.path


def detect_drive_root(platform: str, home: Path) -> DriveRootDetection:
    candidate = default_drive_root(platform, home)
    if candidate.is_dir():
        return DriveRootDetection(path=candidate)
    return DriveRootDetection(
        error=(
            "Box Drive root not found. Please provide drive_root in settings "
            f"(BOX_DRIVE_ROOT).\nExpected: {candidate}"
        )
    )


async def _run_probe(*command: str) -> Tuple[int, str]:
    process = await asyncio.create_subprocess_exec(
        *command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    stdout, _ = await process.communicate()
    return process.returncode or 0, stdout.decode(errors="replace")


class LocalSyncVerifier:
    """Resolve Box ids to local mirror paths and wait for them to sync."""

    def __init__(
        self,
        api: "BoxAPIClient",
        *,
        drive_root: Optional[Path] = None,
        sync_timeout: float = 30.0,
        sync_interval: float = 1.0,
        platform: str = sys.platform,
        home: Optional[Path] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        process_probe: Callable[..., Awaitable[Tuple[int, str]]] = _run_probe,
    ) -> None:
        self._api = api
        self._configured_root = Path(drive_root) if drive_root else None
        self._timeout = sync_timeout
        self._interval = sync_interval
        self._platform = platform
        self._home = home
        self._clock = clock
        self._sleep = sleep
        self._probe = process_probe
        self._root: Optional[DriveRootDetection] = None

    async def get_drive_root(self) -> Path:
        """Return the mirror root, detecting it on first use.

        Raises :class:`DriveRootNotFoundError` when it cannot be found; the
        failure is cached like a success would be.
        """
        if self._root is None:
            if self._configured_root is not None:
                self._root = DriveRootDetection(path=self._configured_root)
            else:
                home = self._home or Path.home()
                self._root = await asyncio.to_thread(detect_drive_root, self._platform, home)
                if self._root.path is not None:
                    logger.info("Detected Box Drive root at %s", self._root.path)
        return self._root.unwrap()

    async def is_drive_available(self) -> bool:
        if self._configured_root is not None:
            return await asyncio.to_thread(self._configured_root.exists)
        try:
            await self.get_drive_root()
        except DriveRootNotFoundError:
            return False
        return True

    async def is_drive_running(self) -> bool:
        """Best-effort check that the Box Drive agent process is alive."""
        try:
            if self._platform == "win32":
                _, stdout = await self._probe("tasklist", "/FI", "IMAGENAME eq BoxDrive.exe")
                return "BoxDrive.exe" in stdout
            if self._platform == "darwin":
                returncode, stdout = await self._probe("pgrep", "-f", "Box.app")
                return returncode == 0 and bool(stdout.strip())
        except OSError as exc:
            logger.debug("Process probe failed: %s", exc)
            return False
        # No agent process to look for on Linux; an accessible root is the best signal.
        return await self.is_drive_available()

    async def get_local_path(self, item_id: str, kind: Union[ItemKind, str]) -> Path:
        """Map a Box file or folder id to its expected Box Drive path."""
        local_path, _ = await self._resolve(item_id, ItemKind(kind))
        return local_path

    async def wait_for_sync(
        self,
        item_id: str,
        kind: Union[ItemKind, str],
        strategy: Union[SyncStrategy, str] = SyncStrategy.SMART,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ) -> SyncStatus:
        """Wait until the item is present locally.

        A timeout is reported as ``SyncStatus(synced=False, error="Timeout: ...")``
        rather than raised.
        """
        kind = ItemKind(kind)
        strategy = SyncStrategy(strategy)
        timeout = self._timeout if timeout is None else timeout
        interval = self._interval if poll_interval is None else poll_interval

        local_path, info = await self._resolve(item_id, kind)

        if strategy is SyncStrategy.POLL:
            return await self._poll(
                local_path,
                expected_size=None,
                timeout=timeout,
                interval=interval,
                description=f"{kind.value.capitalize()} did not appear",
            )

        if strategy is SyncStrategy.FORCE:
            if not await self.is_drive_running():
                return SyncStatus(synced=False, local_path=local_path, error="Box Drive is not running")
            await self._nudge(local_path.parent)

        expected_size = None
        if kind is ItemKind.FILE and info.get("size") is not None:
            expected_size = int(info["size"])
        return await self._poll(
            local_path,
            expected_size=expected_size,
            timeout=timeout,
            interval=interval,
            description=f"{kind.value.capitalize()} did not fully sync",
        )

    async def is_synced(self, item_id: str, kind: Union[ItemKind, str]) -> bool:
        """Whether the item appears locally within the default timeout."""
        try:
            status = await self.wait_for_sync(item_id, kind, SyncStrategy.POLL)
        except BoxError as exc:
            logger.debug("Could not verify sync of %s %s: %s", kind, item_id, exc)
            return False
        return status.synced

    async def open_locally(self, local_path: Union[str, Path]) -> None:
        """Open a mirrored file or folder with the platform's default handler."""
        target = str(local_path)
        if self._platform == "win32":
            # ``start`` is a cmd builtin; the empty string is the window title.
            command: Tuple[str, ...] = ("cmd", "/c", "start", "", target)
        elif self._platform == "darwin":
            command = ("open", target)
        else:
            command = ("xdg-open", target)

        try:
            returncode, _ = await self._probe(*command)
        except OSError as exc:
            raise BoxError(f"Failed to open {target}: {exc}") from exc
        if returncode != 0:
            raise BoxError(f"Failed to open {target}: {command[0]} exited with status {returncode}")

    async def _resolve(self, item_id: str, kind: ItemKind) -> Tuple[Path, Dict[str, Any]]:
        root = await self.get_drive_root()
        if kind is ItemKind.FOLDER and item_id == ROOT_FOLDER_ID:
            return root, {}

        if kind is ItemKind.FILE:
            info = await self._api.get_file_info(item_id)
        else:
            info = await self._api.get_folder_info(item_id)

        entries = (info.get("path_collection") or {}).get("entries") or []
        # Box Drive's root is the "All Files" folder itself.
        names = [entry["name"] for entry in entries if entry.get("id") != ROOT_FOLDER_ID]
        return root.joinpath(*names, info["name"]), info

    async def _nudge(self, directory: Path) -> None:
        # Listing the parent prompts the agent to hydrate it; there is no sync API.
        try:
            await asyncio.to_thread(os.listdir, directory)
        except OSError as exc:
            logger.debug("Could not list %s to trigger sync: %s", directory, exc)

    async def _stat(self, path: Path) -> Optional[os.stat_result]:
        try:
            return await asyncio.to_thread(os.stat, path)
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as exc:
            logger.warning("Error checking path %s: %s", path, exc)
            return None

    async def _poll(
        self,
        local_path: Path,
        *,
        expected_size: Optional[int],
        timeout: float,
        interval: float,
        description: str,
    ) -> SyncStatus:
        deadline = self._clock() + timeout
        while True:
            stat = await self._stat(local_path)
            if stat is not None and (expected_size is None or stat.st_size == expected_size):
                return SyncStatus(
                    synced=True,
                    local_path=local_path,
                    last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    size=stat.st_size,
                )
            if self._clock() >= deadline:
                break
            await self._sleep(min(interval, max(deadline - self._clock(), 0.0)))

        return SyncStatus(
            synced=False,
            local_path=local_path,
            error=f"Timeout: {description} within {timeout:g} seconds",
        )


__all__ = [
    "DriveRootDetection",
    "LocalSyncVerifier",
    "default_drive_root",
    "detect_drive_root",
]
