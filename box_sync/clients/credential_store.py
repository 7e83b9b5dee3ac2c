"""JSON file persistence for the OAuth credential record."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import appdirs
from pydantic import ValidationError

from box_sync.models import CredentialRecord
from box_sync.services.token_cipher import TokenCipherService

APP_NAME = "fs-box-sync"
TOKENS_FILE = "tokens.json"

logger = logging.getLogger(__name__)


def default_storage_path() -> Path:
    """Platform-appropriate location of the credential file.

    Windows: ``%LOCALAPPDATA%\\fs-box-sync``; elsewhere the user config
    directory (``$XDG_CONFIG_HOME`` or ``~/.config`` on Linux).
    """
    return Path(appdirs.user_config_dir(APP_NAME, appauthor=False, roaming=False)) / TOKENS_FILE


class CredentialStore:
    """Load and save a :class:`CredentialRecord` as a small JSON document.

    Filesystem work runs in a worker thread so callers never block the event
    loop. Save failures are logged and reported through the return value;
    losing the file only means re-authorizing on the next start.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        *,
        cipher: Optional[TokenCipherService] = None,
    ) -> None:
        self._path = Path(path) if path else default_storage_path()
        self._cipher = cipher

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> Optional[CredentialRecord]:
        """Return the stored record, or ``None`` when absent or unreadable."""
        try:
            raw = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Could not read credentials from %s: %s", self._path, exc)
            return None

        try:
            payload = json.loads(raw)
            if self._cipher is not None:
                for key in ("accessToken", "refreshToken"):
                    if payload.get(key):
                        payload[key] = self._cipher.decrypt(payload[key])
            record = CredentialRecord.model_validate(payload)
        except (ValueError, ValidationError) as exc:
            logger.warning("Ignoring malformed credential file %s: %s", self._path, exc)
            return None

        logger.info("Credentials loaded from storage: %s", self._path)
        return record

    async def save(self, record: CredentialRecord) -> bool:
        """Persist ``record``; returns ``False`` instead of raising on failure."""
        if not record.refresh_token:
            return False

        payload = record.model_dump(mode="json", by_alias=True)
        if self._cipher is not None:
            payload["accessToken"] = self._cipher.encrypt(record.access_token)
            payload["refreshToken"] = self._cipher.encrypt(record.refresh_token)

        try:
            await asyncio.to_thread(self._write, json.dumps(payload, indent=2))
        except OSError as exc:
            logger.error("Failed to save credentials to %s: %s", self._path, exc)
            return False

        logger.info("Credentials saved to %s", self._path)
        return True

    async def clear(self) -> None:
        """Remove the stored record if present."""
        await asyncio.to_thread(self._path.unlink, missing_ok=True)

    def _write(self, serialized: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(serialized, encoding="utf-8")
        tmp_path.replace(self._path)


__all__ = ["CredentialStore", "default_storage_path"]
