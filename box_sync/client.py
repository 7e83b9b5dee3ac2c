"""
Composition root wiring the Box client components together.

``BoxClient`` explicitly constructs and owns one instance of each component;
share the client object itself (dependency injection) instead of relying on
any module-level default.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from pathlib import Path
from typing import Optional, TypeVar, Union

import httpx

from box_sync.clients import BoxAPIClient, BoxOAuthClient, CredentialStore
from box_sync.core.config import BoxSettings
from box_sync.core.errors import BoxError
from box_sync.schemas import ItemKind, SyncStatus, SyncStrategy
from box_sync.services import (
    CHUNKED_UPLOAD_THRESHOLD,
    ChunkedUploadEngine,
    LocalSyncVerifier,
    TokenCipherService,
    TokenLifecycleManager,
    TokenProvider,
)
from box_sync.utils.http import Operation, RequestExecutor, RetryConfig

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BoxClient:
    """Box cloud API plus Box Drive sync verification."""

    def __init__(
        self,
        settings: Optional[BoxSettings] = None,
        *,
        token_provider: Optional[TokenProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        store: Optional[CredentialStore] = None,
    ) -> None:
        self.settings = settings or BoxSettings()
        cfg = self.settings

        self._owns_http = http_client is None
        self.http = http_client or httpx.AsyncClient(
            timeout=cfg.http_timeout,
            verify=not cfg.allow_insecure,
        )
        if cfg.allow_insecure:
            logger.warning("TLS certificate verification is disabled (allow_insecure=True)")

        if store is None:
            cipher = (
                TokenCipherService(secret=cfg.token_encryption_secret)
                if cfg.token_encryption_secret
                else None
            )
            store = CredentialStore(cfg.token_storage_path, cipher=cipher)

        self.oauth = BoxOAuthClient(cfg, self.http)
        self.tokens = TokenLifecycleManager(
            self.oauth,
            store,
            access_token=cfg.access_token,
            refresh_token=cfg.refresh_token,
            token_provider=token_provider,
            refresh_window=timedelta(seconds=cfg.token_refresh_window_seconds),
        )
        self.executor = RequestExecutor(
            self.tokens,
            RetryConfig(
                max_retries=cfg.max_retries,
                backoff_seconds=cfg.retry_backoff_seconds,
            ),
        )
        self.api = BoxAPIClient(cfg, self.http, self.executor)
        self.uploads = ChunkedUploadEngine(self.api)
        self.drive = LocalSyncVerifier(
            self.api,
            drive_root=cfg.drive_root,
            sync_timeout=cfg.sync_timeout,
            sync_interval=cfg.sync_interval,
        )

    async def __aenter__(self) -> "BoxClient":
        self.tokens.start_loading()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def ensure_valid(self) -> str:
        return await self.tokens.ensure_valid()

    async def execute(self, operation: Operation[T]) -> T:
        return await self.executor.execute(operation)

    async def upload_file(self, folder_id: str, file_path: Union[str, Path]) -> str:
        """Upload a file, switching to a chunked session above 20 MiB."""
        file_path = Path(file_path)
        file_size = (await asyncio.to_thread(file_path.stat)).st_size
        if file_size > CHUNKED_UPLOAD_THRESHOLD:
            return await self.upload_large(folder_id, file_path, file_size)
        return await self.api.upload_small(folder_id, file_path)

    async def upload_large(
        self, folder_id: str, file_path: Union[str, Path], file_size: Optional[int] = None
    ) -> str:
        return await self.uploads.upload(folder_id, Path(file_path), file_size)

    async def get_local_path(self, item_id: str, kind: Union[ItemKind, str]) -> Path:
        return await self.drive.get_local_path(item_id, kind)

    async def wait_for_sync(
        self,
        item_id: str,
        kind: Union[ItemKind, str],
        strategy: Union[SyncStrategy, str] = SyncStrategy.SMART,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ) -> SyncStatus:
        return await self.drive.wait_for_sync(item_id, kind, strategy, timeout, poll_interval)

    async def is_synced(self, item_id: str, kind: Union[ItemKind, str]) -> bool:
        return await self.drive.is_synced(item_id, kind)

    async def open_locally(self, item_id: str, kind: Union[ItemKind, str]) -> Path:
        """Wait for the item to sync, then open it with the desktop's default handler."""
        status = await self.drive.wait_for_sync(item_id, kind)
        if not status.synced:
            raise BoxError(f"Cannot open {ItemKind(kind).value} {item_id}: {status.error}")
        await self.drive.open_locally(status.local_path)
        return status.local_path


__all__ = ["BoxClient"]
