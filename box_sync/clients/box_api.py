"""Box REST API client wrapper.

Every method issues its HTTP call through the :class:`RequestExecutor`, so
transient failures are retried and 401s recovered per call.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from box_sync.core.config import BoxSettings
from box_sync.core.errors import TransientNetworkError
from box_sync.schemas import UploadPart, UploadSession
from box_sync.utils.http import (
    TRANSIENT_TRANSPORT_ERRORS,
    RequestExecutor,
    raise_for_box_status,
    send,
)

logger = logging.getLogger(__name__)


class BoxAPIClient:
    """Thin wrappers over the Box endpoints the sync bridge relies on."""

    def __init__(
        self,
        settings: BoxSettings,
        http_client: httpx.AsyncClient,
        executor: RequestExecutor,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._executor = executor

    @property
    def executor(self) -> RequestExecutor:
        return self._executor

    def _api(self, path: str) -> str:
        return f"{self._settings.api_base_url}{path}"

    def _upload(self, path: str) -> str:
        return f"{self._settings.upload_base_url}{path}"

    async def _json(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        async def _call(token: str) -> Dict[str, Any]:
            response = await send(self._http, method, url, access_token=token, **kwargs)
            if response.status_code == httpx.codes.NO_CONTENT or not response.content:
                return {}
            return response.json()

        return await self._executor.execute(_call)

    # ========== FILE OPERATIONS ==========

    async def get_file_info(self, file_id: str) -> Dict[str, Any]:
        return await self._json("GET", self._api(f"/files/{file_id}"))

    async def get_file_content(self, file_id: str) -> bytes:
        """Download a file into memory. Prefer :meth:`download_file` for large files."""

        async def _call(token: str) -> bytes:
            response = await send(
                self._http,
                "GET",
                self._api(f"/files/{file_id}/content"),
                access_token=token,
                follow_redirects=True,
            )
            return response.content

        return await self._executor.execute(_call)

    async def download_file(
        self,
        file_id: str,
        dest_path: Path,
        *,
        headers: Optional[Dict[str, str]] = None,
    ) -> Path:
        """Stream file content to ``dest_path`` without buffering it whole."""
        url = self._api(f"/files/{file_id}/content")
        dest_path = Path(dest_path)

        async def _call(token: str) -> Path:
            request_headers = {"Authorization": f"Bearer {token}", **(headers or {})}
            try:
                async with self._http.stream(
                    "GET", url, headers=request_headers, follow_redirects=True
                ) as response:
                    if not response.is_success:
                        await response.aread()
                    raise_for_box_status(response)
                    handle = await asyncio.to_thread(dest_path.open, "wb")
                    try:
                        async for chunk in response.aiter_bytes():
                            await asyncio.to_thread(handle.write, chunk)
                    finally:
                        await asyncio.to_thread(handle.close)
            except TRANSIENT_TRANSPORT_ERRORS as exc:
                raise TransientNetworkError(f"{type(exc).__name__} during GET {url}: {exc}") from exc
            logger.debug("Downloaded file %s to %s", file_id, dest_path)
            return dest_path

        return await self._executor.execute(_call)

    async def delete_file(self, file_id: str) -> None:
        await self._json("DELETE", self._api(f"/files/{file_id}"))

    async def move_file(self, file_id: str, to_folder_id: str) -> Dict[str, Any]:
        return await self._json(
            "PUT", self._api(f"/files/{file_id}"), json={"parent": {"id": to_folder_id}}
        )

    async def upload_small(self, folder_id: str, file_path: Path) -> str:
        """Single-request multipart upload; returns the new file id."""
        file_path = Path(file_path)
        attributes = json.dumps({"name": file_path.name, "parent": {"id": folder_id}})

        async def _call(token: str) -> str:
            # Re-read on every attempt; a retried request needs a fresh body.
            content = await asyncio.to_thread(file_path.read_bytes)
            response = await send(
                self._http,
                "POST",
                self._upload("/files/content"),
                access_token=token,
                data={"attributes": attributes},
                files={"file": (file_path.name, content, "application/octet-stream")},
            )
            entries = response.json().get("entries") or [{}]
            return entries[0].get("id", "")

        return await self._executor.execute(_call)

    # ========== UPLOAD SESSIONS ==========

    async def create_upload_session(
        self, folder_id: str, file_name: str, file_size: int
    ) -> UploadSession:
        payload = await self._json(
            "POST",
            self._upload("/files/upload_sessions"),
            json={"folder_id": folder_id, "file_name": file_name, "file_size": file_size},
        )
        endpoints = payload.get("session_endpoints") or {}
        session_id = payload.get("id", "")
        return UploadSession(
            session_id=session_id,
            upload_endpoint=endpoints.get(
                "upload_part", self._upload(f"/files/upload_sessions/{session_id}")
            ),
            commit_endpoint=endpoints.get(
                "commit", self._upload(f"/files/upload_sessions/{session_id}/commit")
            ),
            part_size=int(payload.get("part_size") or 0),
            total_size=int(payload.get("total_size") or file_size),
        )

    async def upload_part(
        self,
        session: UploadSession,
        chunk: bytes,
        offset: int,
        digest: str,
    ) -> Dict[str, Any]:
        """PUT one byte range; returns the ``part`` acknowledgment."""
        end = offset + len(chunk) - 1
        headers = {
            "Content-Type": "application/octet-stream",
            "Content-Range": f"bytes {offset}-{end}/{session.total_size}",
            "Digest": f"sha={digest}",
        }
        payload = await self._json(
            "PUT", session.upload_endpoint, headers=headers, content=chunk
        )
        return payload.get("part") or {}

    async def commit_upload_session(
        self,
        session: UploadSession,
        parts: List[UploadPart],
        file_digest: str,
    ) -> httpx.Response:
        """POST the commit request; the caller interprets 201 versus 202."""
        body = {"parts": [part.model_dump() for part in parts]}

        async def _call(token: str) -> httpx.Response:
            return await send(
                self._http,
                "POST",
                session.commit_endpoint,
                access_token=token,
                headers={"Digest": f"sha={file_digest}"},
                json=body,
            )

        return await self._executor.execute(_call)

    # ========== FOLDER OPERATIONS ==========

    async def get_folder_info(self, folder_id: str) -> Dict[str, Any]:
        return await self._json("GET", self._api(f"/folders/{folder_id}"))

    async def list_folder_items(
        self, folder_id: str, *, limit: int = 1000
    ) -> List[Dict[str, Any]]:
        """Return every entry of a folder, following offset pagination."""
        entries: List[Dict[str, Any]] = []
        offset = 0
        while True:
            payload = await self._json(
                "GET",
                self._api(f"/folders/{folder_id}/items"),
                params={"offset": offset, "limit": limit},
            )
            page = payload.get("entries") or []
            entries.extend(page)
            offset += len(page)
            if not page or offset >= int(payload.get("total_count") or 0):
                return entries

    async def create_folder(self, parent_folder_id: str, name: str) -> Dict[str, Any]:
        return await self._json(
            "POST",
            self._api("/folders"),
            json={"name": name, "parent": {"id": parent_folder_id}},
        )

    async def search_in_folder(
        self, folder_id: str, query: str, item_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {
            "query": query,
            "content_types": "name",
            "ancestor_folder_ids": folder_id,
            "limit": 100,
        }
        if item_type:
            params["type"] = item_type
        payload = await self._json("GET", self._api("/search"), params=params)
        return payload.get("entries") or []

    # ========== SHARED LINKS ==========

    def _shared_link_header(self, link_id: str) -> Dict[str, str]:
        return {"BoxApi": f"shared_link=https://{self._settings.domain}/s/{link_id}"}

    async def get_shared_link_file_id(self, link_id: str) -> str:
        payload = await self._json(
            "GET", self._api("/shared_items"), headers=self._shared_link_header(link_id)
        )
        return payload.get("id", "")

    async def download_from_shared_link(self, link_id: str, dest_path: Path) -> Path:
        file_id = await self.get_shared_link_file_id(link_id)
        return await self.download_file(
            file_id, dest_path, headers=self._shared_link_header(link_id)
        )


__all__ = ["BoxAPIClient"]
