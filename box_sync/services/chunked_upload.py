"""
Chunked upload orchestration for files above the single-request limit.

Parts are read, hashed and uploaded strictly in offset order; only one part
is held in memory at a time while a running SHA-1 accumulates the whole-file
digest sent with the commit. Any failure abandons the session (Box expires
it server-side); there is no resume.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from box_sync.core.errors import ProtocolViolationError
from box_sync.schemas import UploadPart, UploadSession

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from box_sync.clients.box_api import BoxAPIClient

CHUNKED_UPLOAD_THRESHOLD = 20 * 1024 * 1024

logger = logging.getLogger(__name__)


def sha1_b64(data: bytes) -> str:
    """Base64 SHA-1, the digest format Box expects in ``Digest: sha=`` headers."""
    return base64.b64encode(hashlib.sha1(data).digest()).decode("ascii")


def plan_parts(total_size: int, part_size: int) -> List[Tuple[int, int]]:
    """Split ``total_size`` bytes into contiguous ``(offset, size)`` ranges."""
    if part_size <= 0:
        raise ProtocolViolationError(f"Invalid part size from server: {part_size}")
    return [
        (offset, min(part_size, total_size - offset))
        for offset in range(0, total_size, part_size)
    ]


def verify_parts(parts: List[UploadPart], total_size: int) -> None:
    """Ensure parts are ordered, contiguous from 0, and cover the whole file."""
    expected = 0
    for part in parts:
        if part.offset != expected:
            raise ProtocolViolationError(
                f"Part {part.part_id} starts at {part.offset}, expected {expected}"
            )
        expected += part.size
    if expected != total_size:
        raise ProtocolViolationError(
            f"Uploaded parts cover {expected} bytes but the file has {total_size}"
        )


def _read_range(handle: IO[bytes], offset: int, size: int) -> bytes:
    handle.seek(offset)
    return handle.read(size)


def _retry_after(response: httpx.Response, default: float = 1.0) -> float:
    try:
        return max(float(response.headers.get("Retry-After", default)), 0.0)
    except ValueError:
        return default


class ChunkedUploadEngine:
    """Upload one large file through a Box upload session."""

    def __init__(
        self,
        api: "BoxAPIClient",
        *,
        max_commit_polls: int = 5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._api = api
        self._max_commit_polls = max_commit_polls
        self._sleep = sleep

    async def upload(
        self,
        folder_id: str,
        file_path: Path,
        file_size: Optional[int] = None,
    ) -> str:
        """Upload ``file_path`` into ``folder_id`` and return the new file id."""
        file_path = Path(file_path)
        if file_size is None:
            file_size = (await asyncio.to_thread(file_path.stat)).st_size

        session = await self._api.create_upload_session(folder_id, file_path.name, file_size)
        if session.total_size != file_size:
            raise ProtocolViolationError(
                f"Upload session expects {session.total_size} bytes, file has {file_size}"
            )
        logger.info(
            "Upload session %s opened for %s (%d bytes, part size %d)",
            session.session_id,
            file_path.name,
            file_size,
            session.part_size,
        )

        parts, file_digest = await self._upload_parts(session, file_path)
        verify_parts(parts, file_size)
        file_id = await self._commit(session, parts, file_digest)
        logger.info("Upload session %s committed as file %s", session.session_id, file_id)
        return file_id

    async def _upload_parts(
        self, session: UploadSession, file_path: Path
    ) -> Tuple[List[UploadPart], str]:
        ranges = plan_parts(session.total_size, session.part_size)
        file_hash = hashlib.sha1()
        parts: List[UploadPart] = []

        handle = await asyncio.to_thread(file_path.open, "rb")
        try:
            for index, (offset, size) in enumerate(ranges, start=1):
                chunk = await asyncio.to_thread(_read_range, handle, offset, size)
                if len(chunk) != size:
                    raise ProtocolViolationError(
                        f"Read {len(chunk)} bytes at offset {offset}, expected {size}; "
                        "was the file modified during upload?"
                    )
                file_hash.update(chunk)
                ack = await self._api.upload_part(session, chunk, offset, sha1_b64(chunk))
                parts.append(self._accept(ack, offset, size, hashlib.sha1(chunk).hexdigest()))
                logger.debug("Uploaded part %d/%d of session %s", index, len(ranges), session.session_id)
        finally:
            await asyncio.to_thread(handle.close)

        return parts, base64.b64encode(file_hash.digest()).decode("ascii")

    @staticmethod
    def _accept(ack: Dict[str, Any], offset: int, size: int, sha1_hex: str) -> UploadPart:
        # Acknowledgments carry hex SHA-1; only the Digest headers use base64.
        part_id = ack.get("part_id")
        if not part_id:
            raise ProtocolViolationError(f"Part at offset {offset} was not acknowledged")
        if ack.get("offset", offset) != offset or ack.get("size", size) != size:
            raise ProtocolViolationError(
                f"Part {part_id} acknowledged as offset={ack.get('offset')} size={ack.get('size')}, "
                f"sent offset={offset} size={size}"
            )
        if str(ack.get("sha1", sha1_hex)).lower() != sha1_hex:
            raise ProtocolViolationError(f"Part {part_id} digest mismatch; data corrupted in transit")
        return UploadPart(part_id=part_id, offset=offset, size=size, sha1=sha1_hex)

    async def _commit(
        self, session: UploadSession, parts: List[UploadPart], file_digest: str
    ) -> str:
        for attempt in range(self._max_commit_polls + 1):
            response = await self._api.commit_upload_session(session, parts, file_digest)
            if response.status_code != httpx.codes.ACCEPTED:
                entries = response.json().get("entries") or [{}]
                file_id = entries[0].get("id")
                if not file_id:
                    raise ProtocolViolationError(
                        f"Commit of session {session.session_id} returned no file id"
                    )
                return file_id

            if attempt == self._max_commit_polls:
                break
            delay = _retry_after(response)
            logger.info(
                "Session %s still processing parts; retrying commit in %.1fs",
                session.session_id,
                delay,
            )
            await self._sleep(delay)

        raise ProtocolViolationError(
            f"Session {session.session_id} was not committed after "
            f"{self._max_commit_polls + 1} attempts"
        )


__all__ = [
    "CHUNKED_UPLOAD_THRESHOLD",
    "ChunkedUploadEngine",
    "plan_parts",
    "sha1_b64",
    "verify_parts",
]
