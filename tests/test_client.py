from __future__ import annotations

import json

import httpx
import pytest

from box_sync import BoxClient, BoxSettings
from box_sync.core.errors import AuthenticationError, BoxError

API = "https://api.box.com/2.0"


class FakeBox:
    """Token endpoint plus a files endpoint that rejects the first access token."""

    def __init__(self, rejected: set[str] | None = None) -> None:
        self.rejected = rejected or set()
        self.token_requests = 0
        self.api_tokens: list[str] = []
        self.uploads: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth2/token":
            self.token_requests += 1
            n = self.token_requests
            return httpx.Response(
                200,
                json={"access_token": f"a{n}", "refresh_token": f"r{n}", "expires_in": 3600},
            )

        token = request.headers["Authorization"].removeprefix("Bearer ")
        self.api_tokens.append(token)
        if token in self.rejected:
            return httpx.Response(401, json={"message": "Unauthorized"})
        if request.url.path == "/api/2.0/files/content":
            self.uploads.append(request)
            return httpx.Response(201, json={"entries": [{"id": "new-file", "type": "file"}]})
        return httpx.Response(200, json={"id": "1", "name": "doc.txt"})


def _client(tmp_path, server: FakeBox, **overrides) -> BoxClient:
    settings = BoxSettings(
        client_id="client",
        client_secret="secret",
        token_storage_path=tmp_path / "tokens.json",
        drive_root=tmp_path / "Box",
        **overrides,
    )
    return BoxClient(settings, http_client=httpx.AsyncClient(transport=httpx.MockTransport(server)))


@pytest.mark.anyio
async def test_rejected_token_is_refreshed_and_persisted(tmp_path) -> None:
    server = FakeBox(rejected={"a1"})

    async with _client(tmp_path, server, refresh_token="r0") as client:
        info = await client.api.get_file_info("1")

    assert info["name"] == "doc.txt"
    assert server.token_requests == 2
    assert server.api_tokens == ["a1", "a2"]
    stored = json.loads((tmp_path / "tokens.json").read_text())
    assert stored["refreshToken"] == "r2"
    assert stored["clientId"] == "client"


@pytest.mark.anyio
async def test_stored_tokens_are_reused_by_next_client(tmp_path) -> None:
    server = FakeBox()
    async with _client(tmp_path, server, refresh_token="r0") as client:
        await client.api.get_file_info("1")

    async with _client(tmp_path, server) as client:
        await client.api.get_file_info("1")

    assert server.token_requests == 1
    assert server.api_tokens == ["a1", "a1"]


@pytest.mark.anyio
async def test_manual_access_token_is_used_without_refresh(tmp_path) -> None:
    server = FakeBox(rejected={"manual"})

    async with _client(tmp_path, server, access_token="manual") as client:
        assert await client.ensure_valid() == "manual"
        with pytest.raises(AuthenticationError):
            await client.api.get_file_info("1")

    assert server.token_requests == 0


@pytest.mark.anyio
async def test_small_file_uses_single_request_upload(tmp_path) -> None:
    source = tmp_path / "notes.txt"
    source.write_text("hello box")
    server = FakeBox()

    async with _client(tmp_path, server, access_token="manual") as client:
        file_id = await client.upload_file("42", source)

    assert file_id == "new-file"
    assert len(server.uploads) == 1
    assert b"hello box" in server.uploads[0].content


@pytest.mark.anyio
async def test_sync_status_uses_configured_drive_root(tmp_path) -> None:
    (tmp_path / "Box").mkdir()
    server = FakeBox()

    async with _client(tmp_path, server, access_token="manual") as client:
        status = await client.wait_for_sync("0", "folder")
        assert await client.is_synced("0", "folder") is True

    assert status.synced is True
    assert status.local_path == tmp_path / "Box"
    assert server.api_tokens == []


@pytest.mark.anyio
async def test_open_locally_refuses_unsynced_item(tmp_path) -> None:
    (tmp_path / "Box").mkdir()
    server = FakeBox()

    async with _client(
        tmp_path, server, access_token="manual", sync_timeout=0.01, sync_interval=0.01
    ) as client:
        with pytest.raises(BoxError, match="Cannot open file 1"):
            await client.open_locally("1", "file")
