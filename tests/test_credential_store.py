from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from box_sync.clients.credential_store import CredentialStore, default_storage_path
from box_sync.models import CredentialRecord
from box_sync.services.token_cipher import TokenCipherService


def _record() -> CredentialRecord:
    return CredentialRecord(
        access_token="access",
        refresh_token="refresh",
        expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc),
        client_id="client",
    )


def test_default_path_lives_in_app_config_dir() -> None:
    path = default_storage_path()

    assert path.name == "tokens.json"
    assert path.parent.name == "fs-box-sync"


@pytest.mark.asyncio
async def test_saved_record_uses_camel_case_keys(tmp_path) -> None:
    store = CredentialStore(tmp_path / "nested" / "tokens.json")

    assert await store.save(_record()) is True

    payload = json.loads((tmp_path / "nested" / "tokens.json").read_text())
    assert payload["refreshToken"] == "refresh"
    assert payload["clientId"] == "client"
    assert payload["expiresAt"].startswith("2030-01-01")
    assert await store.load() == _record()


@pytest.mark.asyncio
async def test_missing_or_corrupt_file_loads_as_none(tmp_path) -> None:
    path = tmp_path / "tokens.json"
    store = CredentialStore(path)

    assert await store.load() is None

    path.write_text("{not json")
    assert await store.load() is None


@pytest.mark.asyncio
async def test_record_without_refresh_token_is_not_persisted(tmp_path) -> None:
    store = CredentialStore(tmp_path / "tokens.json")
    record = _record().model_copy(update={"refresh_token": ""})

    assert await store.save(record) is False
    assert not (tmp_path / "tokens.json").exists()


@pytest.mark.asyncio
async def test_tokens_are_encrypted_when_cipher_configured(tmp_path) -> None:
    path = tmp_path / "tokens.json"
    cipher = TokenCipherService(secret="s3cret")
    store = CredentialStore(path, cipher=cipher)

    await store.save(_record())

    raw = path.read_text()
    assert "refresh\"" not in raw
    assert json.loads(raw)["refreshToken"].startswith(TokenCipherService.PREFIX)
    assert await store.load() == _record()


@pytest.mark.asyncio
async def test_plaintext_file_is_readable_with_cipher(tmp_path) -> None:
    path = tmp_path / "tokens.json"
    await CredentialStore(path).save(_record())

    loaded = await CredentialStore(path, cipher=TokenCipherService(secret="s3cret")).load()

    assert loaded is not None
    assert loaded.refresh_token == "refresh"


@pytest.mark.asyncio
async def test_clear_removes_file(tmp_path) -> None:
    path = tmp_path / "tokens.json"
    store = CredentialStore(path)
    await store.save(_record())

    await store.clear()
    await store.clear()

    assert not path.exists()


def test_naive_expiry_is_treated_as_utc() -> None:
    record = CredentialRecord(
        accessToken="a",
        refreshToken="r",
        expiresAt=datetime(2030, 1, 1) + timedelta(hours=1),
        clientId="c",
    )

    assert record.expires_at.tzinfo is timezone.utc
