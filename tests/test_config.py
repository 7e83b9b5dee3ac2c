from pathlib import Path

from box_sync.core.config import BoxSettings


def test_defaults_target_public_box_endpoints() -> None:
    settings = BoxSettings()

    assert settings.api_base_url == "https://api.box.com/2.0"
    assert settings.upload_base_url == "https://upload.box.com/api/2.0"
    assert settings.sync_timeout == 30
    assert settings.sync_interval == 1
    assert settings.max_retries == 3
    assert settings.drive_root is None


def test_settings_are_read_from_box_prefixed_env(monkeypatch) -> None:
    monkeypatch.setenv("BOX_CLIENT_ID", "env-client")
    monkeypatch.setenv("BOX_CLIENT_SECRET", "env-secret")
    monkeypatch.setenv("BOX_SYNC_TIMEOUT", "12.5")
    monkeypatch.setenv("BOX_MAX_RETRIES", "5")

    settings = BoxSettings()

    assert settings.client_id == "env-client"
    assert settings.client_secret == "env-secret"
    assert settings.sync_timeout == 12.5
    assert settings.max_retries == 5


def test_settings_are_read_from_dotenv(tmp_path) -> None:
    (tmp_path / ".env").write_text("BOX_REFRESH_TOKEN=from-dotenv\nUNRELATED=1\n")

    assert BoxSettings().refresh_token == "from-dotenv"


def test_home_relative_paths_are_expanded(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))

    settings = BoxSettings(drive_root="~/Box", token_storage_path="~/tokens.json")

    assert settings.drive_root == tmp_path / "Box"
    assert settings.token_storage_path == Path(tmp_path / "tokens.json")
