"""
Client configuration models and helpers.

Settings are read from ``BOX_*`` environment variables (and an optional
``.env`` file) but can always be passed explicitly, so the library never
depends on process-wide state.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BoxSettings(BaseSettings):
    """Configuration for Box authentication and Box Drive integration."""

    model_config = SettingsConfigDict(
        env_prefix="BOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Authentication
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    redirect_uri: str = "https://oauth.pstmn.io/v1/callback"
    access_token: Optional[str] = Field(
        None,
        description="Developer token for quick testing; never refreshed.",
    )
    refresh_token: Optional[str] = None
    token_storage_path: Optional[Path] = Field(
        None,
        description="Overrides the platform default location of tokens.json.",
    )
    token_encryption_secret: Optional[str] = Field(
        None,
        description="Secret used to derive the key encrypting stored tokens.",
    )
    token_refresh_window_seconds: float = Field(30.0, ge=0)

    # Box Drive
    drive_root: Optional[Path] = None
    domain: str = "app.box.com"
    sync_timeout: float = Field(30.0, gt=0, description="Seconds to wait for sync.")
    sync_interval: float = Field(1.0, gt=0, description="Seconds between sync checks.")

    # Transport
    api_base_url: str = "https://api.box.com/2.0"
    upload_base_url: str = "https://upload.box.com/api/2.0"
    oauth_authorize_url: str = "https://account.box.com/api/oauth2/authorize"
    oauth_token_url: str = "https://api.box.com/oauth2/token"
    http_timeout: float = 30.0
    allow_insecure: bool = Field(
        False,
        description="Disable TLS verification. Only for development setups.",
    )
    max_retries: int = Field(3, ge=0)
    retry_backoff_seconds: float = Field(1.0, ge=0)

    log_level: str = "INFO"

    @field_validator("drive_root", "token_storage_path", mode="before")
    @classmethod
    def _expand_user(cls, value: Optional[str | Path]) -> Optional[Path]:
        """Allow ``~`` in configured paths."""
        if value in (None, ""):
            return None
        return Path(value).expanduser()


@lru_cache()
def get_settings() -> BoxSettings:
    """Return a cached settings object built from the environment."""
    return BoxSettings()


__all__ = ["BoxSettings", "get_settings"]
