"""
Domain model for persisted OAuth credentials.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CredentialRecord(BaseModel):
    """Token set owned by the token lifecycle manager.

    Serialized with camelCase keys so the stored file stays readable by other
    fs-box-sync clients.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    access_token: str = Field("", alias="accessToken")
    refresh_token: str = Field("", alias="refreshToken")
    expires_at: datetime = Field(..., alias="expiresAt")
    client_id: str = Field("", alias="clientId")

    @field_validator("expires_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


__all__ = ["CredentialRecord"]
