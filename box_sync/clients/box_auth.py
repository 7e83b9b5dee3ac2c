"""
Box OAuth 2.0 utilities.

These helpers build the authorization URL and talk to the token endpoint.
Deciding *when* to refresh is the token lifecycle manager's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from box_sync.core.config import BoxSettings
from box_sync.core.errors import (
    CredentialMissingError,
    InvalidGrantError,
    TokenExchangeError,
    TransientNetworkError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenGrant:
    """Tokens returned by a successful exchange."""

    access_token: str
    refresh_token: str
    expires_in: int


class BoxOAuthClient:
    """Build Box authorization URLs and exchange codes or refresh tokens."""

    def __init__(self, settings: BoxSettings, http_client: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http = http_client

    @property
    def client_id(self) -> str:
        return self._settings.client_id or ""

    def require_credentials(self) -> None:
        """Raise when the client id or secret needed for exchanges is missing."""
        missing = []
        if not self._settings.client_id:
            missing.append("  - client_id")
        if not self._settings.client_secret:
            missing.append("  - client_secret")
        if missing:
            raise CredentialMissingError(
                "Missing required credentials. Please provide:\n"
                + "\n".join(missing)
                + "\n\nProvide via:\n"
                "1. BoxSettings(client_id=..., client_secret=...)\n"
                "2. Environment variables: BOX_CLIENT_ID, BOX_CLIENT_SECRET\n"
            )

    def build_authorization_url(self, state: Optional[str] = None) -> str:
        """Construct the Box consent URL handed to the token provider."""
        params = {"client_id": self.client_id, "response_type": "code"}
        if self._settings.redirect_uri:
            params["redirect_uri"] = self._settings.redirect_uri
        if state:
            params["state"] = state
        return f"{self._settings.oauth_authorize_url}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for a token pair."""
        return await self._post_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._settings.redirect_uri,
            }
        )

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh token; Box rotates the refresh token every time."""
        return await self._post_token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )

    async def _post_token(self, form: Dict[str, Any]) -> TokenGrant:
        self.require_credentials()
        payload = {
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            **form,
        }

        try:
            response = await self._http.post(self._settings.oauth_token_url, data=payload)
        except httpx.TransportError as exc:
            raise TransientNetworkError(f"Token endpoint unreachable: {exc}") from exc

        if response.status_code != httpx.codes.OK:
            raise self._exchange_error(response)

        token_payload = response.json()
        access_token = token_payload.get("access_token")
        expires_in = token_payload.get("expires_in")
        if not access_token or not expires_in:
            raise TokenExchangeError(
                "Incomplete token payload returned from Box.",
                status_code=response.status_code,
            )

        return TokenGrant(
            access_token=access_token,
            # Box always rotates, but keep the old one if a server ever omits it.
            refresh_token=token_payload.get("refresh_token") or form.get("refresh_token", ""),
            expires_in=int(expires_in),
        )

    @staticmethod
    def _exchange_error(response: httpx.Response) -> TokenExchangeError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        error_code = body.get("error", "")
        description = body.get("error_description") or response.text
        message = f"Token exchange failed ({response.status_code}): {error_code or description}"
        if error_code and description and description != error_code:
            message = f"{message} - {description}"

        # Box answers a revoked or expired refresh token with 400 invalid_grant.
        if response.status_code in (400, 401) or error_code == "invalid_grant":
            return InvalidGrantError(message, status_code=response.status_code)
        return TokenExchangeError(message, status_code=response.status_code)


__all__ = ["BoxOAuthClient", "TokenGrant"]
