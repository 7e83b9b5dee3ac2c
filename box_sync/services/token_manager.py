"""
Access token lifecycle for the Box client.

The manager owns the single :class:`CredentialRecord` shared by every request.
The record is only replaced inside the one in-flight refresh operation;
concurrent callers that find the token expired await that same operation.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Union

from box_sync.core.errors import AuthenticationError, CredentialMissingError, InvalidGrantError
from box_sync.models import CredentialRecord

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from box_sync.clients.box_auth import BoxOAuthClient, TokenGrant
    from box_sync.clients.credential_store import CredentialStore

TokenProvider = Callable[[str], Union[str, Awaitable[str]]]
Clock = Callable[[], datetime]

logger = logging.getLogger(__name__)

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenState(str, Enum):
    NO_CREDENTIALS = "no_credentials"
    VALID = "valid"
    EXPIRED = "expired"
    REFRESHING = "refreshing"
    PROVIDER_AUTH = "provider_auth"


class TokenLifecycleManager:
    """Keep a valid access token available, refreshing it at most once at a time.

    Three token sources are reconciled:

    * the record persisted by :class:`CredentialStore` (loaded once, before any
      validity decision),
    * tokens passed by the caller,
    * a fresh authorization obtained through ``token_provider``, which receives
      the authorization URL and returns the authorization code.

    A manual ``access_token`` without refresh token or provider is trusted for
    the lifetime of the manager and never refreshed.
    """

    def __init__(
        self,
        oauth_client: "BoxOAuthClient",
        store: "CredentialStore",
        *,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        token_provider: Optional[TokenProvider] = None,
        refresh_window: timedelta = timedelta(seconds=30),
        clock: Clock = _utcnow,
    ) -> None:
        self._oauth = oauth_client
        self._store = store
        self._token_provider = token_provider
        self._refresh_window = refresh_window
        self._clock = clock

        self._manual = bool(access_token) and not refresh_token and token_provider is None
        self._record: Optional[CredentialRecord] = None
        if access_token or refresh_token:
            # The expiry of caller-provided tokens is unknown; treat them as
            # expired so the first call refreshes (unless in manual mode).
            self._record = CredentialRecord(
                access_token=access_token or "",
                refresh_token=refresh_token or "",
                expires_at=_EPOCH,
                client_id=oauth_client.client_id,
            )

        self._load_task: Optional[asyncio.Future[None]] = None
        self._flight: Optional[asyncio.Future[str]] = None
        self._phase: Optional[TokenState] = None

    @property
    def manual_mode(self) -> bool:
        return self._manual

    @property
    def record(self) -> Optional[CredentialRecord]:
        return self._record

    @property
    def state(self) -> TokenState:
        if self._manual:
            return TokenState.VALID
        if self._phase is not None:
            return self._phase
        record = self._record
        if record is None or not (record.access_token or record.refresh_token):
            return TokenState.NO_CREDENTIALS
        if record.access_token and not self._is_expired(record):
            return TokenState.VALID
        return TokenState.EXPIRED

    def start_loading(self) -> None:
        """Begin reading the credential store without waiting for it."""
        if self._manual or self._load_task is not None:
            return
        self._load_task = asyncio.ensure_future(self._load_from_store())

    async def load(self) -> None:
        """Wait until the stored credentials have been applied (once)."""
        self.start_loading()
        if self._load_task is not None:
            await asyncio.shield(self._load_task)

    async def ensure_valid(self) -> str:
        """Return an access token judged valid now, refreshing if needed."""
        if self._manual:
            return self._record.access_token  # type: ignore[union-attr]

        await self.load()
        record = self._record
        if record is not None and record.access_token and not self._is_expired(record):
            return record.access_token
        return await self._single_flight()

    def invalidate(self) -> None:
        """Forget the current access token; the refresh token is kept."""
        if self._manual or self._record is None:
            return
        self._record = self._record.model_copy(update={"access_token": "", "expires_at": _EPOCH})

    async def recover(self, stale_token: str) -> str:
        """Replace an access token the server rejected.

        When another caller already replaced ``stale_token`` the current token
        is returned without a second exchange.
        """
        if self._manual:
            raise AuthenticationError(
                401,
                "Access token was rejected and no refresh token or token provider is configured",
            )

        await self.load()
        if self._flight is not None:
            return await asyncio.shield(self._flight)

        record = self._record
        if (
            record is not None
            and record.access_token
            and record.access_token != stale_token
            and not self._is_expired(record)
        ):
            return record.access_token

        logger.warning("Access token rejected by Box; refreshing credentials")
        self.invalidate()
        return await self._single_flight()

    def _is_expired(self, record: CredentialRecord) -> bool:
        return self._clock() >= record.expires_at - self._refresh_window

    async def _load_from_store(self) -> None:
        stored = await self._store.load()
        if stored is None:
            return

        configured_client = self._oauth.client_id
        if configured_client and stored.client_id and stored.client_id != configured_client:
            logger.info(
                "Ignoring stored credentials issued to a different client id (%s)",
                stored.client_id,
            )
            return
        # Refresh tokens rotate on every exchange, so the stored one is newer
        # than anything passed in at construction time.
        self._record = stored

    async def _single_flight(self) -> str:
        if self._flight is None:
            self._flight = asyncio.ensure_future(self._refresh_or_authorize())
        # A cancelled caller must not cancel the exchange other callers share.
        return await asyncio.shield(self._flight)

    async def _refresh_or_authorize(self) -> str:
        try:
            self._oauth.require_credentials()
            previous = self._record
            issued_at = self._clock()

            if previous is not None and previous.refresh_token:
                self._phase = TokenState.REFRESHING
                try:
                    grant = await self._oauth.refresh_token(previous.refresh_token)
                except InvalidGrantError as exc:
                    logger.warning("Refresh token rejected (%s); starting a new authorization", exc)
                    self._record = previous.model_copy(
                        update={"access_token": "", "refresh_token": "", "expires_at": _EPOCH}
                    )
                    grant = await self._authorize(cause=exc)
                    issued_at = self._clock()
            else:
                grant = await self._authorize()

            record = self._record_from_grant(grant, issued_at, previous)
            self._record = record
            await self._store.save(record)
            return record.access_token
        finally:
            self._flight = None
            self._phase = None

    async def _authorize(self, cause: Optional[BaseException] = None) -> "TokenGrant":
        if self._token_provider is None:
            raise CredentialMissingError(
                "No token provider configured. Please provide one via:\n"
                "1. BoxClient(settings, token_provider=async_callable)\n"
                "2. A refresh token: BoxSettings(refresh_token=...) or BOX_REFRESH_TOKEN\n"
            ) from cause

        self._phase = TokenState.PROVIDER_AUTH
        authorization_url = self._oauth.build_authorization_url()
        code = self._token_provider(authorization_url)
        if inspect.isawaitable(code):
            code = await code
        if not code:
            raise CredentialMissingError("Token provider returned no authorization code.")

        logger.info("Exchanging authorization code for new Box tokens")
        return await self._oauth.exchange_authorization_code(code)

    def _record_from_grant(
        self,
        grant: "TokenGrant",
        issued_at: datetime,
        previous: Optional[CredentialRecord],
    ) -> CredentialRecord:
        expires_at = issued_at + timedelta(seconds=grant.expires_in)
        if previous is not None and previous.expires_at > expires_at:
            expires_at = previous.expires_at
        client_id = self._oauth.client_id or (previous.client_id if previous else "")
        return CredentialRecord(
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=expires_at,
            client_id=client_id,
        )


__all__ = ["TokenLifecycleManager", "TokenProvider", "TokenState"]
