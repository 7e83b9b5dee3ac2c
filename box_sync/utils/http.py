"""HTTP utilities: error tagging at the transport boundary and retry/recovery."""

from __future__ import annotations

import asyncio
import contextvars
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, TypeVar

import httpx

from box_sync.core.errors import AuthenticationError, TransientNetworkError, error_for_status

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from box_sync.services.token_manager import TokenLifecycleManager

T = TypeVar("T")
Operation = Callable[[str], Awaitable[T]]
Sleep = Callable[[float], Awaitable[None]]

logger = logging.getLogger(__name__)

# Connection resets surface as ReadError/RemoteProtocolError, DNS failures and
# refusals as ConnectError; all of them are safe to retry.
TRANSIENT_TRANSPORT_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)

_recovering: contextvars.ContextVar[bool] = contextvars.ContextVar(
    "box_sync_recovering", default=False
)


def _parse_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def raise_for_box_status(response: httpx.Response) -> httpx.Response:
    """Raise the tagged error for a non-2xx response, else return it."""
    if response.is_success:
        return response
    body = _parse_body(response)
    message = body.get("message") or body.get("error_description") or response.reason_phrase
    raise error_for_status(response.status_code, message, body=body)


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    access_token: str | None = None,
    headers: Dict[str, str] | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """Perform one request and translate failures into ``BoxError`` variants."""
    request_headers = dict(headers or {})
    if access_token:
        request_headers["Authorization"] = f"Bearer {access_token}"
    try:
        response = await client.request(method, url, headers=request_headers, **kwargs)
    except TRANSIENT_TRANSPORT_ERRORS as exc:
        raise TransientNetworkError(f"{type(exc).__name__} during {method} {url}: {exc}") from exc
    return raise_for_box_status(response)


class RetryConfig:
    def __init__(self, *, max_retries: int = 3, backoff_seconds: float = 1.0) -> None:
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (0-based): base * 2**attempt."""
        return self.backoff_seconds * (2 ** attempt)


class RequestExecutor:
    """Run Box operations with network retries and one 401 recovery cycle.

    An operation is an async callable receiving the bearer token to use.
    """

    def __init__(
        self,
        token_manager: "TokenLifecycleManager",
        retry_config: RetryConfig | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._tokens = token_manager
        self._retry = retry_config or RetryConfig()
        self._sleep = sleep

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry

    async def execute(self, operation: Operation[T]) -> T:
        token = await self._tokens.ensure_valid()
        try:
            return await self._with_network_retry(operation, token)
        except AuthenticationError:
            if _recovering.get():
                raise

        reset = _recovering.set(True)
        try:
            token = await self._tokens.recover(token)
            return await self._with_network_retry(operation, token)
        finally:
            _recovering.reset(reset)

    async def _with_network_retry(self, operation: Operation[T], token: str) -> T:
        attempt = 0
        while True:
            try:
                return await operation(token)
            except TransientNetworkError as exc:
                if attempt >= self._retry.max_retries:
                    logger.error("Giving up after %d retries: %s", attempt, exc)
                    raise
                delay = self._retry.delay_for(attempt)
                attempt += 1
                logger.warning(
                    "Transient network error (%s); retry %d/%d in %.1fs",
                    exc,
                    attempt,
                    self._retry.max_retries,
                    delay,
                )
                await self._sleep(delay)


__all__ = [
    "RequestExecutor",
    "RetryConfig",
    "TRANSIENT_TRANSPORT_ERRORS",
    "raise_for_box_status",
    "send",
]
