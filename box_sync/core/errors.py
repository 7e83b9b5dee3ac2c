"""
Exception hierarchy shared by every layer of the client.

Errors are tagged at the transport boundary (see ``box_sync.utils.http``) so
the request executor can match on the class instead of inspecting responses.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class BoxError(Exception):
    """Base class for all errors raised by the library."""


class CredentialMissingError(BoxError):
    """Raised when client credentials or a token source are not configured."""


class TokenExchangeError(BoxError):
    """Raised when the OAuth token endpoint returns an error."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidGrantError(TokenExchangeError):
    """The refresh token or authorization code was rejected as invalid."""


class TransientNetworkError(BoxError):
    """Connection-level failure that is safe to retry."""


class ProtocolViolationError(BoxError):
    """The upload protocol was broken by either side."""


class DriveRootNotFoundError(BoxError):
    """The local Box Drive root is neither configured nor detectable."""


class BoxAPIError(BoxError):
    """Non-success response from the Box API."""

    category = "Box API error"

    def __init__(
        self,
        status_code: int,
        remote_message: str = "",
        *,
        body: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.remote_message = remote_message
        self.body = body or {}
        super().__init__(self._format())

    def _format(self) -> str:
        if self.remote_message:
            return f"{self.category}: {self.remote_message}"
        return f"{self.category} (status {self.status_code})"


class BadRequestError(BoxAPIError):
    category = "Bad request"


class AuthenticationError(BoxAPIError):
    category = "Authentication failed"


class PermissionDeniedError(BoxAPIError):
    category = "Permission denied"


class NotFoundError(BoxAPIError):
    category = "Resource not found"


class ConflictError(BoxAPIError):
    category = "Conflict"


class ServerError(BoxAPIError):
    category = "Box server error"


_STATUS_ERRORS: Dict[int, type[BoxAPIError]] = {
    400: BadRequestError,
    401: AuthenticationError,
    403: PermissionDeniedError,
    404: NotFoundError,
    409: ConflictError,
}


def error_for_status(
    status_code: int,
    remote_message: str = "",
    *,
    body: Optional[Dict[str, Any]] = None,
) -> BoxAPIError:
    """Build the tagged error matching an HTTP status code."""
    if status_code >= 500:
        error_cls: type[BoxAPIError] = ServerError
    else:
        error_cls = _STATUS_ERRORS.get(status_code, BoxAPIError)
    return error_cls(status_code, remote_message, body=body)


__all__ = [
    "AuthenticationError",
    "BadRequestError",
    "BoxAPIError",
    "BoxError",
    "ConflictError",
    "CredentialMissingError",
    "DriveRootNotFoundError",
    "InvalidGrantError",
    "NotFoundError",
    "PermissionDeniedError",
    "ProtocolViolationError",
    "ServerError",
    "TokenExchangeError",
    "TransientNetworkError",
    "error_for_status",
]
