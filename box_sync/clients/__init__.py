"""Expose constructed client wrappers."""

from .box_api import BoxAPIClient
from .box_auth import BoxOAuthClient, TokenGrant
from .credential_store import CredentialStore, default_storage_path

__all__ = [
    "BoxAPIClient",
    "BoxOAuthClient",
    "CredentialStore",
    "TokenGrant",
    "default_storage_path",
]
