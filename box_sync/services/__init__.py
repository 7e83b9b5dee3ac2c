"""Service layer exports."""

from .token_cipher import TokenCipherService
from .chunked_upload import CHUNKED_UPLOAD_THRESHOLD, ChunkedUploadEngine
from .sync_verifier import LocalSyncVerifier
from .token_manager import TokenLifecycleManager, TokenProvider, TokenState

__all__ = [
    "CHUNKED_UPLOAD_THRESHOLD",
    "ChunkedUploadEngine",
    "LocalSyncVerifier",
    "TokenCipherService",
    "TokenLifecycleManager",
    "TokenProvider",
    "TokenState",
]
