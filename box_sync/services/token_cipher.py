"""Symmetric encryption for tokens persisted in the credential file."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken


class TokenCipherService:
    """Encrypt and decrypt token strings using a derived Fernet key.

    Ciphertexts carry a ``fernet:`` prefix so plaintext tokens written by a
    client without a configured secret are still readable.
    """

    PREFIX = "fernet:"

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            return plaintext
        token = self._fernet.encrypt(plaintext.encode("utf-8"))
        return self.PREFIX + token.decode("utf-8")

    def decrypt(self, stored: str) -> str:
        """Return the plaintext token; unprefixed values are returned as-is."""
        if not stored.startswith(self.PREFIX):
            return stored
        try:
            plaintext = self._fernet.decrypt(stored[len(self.PREFIX):].encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError(
                "Failed to decrypt stored token; was the encryption secret changed?"
            ) from exc
        return plaintext.decode("utf-8")


__all__ = ["TokenCipherService"]
