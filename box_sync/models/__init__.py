"""Persistent domain models."""

from .credentials import CredentialRecord

__all__ = ["CredentialRecord"]
