"""Credential Vault exceptions."""
from typing import Any, Optional


class VaultError(Exception):
    """Base class for every error raised by the vault."""


class KeyStoreError(VaultError):
    """The protected key store could not be read or written."""


class VaultLockedError(VaultError):
    """The vault was used before a successful unlock."""


class KeyUnavailableError(VaultError):
    """No usable encryption key could be loaded or created.

    ``outcome`` tells why: the key store failed, or the stored key blob
    is corrupted.
    """

    def __init__(self, message: str, outcome: Optional[Any] = None):
        super().__init__(message)
        self.outcome = outcome


class EncryptionError(VaultError):
    """A secret could not be encrypted, so it was not persisted."""


class RecordNotFoundError(VaultError, KeyError):
    """No credential record exists under the given identifier."""

    def __str__(self) -> str:
        return Exception.__str__(self)
