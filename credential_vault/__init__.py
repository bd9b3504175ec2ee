"""Credential Vault.

Local credential storage with every password encrypted at rest.
"""
from .version import __version__
from .exceptions import (
    VaultError,
    KeyStoreError,
    VaultLockedError,
    KeyUnavailableError,
    EncryptionError,
    RecordNotFoundError,
)
from .records import (
    CredentialRecord,
    RecordStore,
    MemoryRecordStore,
    JsonRecordStore,
)
from .strength import password_strength, strength_label
from .vault import (
    CipherCodec,
    KeyManager,
    MemoryKeyStore,
    EncryptedFileKeyStore,
    VaultConfig,
    VaultService,
)

__all__ = [
    "__version__",
    "VaultError",
    "KeyStoreError",
    "VaultLockedError",
    "KeyUnavailableError",
    "EncryptionError",
    "RecordNotFoundError",
    "CredentialRecord",
    "RecordStore",
    "MemoryRecordStore",
    "JsonRecordStore",
    "password_strength",
    "strength_label",
    "CipherCodec",
    "KeyManager",
    "MemoryKeyStore",
    "EncryptedFileKeyStore",
    "VaultConfig",
    "VaultService",
]
