"""Vault: Encryption at rest for stored credentials.

Security Note (Threat Model):
    The installation key is read from the protected key store for each
    operation and decrypted passwords live in process memory while they
    are used. A memory dump of the application process can expose them.
    Mitigation needs hardware-backed key storage and is out of scope.
"""

from .crypto import CipherCodec, SecretKey, generate_key
from .keys import KeyManager
from .keystore import EncryptedFileKeyStore, MemoryKeyStore, ProtectedKeyStore
from .result import Outcome, Result
from .config import VaultConfig, load_master_key, generate_master_key
from .migration import reencrypt_records
from .service import VaultService

__all__ = [
    "CipherCodec",
    "SecretKey",
    "generate_key",
    "KeyManager",
    "EncryptedFileKeyStore",
    "MemoryKeyStore",
    "ProtectedKeyStore",
    "Outcome",
    "Result",
    "VaultConfig",
    "load_master_key",
    "generate_master_key",
    "reencrypt_records",
    "VaultService",
]
