"""
Protected Key Store: access-controlled alias → string storage for key blobs.

``ProtectedKeyStore`` is the capability the ``KeyManager`` is given. Two
implementations ship with the package:

- ``MemoryKeyStore``: dict-backed, for tests and ephemeral vaults.
- ``EncryptedFileKeyStore``: a JSON document on disk whose aliases are
  sealed with AES-SIV (deterministic, so they can be looked up) and whose
  values are sealed with AES-256-GCM. Both sub-keys are derived from a
  32-byte master key with HKDF under separate contexts.

Every store exposes a re-entrant ``lock``. Handles on the same storage share
it; for the file store that is every handle on the same resolved path.

Document layout::

    {"version": 1, "check": "<b64 nonce|ct>", "entries": {"<b64 siv(alias)>": "<b64 nonce|ct>"}}

Security Note:
    Never log stored values or the master key. Only log paths and aliases.
"""
import os
import abc
import logging
import threading
from pathlib import Path
from typing import Optional, Union

import orjson
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, AESSIV

from ..exceptions import KeyStoreError
from ..utils import atomic_write
from .crypto import KEY_LENGTH, b64decode, b64encode, derive_key

logger = logging.getLogger("credential_vault.vault")

NONCE_SIZE = 12  # 96-bit nonce
_FORMAT_VERSION = 1
_CHECK_PLAINTEXT = b"credential-vault-keystore"

# one lock per store file, shared by every handle opened on it
_path_locks: dict[str, threading.RLock] = {}
_path_locks_guard = threading.Lock()


def _lock_for_path(path: Path) -> threading.RLock:
    key = str(path.resolve())
    with _path_locks_guard:
        lock = _path_locks.get(key)
        if lock is None:
            lock = _path_locks[key] = threading.RLock()
        return lock


class ProtectedKeyStore(abc.ABC):
    """Alias → string mapping backed by protected storage.

    Implementations raise ``KeyStoreError`` when the underlying storage
    cannot be read or written.
    """

    @property
    @abc.abstractmethod
    def lock(self) -> threading.RLock:
        """Re-entrant lock shared by every handle on the same storage.

        ``KeyManager`` holds it around the check-then-generate sequence, so
        two handles on one storage must return the same lock.
        """

    @abc.abstractmethod
    def initialize(self) -> bool:
        """Create the store if it does not exist yet.

        Returns:
            True if the store was created, False if it already existed.
        """

    @abc.abstractmethod
    def get(self, alias: str) -> Optional[str]:
        """Return the value stored under ``alias``, or None."""

    @abc.abstractmethod
    def put(self, alias: str, value: str) -> None:
        """Store ``value`` under ``alias``, replacing any previous value."""


class MemoryKeyStore(ProtectedKeyStore):
    """In-process key store."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})
        self._initialized = False
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def initialize(self) -> bool:
        with self._lock:
            if self._initialized:
                return False
            self._initialized = True
            return True

    def get(self, alias: str) -> Optional[str]:
        with self._lock:
            return self._data.get(alias)

    def put(self, alias: str, value: str) -> None:
        with self._lock:
            self._data[alias] = value


class EncryptedFileKeyStore(ProtectedKeyStore):
    """Key store persisted as an encrypted JSON document.

    Args:
        path: Location of the store document.
        master_key: Raw 32-byte key protecting the document.
    """

    def __init__(self, path: Union[str, Path], master_key: bytes):
        if len(master_key) != KEY_LENGTH:
            raise ValueError(
                f"master_key must be exactly {KEY_LENGTH} bytes, "
                f"got {len(master_key)}"
            )
        self.path = Path(path)
        self._alias_cipher = AESSIV(
            derive_key(master_key, "keystore-aliases", length=64)
        )
        self._value_cipher = AESGCM(derive_key(master_key, "keystore-values"))
        self._lock = _lock_for_path(self.path)

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def __repr__(self) -> str:
        return f"<EncryptedFileKeyStore path={str(self.path)!r}>"

    # ------------------------------------------------------------------
    # Sealing helpers
    # ------------------------------------------------------------------

    def _seal_alias(self, alias: str) -> str:
        return b64encode(self._alias_cipher.encrypt(alias.encode("utf-8"), None))

    def _seal_value(self, aad: bytes, value: bytes) -> str:
        nonce = os.urandom(NONCE_SIZE)
        return b64encode(nonce + self._value_cipher.encrypt(nonce, value, aad))

    def _open_value(self, aad: bytes, sealed: str) -> bytes:
        raw = b64decode(sealed)
        if len(raw) < NONCE_SIZE + 16:
            raise ValueError("sealed value too short")
        return self._value_cipher.decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], aad)

    # ------------------------------------------------------------------
    # Document I/O
    # ------------------------------------------------------------------

    def _read(self) -> dict[str, str]:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError as err:
            raise KeyStoreError(
                f"Key store {self.path} has not been initialized"
            ) from err
        except OSError as err:
            raise KeyStoreError(f"Cannot read key store {self.path}: {err}") from err
        try:
            document = orjson.loads(raw)
        except orjson.JSONDecodeError as err:
            raise KeyStoreError(f"Key store {self.path} is not valid JSON") from err
        if (
            not isinstance(document, dict)
            or document.get("version") != _FORMAT_VERSION
            or not isinstance(document.get("entries"), dict)
            or not isinstance(document.get("check"), str)
        ):
            raise KeyStoreError(f"Key store {self.path} has an unknown layout")
        if not all(
            isinstance(name, str) and isinstance(value, str)
            for name, value in document["entries"].items()
        ):
            raise KeyStoreError(f"Key store {self.path} has malformed entries")
        try:
            self._open_value(b"check", document["check"])
        except (ValueError, InvalidTag) as err:
            raise KeyStoreError(
                f"Master key does not open key store {self.path}"
            ) from err
        return document["entries"]

    def _write(self, entries: dict[str, str]) -> None:
        document = {
            "version": _FORMAT_VERSION,
            "check": self._seal_value(b"check", _CHECK_PLAINTEXT),
            "entries": entries,
        }
        try:
            atomic_write(self.path, orjson.dumps(document, option=orjson.OPT_SORT_KEYS))
        except OSError as err:
            raise KeyStoreError(f"Cannot write key store {self.path}: {err}") from err

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def initialize(self) -> bool:
        with self._lock:
            if self.path.exists():
                # validates layout and master key, changes nothing
                self._read()
                return False
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            except OSError as err:
                raise KeyStoreError(
                    f"Cannot create key store directory {self.path.parent}: {err}"
                ) from err
            self._write({})
            logger.info("Created key store %s", self.path)
            return True

    def get(self, alias: str) -> Optional[str]:
        with self._lock:
            entries = self._read()
        sealed = entries.get(self._seal_alias(alias))
        if sealed is None:
            return None
        try:
            return self._open_value(alias.encode("utf-8"), sealed).decode("utf-8")
        except (ValueError, InvalidTag) as err:
            raise KeyStoreError(
                f"Entry {alias!r} in key store {self.path} is corrupted"
            ) from err

    def put(self, alias: str, value: str) -> None:
        with self._lock:
            entries = self._read()
            entries[self._seal_alias(alias)] = self._seal_value(
                alias.encode("utf-8"), value.encode("utf-8")
            )
            self._write(entries)
        logger.debug("Key store %s: stored alias=%s", self.path, alias)
