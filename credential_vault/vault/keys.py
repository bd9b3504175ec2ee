"""
Vault Keys: Lifecycle of the single installation encryption key.

The key is a random AES-256 key stored Base64-encoded in a
``ProtectedKeyStore`` under a reserved alias. It has two states,
absent and present; the only transition is absent → present through
``generate_and_save_key()``.

``get_key()`` cannot tell "no key yet" from "store unreadable". Use
``ensure_key()`` for the startup sequence: it only generates a key when
the store positively reports that none exists, so a transient storage
failure never replaces a key that encrypted existing records.

Security Note:
    Never log key material. Only log aliases and outcomes.
"""
import logging
from typing import Optional

from ..exceptions import KeyStoreError
from .. import conf
from .crypto import KEY_LENGTH, SecretKey, b64decode, b64encode, generate_key
from .keystore import ProtectedKeyStore
from .result import Outcome, Result

logger = logging.getLogger("credential_vault.vault")


class KeyManager:
    """Owns the installation key held in a protected key store.

    Args:
        store: Protected key store holding the key blob.
        alias: Reserved alias of the key blob.
    """

    def __init__(self, store: ProtectedKeyStore, alias: str = conf.VAULT_KEY_ALIAS):
        self._store = store
        self._alias = alias
        # shared by every handle on the same storage, so concurrent
        # first runs commit a single key
        self._lock = store.lock

    @property
    def alias(self) -> str:
        return self._alias

    def initialize(self) -> bool:
        """Make sure the protected key store exists.

        Idempotent. A storage failure is logged, not raised; callers see
        it later as an absent key.

        Returns:
            True if the store is ready.
        """
        with self._lock:
            try:
                created = self._store.initialize()
            except KeyStoreError as err:
                logger.error("Key store initialization failed: %s", err)
                return False
        if created:
            logger.info("Initialized key store for alias=%s", self._alias)
        return True

    def load_key(self) -> Result[SecretKey]:
        """Read and decode the stored key, reporting why it is unavailable."""
        try:
            blob = self._store.get(self._alias)
        except KeyStoreError as err:
            logger.error("Cannot read vault key alias=%s: %s", self._alias, err)
            return Result.io_failure(err)
        if blob is None:
            return Result.not_found()
        try:
            material = b64decode(blob)
        except ValueError as err:
            logger.error("Stored vault key alias=%s is not valid base64", self._alias)
            return Result.crypto_failure(err)
        if len(material) != KEY_LENGTH:
            logger.error(
                "Stored vault key alias=%s has %d bytes, expected %d",
                self._alias, len(material), KEY_LENGTH,
            )
            return Result.crypto_failure(
                ValueError(f"key must be {KEY_LENGTH} bytes, got {len(material)}")
            )
        return Result.success(SecretKey(material))

    def get_key(self) -> Optional[SecretKey]:
        """Return the stored key, or None if it is missing or unreadable."""
        return self.load_key().or_none()

    def _generate_and_save(self) -> Result[SecretKey]:
        key = generate_key()
        try:
            self._store.put(self._alias, b64encode(key.encoded))
        except KeyStoreError as err:
            logger.error("Cannot save vault key alias=%s: %s", self._alias, err)
            return Result.io_failure(err)
        logger.info("Generated new vault key alias=%s", self._alias)
        return Result.success(key)

    def generate_and_save_key(self) -> None:
        """Generate a new random key and store it, replacing any previous key.

        Failures are logged, not raised. Replacing an existing key makes
        every record encrypted with it unreadable; ``ensure_key()`` is the
        safe entry point.
        """
        with self._lock:
            if self.load_key().outcome is not Outcome.NOT_FOUND:
                logger.warning(
                    "Replacing vault key alias=%s; records encrypted with the "
                    "previous key can no longer be decrypted", self._alias,
                )
            self._generate_and_save()

    def ensure_key_result(self) -> Result[SecretKey]:
        """Load the key, generating one only when the store has none.

        Store and decode failures are returned as they are; they never
        cause a new key to be written.
        """
        with self._lock:
            result = self.load_key()
            if result.outcome is Outcome.NOT_FOUND:
                return self._generate_and_save()
            if not result.ok:
                logger.error(
                    "Vault key alias=%s unavailable (%s); not generating a "
                    "replacement", self._alias, result.outcome.value,
                )
            return result

    def ensure_key(self) -> Optional[SecretKey]:
        """Return the installation key, creating it on first use."""
        return self.ensure_key_result().or_none()
