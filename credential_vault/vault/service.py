"""
VaultService: Credential records with passwords encrypted at rest.

Provides the public API of the vault:
- ``open()``: pass the device unlock gate and make sure a key exists
- ``add(account, username, password)``: encrypt and persist a credential
- ``update(record_id, ...)``: change fields, re-encrypting a new password
- ``delete(record_id)``: remove a credential
- ``get(record_id)`` / ``list()``: decrypt and return credentials

Key store and cipher calls block, so they run in worker threads through
``asyncio.to_thread``. The key is loaded for each operation and is not
kept on the service.

Security Note:
    Never log plaintext or ciphertext values. Only log record ids,
    accounts and outcomes.
"""
import asyncio
import logging
from typing import Callable, Optional, Union

from ..exceptions import (
    EncryptionError,
    KeyUnavailableError,
    VaultLockedError,
)
from ..records import CredentialRecord, JsonRecordStore, RecordStore
from .config import VaultConfig, load_master_key
from .crypto import CipherCodec, SecretKey
from .keys import KeyManager
from .keystore import EncryptedFileKeyStore

logger = logging.getLogger("credential_vault.vault")

UnlockGate = Union[bool, Callable[[], bool]]


class VaultService:
    """Encrypted credential vault for one installation.

    Passwords are encrypted with the installation key before they reach the
    record store and decrypted when read back. A record that cannot be
    decrypted is returned with its stored (encrypted) password instead of
    failing the whole listing.

    Args:
        key_manager: Owner of the installation key.
        codec: Cipher used for password fields.
        records: Record store.
        unlock_gate: Device unlock result, or a callable returning it.
    """

    def __init__(
        self,
        key_manager: KeyManager,
        codec: CipherCodec,
        records: RecordStore,
        unlock_gate: UnlockGate = True,
    ):
        self._keys = key_manager
        self._codec = codec
        self._records = records
        self._unlock_gate = unlock_gate
        self._unlocked = False

    @classmethod
    def from_config(
        cls,
        config: Optional[VaultConfig] = None,
        unlock_gate: UnlockGate = True,
    ) -> "VaultService":
        """Build a file-backed vault.

        Args:
            config: Vault settings; read from the environment if omitted.
            unlock_gate: Device unlock result, or a callable returning it.

        Returns:
            A locked VaultService; call ``open()`` before use.
        """
        config = config or VaultConfig.from_env()
        master_key = load_master_key(config.master_key_path)
        store = EncryptedFileKeyStore(config.store_path, master_key)
        return cls(
            key_manager=KeyManager(store, alias=config.key_alias),
            codec=CipherCodec(config.cipher_backend),
            records=JsonRecordStore(config.records_path),
            unlock_gate=unlock_gate,
        )

    @property
    def unlocked(self) -> bool:
        return self._unlocked

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_unlocked(self) -> None:
        if not self._unlocked:
            raise VaultLockedError("Vault is locked; call open() first")

    async def _key(self) -> SecretKey:
        result = await asyncio.to_thread(self._keys.load_key)
        if not result.ok:
            raise KeyUnavailableError(
                f"Vault key unavailable: {result.outcome.value}",
                outcome=result.outcome,
            )
        return result.value

    async def _encrypt(self, key: SecretKey, password: str) -> str:
        encrypted = await asyncio.to_thread(self._codec.encrypt, key, password)
        if encrypted is None:
            raise EncryptionError("Password could not be encrypted; nothing was saved")
        return encrypted

    def _reveal(self, key: SecretKey, record: CredentialRecord) -> CredentialRecord:
        plaintext = self._codec.decrypt(key, record.password)
        if plaintext is None:
            logger.warning(
                "Cannot decrypt record id=%s account=%s; returning stored value",
                record.id, record.account,
            )
            return record
        return record.model_copy(update={"password": plaintext})

    @staticmethod
    def _validate_account(account: str) -> None:
        if not account or not account.strip():
            raise ValueError("Account cannot be empty")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Unlock the vault.

        Raises:
            VaultLockedError: If the device unlock gate denies access.
            KeyUnavailableError: If no key can be loaded or created.
        """
        gate = self._unlock_gate() if callable(self._unlock_gate) else self._unlock_gate
        if not gate:
            raise VaultLockedError("Device unlock was denied")
        await asyncio.to_thread(self._keys.initialize)
        result = await asyncio.to_thread(self._keys.ensure_key_result)
        if not result.ok:
            raise KeyUnavailableError(
                f"Vault key unavailable: {result.outcome.value}",
                outcome=result.outcome,
            )
        self._unlocked = True
        logger.info("Vault opened: %d record(s)", len(self._records))

    def close(self) -> None:
        self._unlocked = False

    async def __aenter__(self) -> "VaultService":
        await self.open()
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()

    async def add(self, account: str, username: str, password: str) -> CredentialRecord:
        """Encrypt and persist a new credential.

        Returns:
            The stored record with its password decrypted.

        Raises:
            ValueError: If account is empty.
            EncryptionError: If the password could not be encrypted.
        """
        self._require_unlocked()
        self._validate_account(account)
        key = await self._key()
        record = CredentialRecord(
            account=account,
            username=username,
            password=await self._encrypt(key, password),
        )
        await asyncio.to_thread(self._records.add, record)
        logger.debug("Vault add: id=%s account=%s", record.id, account)
        return record.model_copy(update={"password": password})

    async def update(
        self,
        record_id: str,
        account: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> CredentialRecord:
        """Change a credential. Fields left as None keep their value.

        Raises:
            RecordNotFoundError: If no record has this id.
        """
        self._require_unlocked()
        stored = await asyncio.to_thread(self._records.get, record_id)
        key = await self._key()
        changes: dict[str, str] = {}
        if account is not None:
            self._validate_account(account)
            changes["account"] = account
        if username is not None:
            changes["username"] = username
        if password is not None:
            changes["password"] = await self._encrypt(key, password)
        updated = stored.model_copy(update=changes)
        await asyncio.to_thread(self._records.update, updated)
        logger.debug("Vault update: id=%s fields=%s", record_id, sorted(changes))
        return await asyncio.to_thread(self._reveal, key, updated)

    async def delete(self, record_id: str) -> None:
        """Remove a credential.

        Raises:
            RecordNotFoundError: If no record has this id.
        """
        self._require_unlocked()
        await asyncio.to_thread(self._records.delete, record_id)
        logger.debug("Vault delete: id=%s", record_id)

    async def get(self, record_id: str) -> CredentialRecord:
        """Return one credential with its password decrypted."""
        self._require_unlocked()
        record = await asyncio.to_thread(self._records.get, record_id)
        key = await self._key()
        return await asyncio.to_thread(self._reveal, key, record)

    async def list(self) -> list[CredentialRecord]:
        """Return every credential with its password decrypted."""
        self._require_unlocked()
        key = await self._key()

        def _reveal_all() -> list[CredentialRecord]:
            return [self._reveal(key, record) for record in self._records.all()]

        return await asyncio.to_thread(_reveal_all)
