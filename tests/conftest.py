"""
Shared pytest fixtures for the Credential Vault test suite.

Every test gets its own in-memory key store; file-backed tests use
``tmp_path`` and set ``VAULT_MASTER_KEY`` through ``monkeypatch``.
"""
import pytest

from credential_vault.exceptions import KeyStoreError
from credential_vault.records import MemoryRecordStore
from credential_vault.vault.config import generate_master_key
from credential_vault.vault.crypto import CipherCodec, generate_key
from credential_vault.vault.keys import KeyManager
from credential_vault.vault.keystore import MemoryKeyStore
from credential_vault.vault.service import VaultService


class CountingKeyStore(MemoryKeyStore):
    """Memory store that counts writes."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.puts = 0

    def put(self, alias, value):
        self.puts += 1
        super().put(alias, value)


class FailingKeyStore(MemoryKeyStore):
    """Memory store whose storage medium can be switched off."""

    def __init__(self, initial=None, failing=True):
        super().__init__(initial)
        self.failing = failing
        self.puts = 0

    def initialize(self):
        if self.failing:
            raise KeyStoreError("storage unavailable")
        return super().initialize()

    def get(self, alias):
        if self.failing:
            raise KeyStoreError("storage unavailable")
        return super().get(alias)

    def put(self, alias, value):
        self.puts += 1
        if self.failing:
            raise KeyStoreError("storage unavailable")
        super().put(alias, value)


@pytest.fixture
def key_store():
    return CountingKeyStore()


@pytest.fixture
def key_manager(key_store):
    return KeyManager(key_store, alias="test_alias")


@pytest.fixture
def key():
    return generate_key()


@pytest.fixture(params=["aesgcm", "aescbc"])
def codec(request):
    """Codec for each supported backend."""
    return CipherCodec(request.param)


@pytest.fixture
def gcm():
    return CipherCodec("aesgcm")


@pytest.fixture
def cbc():
    return CipherCodec("aescbc")


@pytest.fixture
def records():
    return MemoryRecordStore()


@pytest.fixture
def service(key_manager, gcm, records):
    return VaultService(key_manager, gcm, records)


@pytest.fixture
def master_key_env(monkeypatch):
    """Set VAULT_MASTER_KEY to a fresh key and return it."""
    value = generate_master_key()
    monkeypatch.setenv("VAULT_MASTER_KEY", value)
    return value
