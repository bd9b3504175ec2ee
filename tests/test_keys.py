"""
Tests for KeyManager.

Tests cover:
- absent → present lifecycle and persistence
- Idempotent initialize
- Corrupted and unreadable key blobs
- ensure_key never replacing a key on storage failure
- Serialized first-run generation across threads
"""
import base64
import threading

import orjson
import pytest

from credential_vault.vault.crypto import CipherCodec
from credential_vault.vault.keys import KeyManager
from credential_vault.vault.keystore import EncryptedFileKeyStore, MemoryKeyStore
from credential_vault.vault.result import Outcome

from .conftest import CountingKeyStore, FailingKeyStore


class TestKeyLifecycle:
    """Tests for get_key / generate_and_save_key."""

    def test_no_key_initially(self, key_manager):
        key_manager.initialize()
        assert key_manager.get_key() is None
        assert key_manager.load_key().outcome is Outcome.NOT_FOUND

    def test_generate_then_get(self, key_manager):
        key_manager.initialize()
        key_manager.generate_and_save_key()
        key = key_manager.get_key()
        assert key is not None
        assert len(key.encoded) == 32

    def test_key_stored_as_base64_under_alias(self, key_store, key_manager):
        key_manager.generate_and_save_key()
        blob = key_store.get("test_alias")
        assert base64.b64decode(blob, validate=True) == key_manager.get_key().encoded

    def test_persistence_across_instances(self, key_store):
        KeyManager(key_store, alias="a").generate_and_save_key()
        first = KeyManager(key_store, alias="a").get_key()
        second = KeyManager(key_store, alias="a").get_key()
        assert first is not None
        assert first.encoded == second.encoded

    def test_persistence_in_file_store(self, tmp_path):
        master = b"\x07" * 32
        manager = KeyManager(EncryptedFileKeyStore(tmp_path / "keys.json", master))
        manager.initialize()
        manager.generate_and_save_key()
        original = manager.get_key()

        reopened = KeyManager(EncryptedFileKeyStore(tmp_path / "keys.json", master))
        reopened.initialize()
        assert reopened.get_key().encoded == original.encoded

    def test_generate_overwrites(self, key_manager):
        key_manager.generate_and_save_key()
        first = key_manager.get_key()
        key_manager.generate_and_save_key()
        assert key_manager.get_key() != first

    def test_idempotent_initialize(self, key_store, key_manager):
        assert key_manager.initialize() is True
        key_manager.generate_and_save_key()
        before = key_manager.get_key()
        assert key_manager.initialize() is True
        assert key_manager.initialize() is True
        assert key_manager.get_key() == before
        assert key_store.puts == 1

    def test_separate_aliases(self, key_store):
        KeyManager(key_store, alias="one").generate_and_save_key()
        assert KeyManager(key_store, alias="two").get_key() is None

    def test_accepts_line_wrapped_blob(self):
        material = bytes(range(32))
        blob = base64.encodebytes(material).decode()  # trailing newline
        manager = KeyManager(MemoryKeyStore({"k": blob}), alias="k")
        assert manager.get_key().encoded == material


class TestCorruptedKey:
    """Tests for undecodable key blobs."""

    @pytest.mark.parametrize("blob", [
        "not-base64!!",
        "%%%%",
        base64.b64encode(b"\x01" * 16).decode(),
        base64.b64encode(b"\x01" * 31).decode(),
        "",
    ])
    def test_corrupt_blob_is_absent(self, blob):
        manager = KeyManager(MemoryKeyStore({"k": blob}), alias="k")
        assert manager.get_key() is None
        assert manager.load_key().outcome is Outcome.CRYPTO_FAILURE

    def test_corrupting_stored_blob(self, key_store, key_manager):
        key_manager.generate_and_save_key()
        key_store.put("test_alias", "@@corrupted@@")
        assert key_manager.get_key() is None

    def test_ensure_key_keeps_corrupt_blob(self):
        store = CountingKeyStore({"k": "@@corrupted@@"})
        manager = KeyManager(store, alias="k")
        result = manager.ensure_key_result()
        assert result.outcome is Outcome.CRYPTO_FAILURE
        assert store.puts == 0
        assert store.get("k") == "@@corrupted@@"

    def test_malformed_file_entry_is_absent(self, tmp_path):
        path = tmp_path / "keys.json"
        store = EncryptedFileKeyStore(path, b"\x07" * 32)
        manager = KeyManager(store, alias="k")
        manager.initialize()
        manager.generate_and_save_key()
        document = orjson.loads(path.read_bytes())
        sealed_alias = next(iter(document["entries"]))
        document["entries"][sealed_alias] = 5
        path.write_bytes(orjson.dumps(document))

        assert manager.get_key() is None
        assert manager.load_key().outcome is Outcome.IO_FAILURE
        assert manager.ensure_key() is None
        assert orjson.loads(path.read_bytes())["entries"][sealed_alias] == 5


class TestStorageFailure:
    """Tests for an unavailable protected store."""

    def test_initialize_does_not_raise(self):
        manager = KeyManager(FailingKeyStore(), alias="k")
        assert manager.initialize() is False

    def test_get_key_is_absent(self):
        manager = KeyManager(FailingKeyStore(), alias="k")
        assert manager.get_key() is None
        result = manager.load_key()
        assert result.outcome is Outcome.IO_FAILURE
        assert result.error is not None

    def test_generate_does_not_raise(self):
        store = FailingKeyStore()
        manager = KeyManager(store, alias="k")
        manager.generate_and_save_key()
        store.failing = False
        assert manager.get_key() is None

    def test_ensure_key_does_not_replace_existing_key(self, key):
        blob = base64.b64encode(key.encoded).decode()
        store = FailingKeyStore({"k": blob})
        manager = KeyManager(store, alias="k")

        assert manager.ensure_key() is None
        assert manager.ensure_key_result().outcome is Outcome.IO_FAILURE
        assert store.puts == 0

        # storage comes back: the original key is still there
        store.failing = False
        assert manager.ensure_key() == key
        assert store.puts == 0


class TestEnsureKey:
    """Tests for the startup sequence."""

    def test_generates_on_first_run(self, key_store, key_manager):
        key_manager.initialize()
        key = key_manager.ensure_key()
        assert key is not None
        assert key_manager.get_key() == key
        assert key_store.puts == 1

    def test_reuses_existing_key(self, key_store, key_manager):
        first = key_manager.ensure_key()
        assert key_manager.ensure_key() == first
        assert key_store.puts == 1

    def test_startup_scenario(self, key_manager):
        codec = CipherCodec("aescbc")
        key_manager.initialize()
        assert key_manager.get_key() is None
        key_manager.generate_and_save_key()
        key = key_manager.get_key()
        assert len(key.encoded) == 32
        encrypted = codec.encrypt(key, "hunter2")
        assert len(base64.b64decode(encrypted)) >= 24
        assert codec.decrypt(key, encrypted) == "hunter2"

    def test_concurrent_first_run_commits_one_key(self):
        store = CountingKeyStore()
        managers = [KeyManager(store, alias="k") for _ in range(16)]
        barrier = threading.Barrier(len(managers))
        results = []

        def worker(manager):
            barrier.wait()
            results.append(manager.ensure_key())

        threads = [threading.Thread(target=worker, args=(m,)) for m in managers]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert store.puts == 1
        assert len(results) == 16
        assert all(r == results[0] for r in results)
        assert KeyManager(store, alias="k").get_key() == results[0]

    def test_concurrent_first_run_through_separate_file_handles(self, tmp_path):
        path = tmp_path / "keys.json"
        master = b"\x07" * 32
        KeyManager(EncryptedFileKeyStore(path, master), alias="k").initialize()
        managers = [
            KeyManager(EncryptedFileKeyStore(path, master), alias="k")
            for _ in range(16)
        ]
        barrier = threading.Barrier(len(managers))
        results = []

        def worker(manager):
            barrier.wait()
            results.append(manager.ensure_key())

        threads = [threading.Thread(target=worker, args=(m,)) for m in managers]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        committed = KeyManager(EncryptedFileKeyStore(path, master), alias="k").get_key()
        assert committed is not None
        assert len(results) == 16
        assert all(r == committed for r in results)
