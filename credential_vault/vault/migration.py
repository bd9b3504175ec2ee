"""
Vault Payload Migration: Batch re-encryption of stored passwords between
cipher backends.

Moves records written in the legacy ``aescbc`` format to ``aesgcm`` using
the installation key. Records that already authenticate under the target
codec are skipped, so the operation is idempotent and can be resumed.
Each record is written back as soon as it is re-encrypted.

Security Note:
    Plaintext exists in memory only during re-encryption of each record.
    Never log plaintext or ciphertext values.
"""
import logging

from cryptography.exceptions import InvalidTag

from .crypto import CipherCodec, SecretKey, b64decode, decrypt_payload
from ..records import RecordStore

logger = logging.getLogger("credential_vault.vault")


def _opens_with(codec: CipherCodec, key: SecretKey, encoded: str) -> bool:
    """Check a payload against a codec without logging the expected failures."""
    try:
        decrypt_payload(b64decode(encoded), key.encoded, codec.backend)
    except (ValueError, InvalidTag):
        return False
    return True


def reencrypt_records(
    records: RecordStore,
    key: SecretKey,
    source: CipherCodec,
    target: CipherCodec,
    batch_size: int = 100,
) -> dict:
    """Re-encrypt every stored password from ``source`` to ``target``.

    Args:
        records: Record store to migrate in place.
        key: Installation key (the same key is used on both sides).
        source: Codec the records were written with.
        target: Codec to re-encrypt with.
        batch_size: Number of records to process per batch.

    Returns:
        Stats dict with keys: total, reencrypted, skipped, errors.

    Raises:
        ValueError: If batch_size is not positive or the target is not aesgcm.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be positive")
    if target.backend != "aesgcm" or source.backend == target.backend:
        raise ValueError(
            f"Cannot migrate from {source.backend} to {target.backend}"
        )

    stats = {"total": 0, "reencrypted": 0, "skipped": 0, "errors": 0}
    snapshot = records.all()

    logger.info(
        "Starting payload migration from %s to %s (batch_size=%d)",
        source.backend, target.backend, batch_size,
    )

    for offset in range(0, len(snapshot), batch_size):
        batch = snapshot[offset:offset + batch_size]
        logger.info(
            "Processing batch %d (%d records)",
            (offset // batch_size) + 1, len(batch),
        )
        for record in batch:
            stats["total"] += 1
            if _opens_with(target, key, record.password):
                stats["skipped"] += 1
                continue
            plaintext = source.decrypt(key, record.password)
            if plaintext is None:
                logger.error(
                    "Cannot decrypt record id=%s with %s; left unchanged",
                    record.id, source.backend,
                )
                stats["errors"] += 1
                continue
            encrypted = target.encrypt(key, plaintext)
            if encrypted is None:
                stats["errors"] += 1
                continue
            records.update(record.model_copy(update={"password": encrypted}))
            stats["reencrypted"] += 1

    logger.info("Payload migration complete: %s", stats)
    return stats
