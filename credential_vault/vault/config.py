"""
Vault Configuration: Master key loading and validated settings.

The key store master key is read from the environment:
    VAULT_MASTER_KEY = <base64-encoded 32-byte key>

When it is not set, the key is read from ``<VAULT_HOME>/master.key``, which
is created (mode 0600) with a fresh random key on first use.

Security Note:
    Never log key material. Only log paths and key sources.
"""
import os
import base64
import secrets
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .. import conf
from ..utils import atomic_write
from .crypto import CIPHER_BACKENDS, KEY_LENGTH, b64decode

logger = logging.getLogger("credential_vault.vault")


def generate_master_key() -> str:
    """Return a fresh key store master key, Base64-encoded.

    ``load_master_key`` writes one of these to ``master.key`` on first use;
    it is also the value expected in ``VAULT_MASTER_KEY``.
    """
    return base64.b64encode(secrets.token_bytes(KEY_LENGTH)).decode("ascii")


def _decode_master_key(value: str, source: str) -> bytes:
    try:
        key_bytes = b64decode(value)
    except ValueError as err:
        raise ValueError(f"{source} is not valid base64") from err
    if len(key_bytes) != KEY_LENGTH:
        raise ValueError(
            f"{source} must decode to exactly {KEY_LENGTH} bytes, "
            f"got {len(key_bytes)}"
        )
    return key_bytes


def load_master_key(key_file: Optional[Path] = None) -> bytes:
    """Load the key store master key.

    Lookup order: ``VAULT_MASTER_KEY`` environment variable, then
    ``key_file`` (created with a fresh key if missing).

    Args:
        key_file: Fallback master key file.

    Returns:
        Raw 32-byte master key.

    Raises:
        RuntimeError: If the env var is unset and no key file was given.
        ValueError: If the key does not decode to exactly 32 bytes.
        OSError: If the key file cannot be read or created.
    """
    value = os.environ.get("VAULT_MASTER_KEY")
    if value:
        logger.debug("Using master key from VAULT_MASTER_KEY")
        return _decode_master_key(value, "VAULT_MASTER_KEY")
    if key_file is None:
        raise RuntimeError(
            "No vault master key found in environment. "
            "Set VAULT_MASTER_KEY=<base64-encoded-32-byte-key>"
        )
    key_file = Path(key_file)
    if not key_file.exists():
        key_file.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        atomic_write(key_file, generate_master_key().encode("ascii"))
        logger.info("Generated new master key file %s", key_file)
    return _decode_master_key(
        key_file.read_text(encoding="ascii"), str(key_file)
    )


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    home: Path = Field(default=conf.VAULT_HOME)
    store_name: str = Field(default=conf.VAULT_STORE_NAME, min_length=1)
    key_alias: str = Field(default=conf.VAULT_KEY_ALIAS, min_length=1)
    cipher_backend: str = Field(default=conf.VAULT_CIPHER_BACKEND)
    records_file: str = Field(default=conf.VAULT_RECORDS_FILE, min_length=1)

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Backend names are case-insensitive and stored lower-cased."""
        v = v.lower()
        if v not in CIPHER_BACKENDS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @field_validator("store_name")
    @classmethod
    def validate_store_name(cls, v: str) -> str:
        """The store name becomes a file name."""
        if os.sep in v or (os.altsep and os.altsep in v) or v in (".", ".."):
            raise ValueError(f"Invalid store name: {v!r}")
        return v

    @property
    def store_path(self) -> Path:
        return self.home / f"{self.store_name}.json"

    @property
    def records_path(self) -> Path:
        return self.home / self.records_file

    @property
    def master_key_path(self) -> Path:
        return self.home / conf.VAULT_MASTER_KEY_FILE

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Read the ``VAULT_*`` variables, falling back to ``conf`` defaults.

        ``VAULT_HOME`` may start with ``~``.
        """
        env = os.environ
        return cls(
            home=Path(env.get("VAULT_HOME", conf.VAULT_HOME)).expanduser(),
            store_name=env.get("VAULT_STORE_NAME", conf.VAULT_STORE_NAME),
            key_alias=env.get("VAULT_KEY_ALIAS", conf.VAULT_KEY_ALIAS),
            cipher_backend=env.get("VAULT_CIPHER_BACKEND", conf.VAULT_CIPHER_BACKEND),
            records_file=env.get("VAULT_RECORDS_FILE", conf.VAULT_RECORDS_FILE),
        )
