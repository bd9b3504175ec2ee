"""
Vault Crypto Core: Secret keys, payload encryption/decryption and key derivation.

Every secret is encrypted with the installation key and a fresh random
16-byte IV. The IV is prepended to the ciphertext and the concatenation is
Base64-encoded (standard alphabet, padded) into a single string:

- ``aesgcm``: [IV 16B][ciphertext + GCM tag 16B]   (authenticated, default)
- ``aescbc``: [IV 16B][AES-CBC ciphertext, PKCS7]  (legacy-compatible format)

Security Note:
    Never log plaintext, ciphertext or key material.
    IVs are random 128-bit; collision probability negligible under normal usage.
"""
import os
import hmac
import base64
import logging
from typing import Optional

from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .result import Result

logger = logging.getLogger("credential_vault.vault")

IV_SIZE = 16  # 128-bit IV, also used as the GCM nonce
KEY_LENGTH = 32  # AES-256
BLOCK_SIZE = 16
TAG_SIZE = 16

CIPHER_BACKENDS = ("aesgcm", "aescbc")

_CRYPTO_ERRORS = (ValueError, TypeError, InvalidTag, UnsupportedAlgorithm)


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

class SecretKey:
    """Symmetric AES key material.

    ``repr()`` only shows the key size; comparison is constant-time.
    """

    __slots__ = ("_encoded",)
    algorithm = "AES"

    def __init__(self, encoded: bytes):
        self._encoded = bytes(encoded)

    @property
    def encoded(self) -> bytes:
        return self._encoded

    def __len__(self) -> int:
        return len(self._encoded)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SecretKey):
            return NotImplemented
        return hmac.compare_digest(self._encoded, other._encoded)

    def __hash__(self) -> int:
        return hash(self._encoded)

    def __repr__(self) -> str:
        return f"<SecretKey {self.algorithm}-{len(self._encoded) * 8}>"


def generate_key() -> SecretKey:
    """Generate a random AES-256 key.

    The key comes from the operating system CSPRNG; it is never derived
    from a password or passphrase.
    """
    return SecretKey(AESGCM.generate_key(bit_length=KEY_LENGTH * 8))


def derive_key(seed: bytes, context: str, length: int = KEY_LENGTH) -> bytes:
    """Derive an encryption key using HKDF-SHA256.

    Args:
        seed: Input key material (the key store master key).
        context: Context string for domain separation (e.g. "keystore-values").
        length: Size of the derived key in bytes.

    Returns:
        Derived key bytes.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=None,  # deterministic: the same master key must reopen the store
        info=context.encode("utf-8"),
    )
    return hkdf.derive(seed)


# ---------------------------------------------------------------------------
# Base64
# ---------------------------------------------------------------------------

def b64encode(data: bytes) -> str:
    """Standard-alphabet, padded Base64 without line breaks."""
    return base64.b64encode(data).decode("ascii")


def b64decode(value: str) -> bytes:
    """Strict standard-alphabet Base64 decoding.

    Line breaks and other whitespace are ignored; any other character
    outside the alphabet raises ``binascii.Error`` (a ``ValueError``).
    """
    return base64.b64decode("".join(value.split()), validate=True)


# ---------------------------------------------------------------------------
# Payload encryption
# ---------------------------------------------------------------------------

def encrypt_payload(plaintext: bytes, key: bytes, backend: str = "aesgcm") -> bytes:
    """Encrypt plaintext with a fresh random IV.

    Args:
        plaintext: Data to encrypt.
        key: Raw 32-byte key.
        backend: ``aesgcm`` or ``aescbc``.

    Returns:
        ``IV || ciphertext`` bytes.
    """
    iv = os.urandom(IV_SIZE)
    if backend == "aesgcm":
        return iv + AESGCM(key).encrypt(iv, plaintext, None)
    padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return iv + encryptor.update(padded) + encryptor.finalize()


def decrypt_payload(payload: bytes, key: bytes, backend: str = "aesgcm") -> bytes:
    """Decrypt an ``IV || ciphertext`` payload.

    Raises:
        ValueError: If the payload is truncated, misaligned or badly padded.
        InvalidTag: If GCM authentication fails (tampering or wrong key).
    """
    _min = IV_SIZE + (TAG_SIZE if backend == "aesgcm" else BLOCK_SIZE)
    if len(payload) < _min:
        raise ValueError(
            f"payload too short: {len(payload)} bytes (minimum {_min})"
        )
    iv = payload[:IV_SIZE]
    body = payload[IV_SIZE:]
    if backend == "aesgcm":
        return AESGCM(key).decrypt(iv, body, None)
    if len(body) % BLOCK_SIZE:
        raise ValueError("ciphertext is not a whole number of blocks")
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(body) + decryptor.finalize()
    unpadder = padding.PKCS7(BLOCK_SIZE * 8).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


class CipherCodec:
    """Encrypts and decrypts single secret strings.

    Stateless apart from the configured backend, so one instance can be
    shared between threads. ``encrypt``/``decrypt`` never raise: every
    failure becomes ``None``. ``encrypt_result``/``decrypt_result`` expose
    the precise outcome.
    """

    def __init__(self, backend: str = "aesgcm"):
        backend = backend.lower()
        if backend not in CIPHER_BACKENDS:
            raise ValueError(f"Unsupported cipher backend: {backend}")
        self.backend = backend

    def __repr__(self) -> str:
        return f"<CipherCodec backend={self.backend}>"

    def _check_key(self, key: SecretKey) -> bytes:
        if not isinstance(key, SecretKey):
            raise TypeError(f"key must be a SecretKey, got {type(key).__name__}")
        material = key.encoded
        if len(material) != KEY_LENGTH:
            raise ValueError(
                f"key must be {KEY_LENGTH} bytes, got {len(material)}"
            )
        return material

    def encrypt_result(
        self, key: Optional[SecretKey], plaintext: Optional[str]
    ) -> Result[str]:
        if key is None or plaintext is None:
            return Result.not_found()
        if not isinstance(plaintext, str):
            logger.error(
                "Vault encrypt failed (%s): plaintext is %s, not str",
                self.backend, type(plaintext).__name__,
            )
            return Result.crypto_failure(
                TypeError(f"plaintext must be str, got {type(plaintext).__name__}")
            )
        try:
            material = self._check_key(key)
            payload = encrypt_payload(
                plaintext.encode("utf-8"), material, self.backend
            )
        except _CRYPTO_ERRORS as err:
            logger.error(
                "Vault encrypt failed (%s): %s", self.backend,
                str(err) or type(err).__name__,
            )
            return Result.crypto_failure(err)
        return Result.success(b64encode(payload))

    def decrypt_result(
        self, key: Optional[SecretKey], encoded: Optional[str]
    ) -> Result[str]:
        if encoded is None or key is None:
            return Result.not_found()
        if not isinstance(encoded, str):
            logger.error(
                "Vault decrypt failed (%s): payload is %s, not str",
                self.backend, type(encoded).__name__,
            )
            return Result.crypto_failure(
                TypeError(f"payload must be str, got {type(encoded).__name__}")
            )
        try:
            material = self._check_key(key)
            payload = b64decode(encoded)
            plaintext = decrypt_payload(payload, material, self.backend)
            return Result.success(plaintext.decode("utf-8"))
        except _CRYPTO_ERRORS as err:
            # InvalidTag carries no message
            logger.error(
                "Vault decrypt failed (%s): %s", self.backend,
                str(err) or type(err).__name__,
            )
            return Result.crypto_failure(err)

    def encrypt(
        self, key: Optional[SecretKey], plaintext: Optional[str]
    ) -> Optional[str]:
        """Encrypt a secret string.

        Args:
            key: Installation key, or None when no key is available.
            plaintext: Secret to encrypt. None and non-str values give None.

        Returns:
            Base64 payload, or None if the key or plaintext is absent, the
            plaintext is not a str, or encryption failed.
        """
        return self.encrypt_result(key, plaintext).or_none()

    def decrypt(self, key: Optional[SecretKey], encoded: Optional[str]) -> Optional[str]:
        """Decrypt a Base64 payload produced by ``encrypt``.

        Returns:
            The plaintext, or None for absent input, malformed Base64,
            truncated payloads, authentication/padding failures or a wrong key.
        """
        return self.decrypt_result(key, encoded).or_none()
