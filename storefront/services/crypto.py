"""Cryptographic primitives for payment data and verification tokens."""

import binascii
import hashlib
import hmac
import json
import logging
import re
import secrets
from base64 import b64decode, b64encode
from typing import Any

from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from storefront.core.config import SecurityConfig

logger = logging.getLogger(__name__)

PAYLOAD_DELIMITER = ":"
IV_LENGTH = 16
KEY_LENGTH = 32

# Argon2id parameters for iterated hashing (OWASP minimum memory profile)
ARGON2_MEMORY_COST = 19456
ARGON2_PARALLELISM = 1

_HEX_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")
_NON_DIGIT_RE = re.compile(r"\D")


class CryptoError(Exception):
    """Base exception for cryptographic operations.

    All crypto-related exceptions inherit from this class.
    """


class InvalidKeyError(CryptoError):
    """Raised when the encryption key cannot be turned into key material."""


class EncryptionError(CryptoError):
    """Raised when data cannot be serialized or encrypted."""


class DecryptionError(CryptoError):
    """Raised when decryption fails.

    The message is always the same, whether the IV, the key or the
    ciphertext was at fault.
    """

    def __init__(self) -> None:
        super().__init__("Decryption failed")


def derive_key(key_material: str) -> bytes:
    """Turn the configured encryption key into 32 bytes of AES key.

    A 64-character hex string is used as-is; anything else is treated as a
    passphrase and stretched with HKDF-SHA256.

    Raises:
        InvalidKeyError: If no key material is given.
    """
    if not key_material:
        raise InvalidKeyError("Encryption key is empty")

    if _HEX_KEY_RE.match(key_material):
        return bytes.fromhex(key_material)

    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,
        info=b"storefront-token-codec",
    )
    return hkdf.derive(key_material.encode("utf-8"))


def mask_card_number(card_number: str) -> str:
    """Mask a card number for display, keeping the last four digits."""
    digits = _NON_DIGIT_RE.sub("", card_number)
    if len(digits) <= 4:
        return digits
    return f"{'*' * (len(digits) - 4)} {digits[-4:]}"


class TokenCodec:
    """Symmetric encryption, hashing and HMAC signing.

    Encrypted payloads are ``<iv_hex>:<ciphertext_b64>`` where the ciphertext
    is AES-256-GCM output (tag appended). Neither the hex nor the base64
    alphabet contains the delimiter.
    """

    def __init__(self, config: SecurityConfig) -> None:
        self._config = config
        self._aesgcm = AESGCM(derive_key(config.encryption_key))

    def encrypt(self, data: Any) -> str:
        """Encrypt any JSON-serializable value.

        Raises:
            EncryptionError: If the value cannot be serialized.
        """
        try:
            plaintext = json.dumps(data, sort_keys=True, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            logger.error(f"Payload encryption failed: {type(e).__name__}")
            raise EncryptionError("Failed to secure data") from e

        iv = secrets.token_bytes(IV_LENGTH)
        ciphertext = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        return f"{iv.hex()}{PAYLOAD_DELIMITER}{b64encode(ciphertext).decode('ascii')}"

    def decrypt(self, payload: str) -> Any:
        """Decrypt a payload produced by ``encrypt``.

        Returns the parsed JSON value, or the raw string if the plaintext is
        not JSON.

        Raises:
            DecryptionError: On any malformed, tampered or foreign payload.
        """
        if not isinstance(payload, str):
            raise DecryptionError()

        parts = payload.split(PAYLOAD_DELIMITER)
        if len(parts) != 2:
            raise DecryptionError()

        try:
            iv = bytes.fromhex(parts[0])
            ciphertext = b64decode(parts[1], validate=True)
            if len(iv) != IV_LENGTH:
                raise ValueError("bad iv length")
            plaintext = self._aesgcm.decrypt(iv, ciphertext, None).decode("utf-8")
        except (ValueError, binascii.Error, InvalidTag, UnicodeDecodeError) as e:
            # Internal log only; callers always see the same error.
            logger.debug(f"Payload decryption rejected: {type(e).__name__}")
            raise DecryptionError() from None

        try:
            return json.loads(plaintext)
        except ValueError:
            return plaintext

    def hash(self, value: str, salt: str | None = None, iterations: int = 0) -> str:
        """One-way digest of ``value`` for storage and comparison.

        With ``iterations`` > 0 the digest is Argon2id with that time cost;
        otherwise SHA-256 over ``value || salt``. Both are deterministic.
        """
        salt = self._config.payment_salt if salt is None else salt
        if iterations > 0:
            digest = hash_secret_raw(
                secret=value.encode("utf-8"),
                salt=hashlib.sha256(salt.encode("utf-8")).digest(),
                time_cost=iterations,
                memory_cost=ARGON2_MEMORY_COST,
                parallelism=ARGON2_PARALLELISM,
                hash_len=KEY_LENGTH,
                type=Type.ID,
            )
            return digest.hex()
        return hashlib.sha256(f"{value}{salt}".encode()).hexdigest()

    def sign(self, payload: str, secret: str | None = None) -> str:
        """HMAC-SHA256 of ``payload``, hex encoded."""
        key = (secret if secret is not None else self._config.signing_secret).encode("utf-8")
        return hmac.new(key, payload.encode("utf-8"), hashlib.sha256).hexdigest()

    def verify(self, payload: str, signature: str, secret: str | None = None) -> bool:
        """Check an HMAC signature in constant time."""
        if not isinstance(payload, str) or not isinstance(signature, str):
            return False
        expected = self.sign(payload, secret)
        return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))

    @staticmethod
    def random_hex(nbytes: int = 16) -> str:
        """Cryptographically random bytes as hex."""
        return secrets.token_hex(nbytes)
