"""AES-256-GCM helpers for encrypting credential fields at rest.

GCM mode provides both confidentiality and integrity protection. Sealed
values are self-contained strings (``v1:`` + urlsafe base64 of IV and
ciphertext) so they fit in a plain text column of any store backend.

Security considerations:
- Keys must be 256 bits (32 bytes) for AES-256
- IVs are 96 bits (12 bytes) and generated fresh for every seal
- Store keys securely (environment variables, secrets manager)
"""

from __future__ import annotations

import base64
import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from gmail_gateway.utils.errors import TokenError, ValidationError

KEY_SIZE_BITS = 256
KEY_SIZE_BYTES = KEY_SIZE_BITS // 8
IV_SIZE_BYTES = 12
HEX_KEY_LENGTH = KEY_SIZE_BYTES * 2
SEALED_PREFIX = "v1:"


def generate_key() -> bytes:
    """Generate a random 256-bit key suitable for AES-256-GCM."""
    return AESGCM.generate_key(bit_length=KEY_SIZE_BITS)


def key_from_hex(hex_key: str) -> bytes:
    """Convert a 64-character hexadecimal string to an encryption key.

    Args:
        hex_key: Hex string, typically read from TOKEN_ENCRYPTION_KEY.

    Returns:
        A 32-byte encryption key.

    Raises:
        ValidationError: If the string has the wrong length or is not hex.
    """
    hex_key = hex_key.strip()

    if len(hex_key) != HEX_KEY_LENGTH:
        raise ValidationError(
            f"Invalid hex key length: expected {HEX_KEY_LENGTH} characters, "
            f"got {len(hex_key)}",
            field="hex_key",
            details={"expected_length": HEX_KEY_LENGTH, "actual_length": len(hex_key)},
        )

    try:
        return bytes.fromhex(hex_key)
    except ValueError as e:
        raise ValidationError(
            "Invalid hex key: contains non-hexadecimal characters",
            field="hex_key",
            details={"error_message": str(e)},
        ) from e


def seal(plaintext: str, key: bytes) -> str:
    """Encrypt a string and return the sealed text form.

    Args:
        plaintext: Value to encrypt (e.g. an access token).
        key: 32-byte AES key.

    Returns:
        ``v1:<base64(iv + ciphertext)>``.

    Raises:
        ValidationError: If the key has the wrong length.
        TokenError: If encryption fails.
    """
    _validate_key(key)

    try:
        iv = os.urandom(IV_SIZE_BYTES)
        ciphertext = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    except Exception as e:
        raise TokenError(
            "Failed to encrypt data",
            details={"error_type": type(e).__name__},
        ) from e

    return SEALED_PREFIX + base64.urlsafe_b64encode(iv + ciphertext).decode("ascii")


def unseal(sealed: str, key: bytes) -> str:
    """Decrypt a value produced by :func:`seal`.

    Raises:
        ValidationError: If the key has the wrong length.
        TokenError: If the value is not sealed, was tampered with, or the
            key does not match.
    """
    _validate_key(key)

    if not is_sealed(sealed):
        raise TokenError("Value is not in sealed format")

    try:
        raw = base64.urlsafe_b64decode(sealed[len(SEALED_PREFIX) :].encode("ascii"))
        iv, ciphertext = raw[:IV_SIZE_BYTES], raw[IV_SIZE_BYTES:]
        return AESGCM(key).decrypt(iv, ciphertext, None).decode("utf-8")
    except Exception as e:
        raise TokenError(
            "Failed to decrypt data - invalid key or corrupted ciphertext",
            details={"error_type": type(e).__name__},
        ) from e


def is_sealed(value: str) -> bool:
    """Return True if the value looks like output of :func:`seal`."""
    return value.startswith(SEALED_PREFIX)


def _validate_key(key: bytes) -> None:
    if len(key) != KEY_SIZE_BYTES:
        raise ValidationError(
            f"Invalid key length: expected {KEY_SIZE_BYTES} bytes, got {len(key)}",
            field="key",
            details={"expected_length": KEY_SIZE_BYTES, "actual_length": len(key)},
        )


__all__ = [
    "generate_key",
    "key_from_hex",
    "seal",
    "unseal",
    "is_sealed",
]
