"""Stateless crypto primitives for salts, OTPs and one-way token storage."""

import hashlib
import secrets
import uuid

SALT_BYTES = 64
OTP_BYTES = 5
ENCRYPT_ITERATIONS = 10_000
ENCRYPT_KEY_LENGTH = 64


def create_salt() -> str:
    """Create a random per-account salt (hex, 128 chars)."""
    return secrets.token_hex(SALT_BYTES)


def create_otp() -> str:
    """Create an upper-cased one-time password for human transcription (10 chars)."""
    return secrets.token_hex(OTP_BYTES).upper()


def create_uuid() -> str:
    return str(uuid.uuid4())


def encrypt(value: str, salt: str) -> str:
    """Derive a deterministic one-way digest of value keyed by salt.

    PBKDF2-HMAC-SHA512, 10000 iterations, 64-byte key, hex encoded.
    The same (value, salt) pair always yields the same digest, so the result
    can be used as a lookup key.
    """
    digest = hashlib.pbkdf2_hmac(
        "sha512", value.encode("utf-8"), salt.encode("utf-8"), ENCRYPT_ITERATIONS, dklen=ENCRYPT_KEY_LENGTH
    )
    return digest.hex()
