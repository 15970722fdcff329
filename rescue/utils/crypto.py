"""Fernet-based encryption for values kept in the settings store."""

import base64
import hashlib

from cryptography.fernet import Fernet

from rescue.config import settings


def _get_fernet(key: str | None = None) -> Fernet:
    raw = (key if key is not None else settings.encryption_key).encode()
    # Fernet key must be 32-byte base64-encoded. If the operator hasn't set a
    # real key, derive a deterministic one from the raw value.
    try:
        return Fernet(raw)
    except ValueError:
        derived = base64.urlsafe_b64encode(hashlib.sha256(raw).digest())
        return Fernet(derived)


def encrypt(plaintext: str, key: str | None = None) -> str:
    return _get_fernet(key).encrypt(plaintext.encode()).decode()


def decrypt(ciphertext: str, key: str | None = None) -> str:
    """Raises ``cryptography.fernet.InvalidToken`` if the key has changed."""
    return _get_fernet(key).decrypt(ciphertext.encode()).decode()
