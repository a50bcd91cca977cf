"""Helpers for encrypting stored Binance API secrets at rest."""

from __future__ import annotations

import base64
import binascii
import hashlib
from functools import lru_cache
from typing import Optional

from flask import current_app
from cryptography.fernet import Fernet, InvalidToken

FERNET_KEY_SIZE = 32


def _normalize_key(raw_key: Optional[str]) -> bytes:
    """Return a valid Fernet key, deriving one with SHA256 when needed.

    A configured value that already decodes to 32 bytes is used as-is.
    Without configuration the Flask SECRET_KEY is used as the seed.
    """
    if raw_key:
        key_bytes = raw_key if isinstance(raw_key, bytes) else raw_key.encode("utf-8")
        try:
            if len(base64.urlsafe_b64decode(key_bytes)) == FERNET_KEY_SIZE:
                return key_bytes
        except (binascii.Error, ValueError):
            pass
        return base64.urlsafe_b64encode(hashlib.sha256(key_bytes).digest())

    secret = current_app.config.get("SECRET_KEY", "dev-secret-key")
    secret_bytes = secret if isinstance(secret, bytes) else str(secret).encode("utf-8")
    return base64.urlsafe_b64encode(hashlib.sha256(secret_bytes).digest())


@lru_cache(maxsize=2)
def _get_cipher(key_identifier: Optional[str]) -> Fernet:
    return Fernet(_normalize_key(key_identifier))


def _current_cipher() -> Fernet:
    key_identifier = current_app.config.get("ACCOUNTS_ENCRYPTION_KEY")
    if not key_identifier:
        # SECRET_KEY 기반 키는 설정마다 다르므로 캐시하지 않음
        return Fernet(_normalize_key(None))
    return _get_cipher(key_identifier)


def encrypt_value(value: str) -> str:
    """Encrypt the provided value using Fernet symmetric encryption."""
    if not value:
        return ""
    token = _current_cipher().encrypt(value.encode("utf-8"))
    return token.decode("utf-8")


def decrypt_value(value: str) -> str:
    """Decrypt a stored secret.

    Raises:
        ValueError: the token was produced with a different key or is corrupted.
    """
    if not value:
        return ""
    try:
        return _current_cipher().decrypt(value.encode("utf-8")).decode("utf-8")
    except InvalidToken as e:
        raise ValueError("stored secret cannot be decrypted with the configured key") from e


def mask_value(value: str, visible: int = 4) -> str:
    """Mask all but the last ``visible`` characters (API 키 표시용)."""
    if not value:
        return ""
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]
