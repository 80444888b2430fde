# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Symmetric encryption of secret text.

Uses Fernet (AES-128-CBC with a random IV plus an HMAC-SHA256 tag). The IV
and tag travel inside the token, so a ciphertext is self-contained. The
configured key string is stretched into a Fernet key with PBKDF2 unless it
already is one.
"""

from __future__ import annotations

import base64
import binascii
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from sav.errors import DecryptionFailed

KDF_SALT = b"sav.secrets.v1"
KDF_ITERATIONS = 100_000


def _is_fernet_key(raw: bytes) -> bool:
    if len(raw) != 44:
        return False
    try:
        return len(base64.urlsafe_b64decode(raw)) == 32
    except (binascii.Error, ValueError):
        return False


@lru_cache(maxsize=8)
def _fernet_for(key: str) -> Fernet:
    if not key:
        raise ValueError("Falta la clave de cifrado")
    raw = key.encode("utf-8")
    if _is_fernet_key(raw):
        return Fernet(raw)
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=KDF_SALT, iterations=KDF_ITERATIONS)
    return Fernet(base64.urlsafe_b64encode(kdf.derive(raw)))


class SecretCipher:
    """Binds the process-wide key once; encrypt/decrypt are then pure."""

    def __init__(self, key: str):
        self._fernet = _fernet_for(key)

    def __repr__(self) -> str:
        return "SecretCipher(<key hidden>)"

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt((plaintext or "").encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        try:
            data = self._fernet.decrypt((ciphertext or "").encode("ascii"))
            return data.decode("utf-8")
        except (InvalidToken, ValueError) as e:
            raise DecryptionFailed("No se pudo descifrar el secreto") from e


def encrypt(plaintext: str, key: str) -> str:
    return SecretCipher(key).encrypt(plaintext)


def decrypt(ciphertext: str, key: str) -> str:
    return SecretCipher(key).decrypt(ciphertext)
