# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_PH = PasswordHasher()

# Verified against when the username is unknown, so both failures cost the same.
_DUMMY_HASH = _PH.hash("sav-dummy-password")


def hash_password(plain: str) -> str:
    """argon2id hash; the random per-hash salt is embedded in the result."""
    if not plain:
        raise ValueError("Password vacío")
    return _PH.hash(plain)


def verify_password(hash_value: str, plain: str) -> bool:
    if not hash_value or not plain:
        return False
    try:
        return _PH.verify(hash_value, plain)
    except (VerificationError, InvalidHashError):
        return False


def burn_verification(plain: str) -> None:
    verify_password(_DUMMY_HASH, plain or "x")
