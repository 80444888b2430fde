# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging

from sav.auth.passwords import burn_verification, hash_password, verify_password
from sav.domain import Account
from sav.errors import AccountNotFound, AuthenticationFailed
from sav.infra.account_repo import AccountRepository

logger = logging.getLogger(__name__)


def register(store: AccountRepository, username: str, password: str) -> Account:
    """Create a local account. Raises DuplicateUsername if the name is taken."""
    u = (username or "").strip()
    if not u:
        raise ValueError("El usuario no puede estar vacío.")
    account = store.create_local_account(u, hash_password(password))
    logger.info("Registered local account %s", account.id)
    return account


def verify(store: AccountRepository, username: str, password: str) -> Account:
    """Check a username/password pair.

    Unknown user, account without password and wrong password all raise the
    same AuthenticationFailed.
    """
    u = (username or "").strip()
    try:
        account = store.find_account_by_username(u) if u else None
    except AccountNotFound:
        account = None

    if account is None or not account.has_password:
        burn_verification(password)
        raise AuthenticationFailed("Credenciales inválidas")
    if not verify_password(account.password_hash or "", password):
        raise AuthenticationFailed("Credenciales inválidas")
    return account
