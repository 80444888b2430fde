# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from typing import List, Sequence

from sav.crypto import SecretCipher
from sav.domain import AccountSecrets, DecryptedSecret, Secret
from sav.errors import DecryptionFailed
from sav.infra.account_repo import AccountRepository

logger = logging.getLogger(__name__)


def submit_secret(store: AccountRepository, cipher: SecretCipher, account_id: str, plaintext: str) -> None:
    """Encrypt ``plaintext`` and append it to the account's secrets.

    Raises AccountNotFound if the account no longer exists.
    """
    store.append_secret(account_id, Secret(ciphertext=cipher.encrypt(plaintext)))
    logger.info("Stored secret for account %s", account_id)


def _decrypt_all(cipher: SecretCipher, account_id: str, items: Sequence[Secret]) -> List[DecryptedSecret]:
    out: List[DecryptedSecret] = []
    for idx, s in enumerate(items):
        try:
            out.append(DecryptedSecret(content=cipher.decrypt(s.ciphertext)))
        except DecryptionFailed:
            logger.warning("Secret #%d of account %s is unreadable", idx, account_id)
            out.append(DecryptedSecret(content=None, readable=False))
    return out


def list_all_secrets_decrypted(store: AccountRepository, cipher: SecretCipher) -> List[AccountSecrets]:
    """Public listing: every account with at least one secret.

    A secret that fails to decrypt is reported as unreadable; it never aborts
    the listing.
    """
    return [
        AccountSecrets(
            account_id=a.id,
            username=a.username,
            secrets=_decrypt_all(cipher, a.id, a.secrets),
        )
        for a in store.list_accounts_with_secrets()
    ]


def list_secrets_for_account(store: AccountRepository, cipher: SecretCipher, account_id: str) -> List[DecryptedSecret]:
    account = store.find_account_by_id(account_id)
    return _decrypt_all(cipher, account.id, account.secrets)
