# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import secrets
from typing import Dict, Iterable, Tuple

from itsdangerous import BadSignature, URLSafeTimedSerializer

from sav.auth.providers import IdentityProvider
from sav.domain import Account
from sav.errors import ProviderExchangeFailed, UnknownProvider
from sav.infra.account_repo import AccountRepository

logger = logging.getLogger(__name__)

STATE_SALT = "sav.oauth-state.v1"
STATE_MAX_AGE_SECONDS = 600


class ExternalIdentityResolver:
    """Links provider subject ids to accounts, creating them on first login.

    Identities are keyed by ``(provider, subject_id)``, so the same raw id
    coming from two providers never lands on the same account.
    """

    def __init__(self, store: AccountRepository, providers: Iterable[IdentityProvider], *, state_secret: str):
        self._store = store
        self._providers: Dict[str, IdentityProvider] = {p.name: p for p in providers}
        self._state = URLSafeTimedSerializer(secret_key=state_secret, salt=STATE_SALT)

    @property
    def provider_names(self) -> Tuple[str, ...]:
        return tuple(self._providers)

    def provider(self, name: str) -> IdentityProvider:
        p = self._providers.get((name or "").strip().lower())
        if p is None:
            raise UnknownProvider(f"Proveedor desconocido: {name}")
        return p

    def resolve(self, provider: str, subject_id: str) -> Account:
        return self._store.find_or_create_by_external_identity(self.provider(provider).name, subject_id)

    def begin(self, provider: str) -> Tuple[str, str]:
        """Return ``(authorization_url, nonce)``.

        The nonce must travel back through the browser (cookie) and be
        handed to :meth:`authenticate` together with the returned state.
        """
        p = self.provider(provider)
        nonce = secrets.token_urlsafe(16)
        state = self._state.dumps({"p": p.name, "n": nonce})
        return p.authorization_url(state), nonce

    def _check_state(self, provider: str, state: str, nonce: str) -> None:
        try:
            data = self._state.loads(state or "", max_age=STATE_MAX_AGE_SECONDS)
        except BadSignature as e:
            raise ProviderExchangeFailed("Estado OAuth inválido o caducado") from e
        if not isinstance(data, dict) or data.get("p") != provider or not nonce or data.get("n") != nonce:
            raise ProviderExchangeFailed("Estado OAuth no coincide")

    def authenticate(self, provider: str, code: str, *, state: str, nonce: str) -> Account:
        p = self.provider(provider)
        self._check_state(p.name, state, nonce)
        subject_id = p.exchange_authorization_for_subject_id(code)
        account = self.resolve(p.name, subject_id)
        logger.info("Account %s signed in through %s", account.id, p.name)
        return account

    def close(self) -> None:
        for p in self._providers.values():
            p.close()
