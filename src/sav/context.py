# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Process context: the one place where settings become live components.

Built once at startup with :meth:`AppContext.create` and torn down with
:meth:`AppContext.close`. Everything else receives its collaborators from
here instead of reading globals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import httpx
from sqlalchemy.engine import Engine

from sav.auth import users
from sav.auth.external import ExternalIdentityResolver
from sav.auth.providers import FacebookProvider, GoogleProvider
from sav.auth.session import SessionManager
from sav.config import Settings
from sav.crypto import SecretCipher
from sav.domain import Account, AccountSecrets, DecryptedSecret
from sav.infra.account_repo import AccountRepository
from sav.infra.db import create_db_engine, create_tables, make_session_factory
from sav.services import secret_service

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    engine: Engine
    store: AccountRepository
    cipher: SecretCipher
    sessions: SessionManager
    identities: ExternalIdentityResolver

    @classmethod
    def create(cls, settings: Settings, *, http: Optional[httpx.Client] = None) -> "AppContext":
        engine = create_db_engine(settings.database_url)
        create_tables(engine)
        store = AccountRepository(make_session_factory(engine))
        ctx = cls(
            settings=settings,
            engine=engine,
            store=store,
            cipher=SecretCipher(settings.encryption_key),
            sessions=SessionManager(store, settings.secret_key, max_age=settings.session_max_age),
            identities=ExternalIdentityResolver(
                store,
                [
                    GoogleProvider(settings.google, http=http),
                    FacebookProvider(settings.facebook, http=http),
                ],
                state_secret=settings.secret_key,
            ),
        )
        logger.info("Context ready (providers: %s)", ", ".join(ctx.identities.provider_names))
        return ctx

    def close(self) -> None:
        self.identities.close()
        self.engine.dispose()

    # ------------------ Authentication ------------------

    def register_local(self, username: str, password: str) -> Account:
        return users.register(self.store, username, password)

    def authenticate_local(self, username: str, password: str) -> Account:
        return users.verify(self.store, username, password)

    def resolve_external(self, provider: str, subject_id: str) -> Account:
        return self.identities.resolve(provider, subject_id)

    def begin_external(self, provider: str) -> Tuple[str, str]:
        return self.identities.begin(provider)

    def authenticate_external(self, provider: str, code: str, *, state: str, nonce: str) -> Account:
        return self.identities.authenticate(provider, code, state=state, nonce=nonce)

    # ------------------ Sessions ------------------

    def login(self, account: Account) -> str:
        return self.sessions.login(account)

    def current_account(self, token: str) -> Optional[Account]:
        return self.sessions.resolve_session(token)

    def logout(self, token: str) -> None:
        self.sessions.logout(token)

    # ------------------ Secrets ------------------

    def submit_secret(self, account_id: str, plaintext: str) -> None:
        secret_service.submit_secret(self.store, self.cipher, account_id, plaintext)

    def list_all_secrets_decrypted(self) -> List[AccountSecrets]:
        return secret_service.list_all_secrets_decrypted(self.store, self.cipher)

    def list_secrets_for_account(self, account_id: str) -> List[DecryptedSecret]:
        return secret_service.list_secrets_for_account(self.store, self.cipher, account_id)
