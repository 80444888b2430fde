# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from itsdangerous import BadPayload, BadSignature, BadTimeSignature, SignatureExpired, URLSafeTimedSerializer

from sav.domain import Account
from sav.errors import AccountNotFound
from sav.infra.account_repo import AccountRepository

logger = logging.getLogger(__name__)

SESSION_SALT = "sav.session.v1"


class SessionManager:
    """Maps opaque cookie tokens to accounts.

    The token is a signed server-side session id: forging one requires the
    secret key, and revoking one only requires deleting the session row.
    """

    def __init__(self, store: AccountRepository, secret_key: str, *, max_age: int = 28800):
        if not secret_key:
            raise RuntimeError("Falta SECRET_KEY para firmar sesiones")
        self._store = store
        self._serializer = URLSafeTimedSerializer(secret_key=secret_key, salt=SESSION_SALT)
        self.max_age = max_age

    @staticmethod
    def _sid(data) -> Optional[str]:
        sid = str((data or {}).get("sid") or "").strip() if isinstance(data, dict) else ""
        return sid or None

    def _session_id(self, token: str) -> Optional[str]:
        if not token:
            return None
        try:
            data = self._serializer.loads(token, max_age=self.max_age)
        except SignatureExpired as e:
            # Signature checked out, only the age is over: drop the row too.
            try:
                sid = self._sid(self._serializer.load_payload(e.payload))
            except BadPayload:
                return None
            if sid is not None:
                self._store.delete_session(sid)
                logger.info("Expired session removed")
            return None
        except (BadSignature, BadTimeSignature):
            return None
        return self._sid(data)

    def prune_expired(self) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=self.max_age)
        removed = self._store.prune_sessions(cutoff)
        if removed:
            logger.info("Pruned %d expired sessions", removed)
        return removed

    def login(self, account: Account) -> str:
        self.prune_expired()
        session_id = self._store.create_session(account.id)
        logger.info("Session opened for account %s", account.id)
        return self._serializer.dumps({"sid": session_id})

    def resolve_session(self, token: str) -> Optional[Account]:
        """Return the logged-in account, or None when anonymous."""
        sid = self._session_id(token)
        if sid is None:
            return None
        account_id = self._store.find_session(sid)
        if account_id is None:
            return None
        try:
            return self._store.find_account_by_id(account_id)
        except AccountNotFound:
            return None

    def logout(self, token: str) -> None:
        sid = self._session_id(token)
        if sid is None:
            return
        self._store.delete_session(sid)
        logger.info("Session closed")
