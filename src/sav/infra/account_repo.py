# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Credential store: accounts, linked external identities, secrets and sessions.

Every public method runs in its own transaction and hands back frozen
:mod:`sav.domain` records. Uniqueness (usernames, ``(provider, subject_id)``
pairs) is enforced by database constraints, so concurrent callers racing on
the same key either fail cleanly or end up reading the winner's row.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeout
from sqlalchemy.orm import Session, selectinload, sessionmaker

from sav.domain import Account, Secret
from sav.errors import AccountNotFound, DuplicateUsername, StorageUnavailable
from sav.infra.models import DBAccount, DBExternalIdentity, DBSecret, DBSession

logger = logging.getLogger(__name__)


def new_account_id() -> str:
    return uuid.uuid4().hex


def _to_account(row: DBAccount) -> Account:
    return Account(
        id=row.id,
        username=row.username,
        password_hash=row.password_hash,
        external_ids={i.provider: i.subject_id for i in row.identities},
        secrets=tuple(Secret(ciphertext=s.ciphertext) for s in row.secrets),
    )


def _norm_provider(provider: str) -> str:
    p = str(provider or "").strip().lower()
    if not p:
        raise ValueError("El proveedor no puede estar vacío.")
    return p


class AccountRepository:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        """Open a session, commit on success and roll back on any error.

        Integrity violations are re-raised as is so callers can map them
        to domain errors; other backend failures become StorageUnavailable.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except IntegrityError:
            session.rollback()
            raise
        except (DBAPIError, PoolTimeout) as e:
            logger.error("Database operation failed, rolling back: %s", e)
            session.rollback()
            raise StorageUnavailable("No se pudo acceder al almacenamiento") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _accounts(session: Session):
        return session.query(DBAccount).options(
            selectinload(DBAccount.identities),
            selectinload(DBAccount.secrets),
        )

    # ------------------ Accounts ------------------

    def find_account_by_id(self, account_id: str) -> Account:
        with self._transaction() as s:
            row = self._accounts(s).filter(DBAccount.id == str(account_id or "")).one_or_none()
            if row is None:
                raise AccountNotFound(account_id)
            return _to_account(row)

    def find_account_by_username(self, username: str) -> Account:
        u = (username or "").strip()
        with self._transaction() as s:
            row = self._accounts(s).filter(DBAccount.username == u).one_or_none() if u else None
            if row is None:
                raise AccountNotFound(username)
            return _to_account(row)

    def _find_by_identity(self, provider: str, subject_id: str) -> Optional[Account]:
        with self._transaction() as s:
            row = (
                self._accounts(s)
                .join(DBExternalIdentity, DBExternalIdentity.account_id == DBAccount.id)
                .filter(DBExternalIdentity.provider == provider, DBExternalIdentity.subject_id == subject_id)
                .one_or_none()
            )
            return _to_account(row) if row is not None else None

    def find_or_create_by_external_identity(self, provider: str, subject_id: str) -> Account:
        provider = _norm_provider(provider)
        subject_id = str(subject_id or "").strip()
        if not subject_id:
            raise ValueError("El subject id no puede estar vacío.")

        found = self._find_by_identity(provider, subject_id)
        if found is not None:
            return found

        account_id = new_account_id()
        try:
            with self._transaction() as s:
                row = DBAccount(id=account_id)
                row.identities.append(DBExternalIdentity(provider=provider, subject_id=subject_id))
                s.add(row)
        except IntegrityError as e:
            # Another request linked the same identity first; its account wins.
            found = self._find_by_identity(provider, subject_id)
            if found is None:
                logger.error("Identity insert for %s conflicted but no linked account was found: %s", provider, e)
                raise StorageUnavailable("No se pudo acceder al almacenamiento") from e
            logger.info("Concurrent first login for %s identity resolved to account %s", provider, found.id)
            return found

        logger.info("Created account %s linked to %s", account_id, provider)
        return self.find_account_by_id(account_id)

    def create_local_account(self, username: str, password_hash: str) -> Account:
        u = (username or "").strip()
        if not u:
            raise ValueError("El usuario no puede estar vacío.")
        if not password_hash:
            raise ValueError("Falta la credencial de contraseña.")

        account_id = new_account_id()
        try:
            with self._transaction() as s:
                if s.query(DBAccount.id).filter(DBAccount.username == u).first() is not None:
                    raise DuplicateUsername(u)
                s.add(DBAccount(id=account_id, username=u, password_hash=password_hash))
        except IntegrityError as e:
            raise DuplicateUsername(u) from e

        logger.info("Created local account %s", account_id)
        return self.find_account_by_id(account_id)

    # ------------------ Secrets ------------------

    def append_secret(self, account_id: str, secret: Secret) -> None:
        try:
            with self._transaction() as s:
                if s.get(DBAccount, account_id) is None:
                    raise AccountNotFound(account_id)
                s.add(DBSecret(account_id=account_id, ciphertext=secret.ciphertext))
        except IntegrityError as e:
            # Foreign key violation: the account vanished mid-transaction.
            raise AccountNotFound(account_id) from e

    def list_accounts_with_secrets(self) -> List[Account]:
        with self._transaction() as s:
            rows = (
                self._accounts(s)
                .filter(DBAccount.secrets.any())
                .order_by(DBAccount.created_at, DBAccount.id)
                .all()
            )
            return [_to_account(r) for r in rows]

    # ------------------ Sessions ------------------

    def create_session(self, account_id: str) -> str:
        session_id = secrets.token_urlsafe(32)
        try:
            with self._transaction() as s:
                if s.get(DBAccount, account_id) is None:
                    raise AccountNotFound(account_id)
                s.add(DBSession(session_id=session_id, account_id=account_id))
        except IntegrityError as e:
            raise AccountNotFound(account_id) from e
        return session_id

    def find_session(self, session_id: str) -> Optional[str]:
        """Return the account id bound to ``session_id``, if any."""
        with self._transaction() as s:
            row = s.get(DBSession, session_id)
            return row.account_id if row is not None else None

    def delete_session(self, session_id: str) -> None:
        with self._transaction() as s:
            s.query(DBSession).filter(DBSession.session_id == session_id).delete(synchronize_session=False)

    def prune_sessions(self, created_before: datetime) -> int:
        """Delete sessions opened before ``created_before``; returns how many."""
        with self._transaction() as s:
            return (
                s.query(DBSession)
                .filter(DBSession.created_at < created_before)
                .delete(synchronize_session=False)
            )
