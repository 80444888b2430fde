from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine, func, select

from sav.domain import Secret
from sav.errors import AccountNotFound, DuplicateUsername, StorageUnavailable
from sav.infra.account_repo import AccountRepository
from sav.infra.db import make_session_factory
from sav.infra.models import DBAccount, DBExternalIdentity


def _count(engine, model) -> int:
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(model)).scalar_one()


def test_external_identity_is_created_once(store):
    first = store.find_or_create_by_external_identity("google", "108")
    second = store.find_or_create_by_external_identity("google", "108")

    assert first.id == second.id
    assert first.username is None
    assert not first.has_password
    assert first.external_ids == {"google": "108"}


def test_same_subject_from_two_providers_gives_two_accounts(store):
    g = store.find_or_create_by_external_identity("google", "42")
    f = store.find_or_create_by_external_identity("facebook", "42")
    assert g.id != f.id


def test_concurrent_first_logins_create_a_single_account(ctx):
    store = ctx.store

    def login(_):
        return store.find_or_create_by_external_identity("facebook", "race-1").id

    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = set(pool.map(login, range(16)))

    assert len(ids) == 1
    assert _count(ctx.engine, DBAccount) == 1
    assert _count(ctx.engine, DBExternalIdentity) == 1


def test_concurrent_registrations_of_same_username(ctx):
    store = ctx.store

    def register(i):
        try:
            return store.create_local_account("alice", f"hash-{i}").id
        except DuplicateUsername:
            return None

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(register, range(8)))

    assert len([r for r in results if r]) == 1
    assert _count(ctx.engine, DBAccount) == 1


def test_find_by_username_and_id(store):
    acc = store.create_local_account("alice", "hash")
    assert store.find_account_by_username("alice").id == acc.id
    assert store.find_account_by_id(acc.id).username == "alice"

    with pytest.raises(AccountNotFound):
        store.find_account_by_username("bob")
    with pytest.raises(AccountNotFound):
        store.find_account_by_id("does-not-exist")


def test_append_secret_keeps_order(store):
    acc = store.create_local_account("alice", "hash")
    for c in ("one", "two", "three"):
        store.append_secret(acc.id, Secret(ciphertext=c))

    assert [s.ciphertext for s in store.find_account_by_id(acc.id).secrets] == ["one", "two", "three"]


def test_append_secret_to_missing_account(store):
    with pytest.raises(AccountNotFound):
        store.append_secret("missing", Secret(ciphertext="x"))


def test_list_accounts_with_secrets_skips_empty_accounts(store):
    with_secret = store.create_local_account("alice", "hash")
    store.create_local_account("bob", "hash")
    store.append_secret(with_secret.id, Secret(ciphertext="c"))

    listed = store.list_accounts_with_secrets()
    assert [a.id for a in listed] == [with_secret.id]
    assert listed[0].secrets == (Secret(ciphertext="c"),)


def test_sessions_roundtrip(store):
    acc = store.create_local_account("alice", "hash")
    sid = store.create_session(acc.id)
    assert store.find_session(sid) == acc.id

    store.delete_session(sid)
    assert store.find_session(sid) is None
    # idempotent
    store.delete_session(sid)


def test_session_for_missing_account(store):
    with pytest.raises(AccountNotFound):
        store.create_session("missing")


def test_backend_failure_is_storage_unavailable(tmp_path):
    # A directory is not a database file.
    engine = create_engine(f"sqlite:///{tmp_path}")
    repo = AccountRepository(make_session_factory(engine))
    with pytest.raises(StorageUnavailable):
        repo.find_account_by_id("anything")
    engine.dispose()


def test_identity_conflict_without_a_winner_is_a_storage_error(store, ctx, monkeypatch):
    store.find_or_create_by_external_identity("google", "108")
    # The linked account cannot be read back, so the conflict has no winner.
    monkeypatch.setattr(store, "_find_by_identity", lambda provider, subject_id: None)

    with pytest.raises(StorageUnavailable):
        store.find_or_create_by_external_identity("google", "108")

    assert _count(ctx.engine, DBAccount) == 1
