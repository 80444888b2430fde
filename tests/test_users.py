import pytest

from sav.auth import users
from sav.errors import AuthenticationFailed, DuplicateUsername


def test_register_then_verify_returns_same_account(store):
    acc = users.register(store, "alice", "wonderland")
    assert acc.username == "alice"
    assert acc.has_password
    assert acc.password_hash != "wonderland"

    again = users.verify(store, "alice", "wonderland")
    assert again.id == acc.id


def test_register_strips_username(store):
    acc = users.register(store, "  bob ", "pw")
    assert acc.username == "bob"
    assert users.verify(store, "bob", "pw").id == acc.id


def test_duplicate_username_leaves_first_account_intact(store):
    first = users.register(store, "alice", "first-password")
    with pytest.raises(DuplicateUsername):
        users.register(store, "alice", "second-password")

    assert users.verify(store, "alice", "first-password").id == first.id
    with pytest.raises(AuthenticationFailed):
        users.verify(store, "alice", "second-password")


def test_failures_are_indistinguishable(store):
    users.register(store, "alice", "wonderland")

    with pytest.raises(AuthenticationFailed) as wrong_password:
        users.verify(store, "alice", "nope")
    with pytest.raises(AuthenticationFailed) as unknown_user:
        users.verify(store, "mallory", "nope")

    assert str(wrong_password.value) == str(unknown_user.value)


def test_external_only_accounts_have_no_password_login(store):
    acc = store.find_or_create_by_external_identity("google", "123")
    assert acc.username is None
    with pytest.raises(AuthenticationFailed):
        users.verify(store, "", "anything")
    with pytest.raises(AuthenticationFailed):
        users.verify(store, acc.id, "anything")


def test_register_rejects_empty_values(store):
    with pytest.raises(ValueError):
        users.register(store, "   ", "pw")
    with pytest.raises(ValueError):
        users.register(store, "carol", "")
