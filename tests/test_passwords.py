import pytest

from sav.auth.passwords import hash_password, verify_password


def test_hash_is_salted_per_call():
    a = hash_password("correct horse")
    b = hash_password("correct horse")
    assert a != b
    assert "correct horse" not in a
    assert verify_password(a, "correct horse")
    assert verify_password(b, "correct horse")


def test_verify_rejects_wrong_or_empty_password():
    h = hash_password("s3cret")
    assert not verify_password(h, "S3cret")
    assert not verify_password(h, "")
    assert not verify_password("", "s3cret")


def test_verify_handles_garbage_hash():
    assert not verify_password("not-an-argon2-hash", "whatever")


def test_empty_password_cannot_be_hashed():
    with pytest.raises(ValueError):
        hash_password("")
