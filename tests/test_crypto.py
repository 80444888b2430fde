import pytest
from cryptography.fernet import Fernet

from sav.crypto import SecretCipher, decrypt, encrypt
from sav.errors import DecryptionFailed

KEY = "process-wide-key"


@pytest.mark.parametrize("text", ["", "my password is 1234", "ñandú 🦤", "x" * 5000])
def test_roundtrip(text):
    assert decrypt(encrypt(text, KEY), KEY) == text


def test_ciphertext_is_randomized_and_opaque():
    a = encrypt("same text", KEY)
    b = encrypt("same text", KEY)
    assert a != b
    assert "same text" not in a


def test_wrong_key_never_yields_plaintext():
    ct = encrypt("my password is 1234", KEY)
    with pytest.raises(DecryptionFailed):
        decrypt(ct, "another-key")


@pytest.mark.parametrize("garbage", ["", "not a token", "gAAAAABgarbage==", "ñ"])
def test_malformed_ciphertext(garbage):
    with pytest.raises(DecryptionFailed):
        decrypt(garbage, KEY)


def test_raw_fernet_key_is_used_as_is():
    key = Fernet.generate_key().decode()
    ct = encrypt("hello", key)
    assert Fernet(key.encode()).decrypt(ct.encode()) == b"hello"


def test_cipher_repr_does_not_leak_key():
    assert KEY not in repr(SecretCipher(KEY))


def test_empty_key_is_rejected():
    with pytest.raises(ValueError):
        SecretCipher("")
