"""
Tests for the bcrypt password hasher.
"""

import pytest

from authkeeper.modules.auth.errors import PasswordTooLong
from authkeeper.modules.auth.hasher import MAX_PASSWORD_BYTES, BcryptPasswordHasher


@pytest.fixture
def hasher():
    return BcryptPasswordHasher(rounds=4)


def test_hash_and_verify(hasher):
    password_hash = hasher.hash("Str0ng!Pass")

    assert password_hash.startswith("$2b$04$")
    assert hasher.verify("Str0ng!Pass", password_hash)
    assert not hasher.verify("Str0ng!Pas", password_hash)


def test_hash_refuses_passwords_bcrypt_would_truncate(hasher):
    assert hasher.hash("x" * MAX_PASSWORD_BYTES)

    with pytest.raises(PasswordTooLong):
        hasher.hash("x" * (MAX_PASSWORD_BYTES + 1))


def test_limit_counts_utf8_bytes(hasher):
    # 37 two-byte characters
    with pytest.raises(PasswordTooLong):
        hasher.hash("é" * 37)


def test_verify_rejects_long_password_sharing_a_prefix(hasher):
    stored = "y" * MAX_PASSWORD_BYTES
    password_hash = hasher.hash(stored)

    assert not hasher.verify(stored + "extra", password_hash)


@pytest.mark.parametrize("stored", ["", "not-a-bcrypt-hash"])
def test_verify_rejects_unusable_hashes(hasher, stored):
    assert not hasher.verify("Str0ng!Pass", stored)
