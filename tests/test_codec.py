"""
Unit tests for the bearer token codec.
"""

from datetime import timedelta

import jwt
import pytest

from authkeeper.config.provider import JWTConfig
from authkeeper.modules.auth.codec import BearerTokenCodec
from authkeeper.modules.auth.errors import SignatureInvalid, TokenExpired, TokenMalformed
from authkeeper.modules.users.models import Role, User, UserStatus

from conftest import TEST_SECRET

OTHER_SECRET = "another-signing-secret-fedcba9876543210"


@pytest.fixture
def codec(clock):
    return BearerTokenCodec(JWTConfig(secret=TEST_SECRET, expiration_hours=24), clock=clock)


@pytest.fixture
def user():
    return User(
        email="alice@example.com",
        full_name="Alice Example",
        password_hash="x",
        status=UserStatus.ACTIVE,
        email_verified=True,
    )


def test_issue_then_decode_returns_subject(codec, user):
    token = codec.issue(user)
    assert codec.decode_subject(token) == "alice@example.com"


def test_issued_claims(codec, user, clock):
    claims = codec.decode_claims(codec.issue(user, {"uid": user.id}))

    assert claims["iat"] == int(clock.now.timestamp())
    assert claims["exp"] == int((clock.now + timedelta(hours=24)).timestamp())
    assert claims["roles"] == [Role.USER.value]
    assert claims["uid"] == user.id


def test_extra_claims_cannot_override_subject(codec, user):
    token = codec.issue(user, {"sub": "mallory@example.com"})
    assert codec.decode_subject(token) == "alice@example.com"


def test_token_from_rotated_secret_is_rejected(codec, user, clock):
    rotated = BearerTokenCodec(JWTConfig(secret=OTHER_SECRET), clock=clock)
    token = rotated.issue(user)

    with pytest.raises(SignatureInvalid):
        codec.decode_subject(token)


def test_expired_token(codec, user, clock):
    token = codec.issue(user)
    clock.advance(hours=24)

    with pytest.raises(TokenExpired):
        codec.decode_subject(token)


def test_expired_token_with_bad_signature_reports_signature(codec, user, clock):
    rotated = BearerTokenCodec(JWTConfig(secret=OTHER_SECRET), clock=clock)
    token = rotated.issue(user)
    clock.advance(days=3)

    with pytest.raises(SignatureInvalid):
        codec.decode_subject(token)


@pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c", "Bearer xyz"])
def test_malformed_tokens(codec, garbage):
    with pytest.raises(TokenMalformed):
        codec.decode_subject(garbage)


def test_missing_subject_is_malformed(codec, clock):
    token = jwt.encode(
        {"iat": int(clock.now.timestamp()), "exp": int(clock.now.timestamp()) + 60},
        TEST_SECRET,
        algorithm="HS256",
    )
    with pytest.raises(TokenMalformed):
        codec.decode_subject(token)


def test_empty_subject_is_malformed(codec, clock):
    now = int(clock.now.timestamp())
    token = jwt.encode({"sub": "", "iat": now, "exp": now + 60}, TEST_SECRET, algorithm="HS256")
    with pytest.raises(TokenMalformed):
        codec.decode_subject(token)


def test_unsigned_token_is_rejected(codec, clock):
    now = int(clock.now.timestamp())
    token = jwt.encode({"sub": "alice@example.com", "iat": now, "exp": now + 60}, None, algorithm="none")
    with pytest.raises((SignatureInvalid, TokenMalformed)):
        codec.decode_subject(token)


def test_validate_accepts_matching_usable_account(codec, user):
    assert codec.validate(codec.issue(user), user) is True


def test_validate_rejects_other_account(codec, user):
    other = User(
        email="bob@example.com",
        full_name="Bob",
        status=UserStatus.ACTIVE,
        email_verified=True,
    )
    assert codec.validate(codec.issue(user), other) is False


def test_validate_rejects_locked_account(codec, user):
    token = codec.issue(user)
    user.lock()
    assert codec.validate(token, user) is False


def test_validate_rejects_unverified_account(codec):
    pending = User(email="pending@example.com", full_name="Pending")
    assert codec.validate(codec.issue(pending), pending) is False


def test_validate_rejects_expired_token(codec, user, clock):
    token = codec.issue(user)
    clock.advance(days=2)
    assert codec.validate(token, user) is False
