"""
Unit tests for OIDC validator module.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from authkeeper.config.provider import OIDCConfig
from authkeeper.modules.auth.errors import ExternalLoginFailed
from authkeeper.modules.auth.oidc_validator import OIDCValidator
from authkeeper.modules.users.models import ExternalProvider

ISSUER = "https://auth.example.com"


@pytest.fixture(scope="module")
def signing_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def oidc_config():
    """Create a test OIDC configuration."""
    return OIDCConfig(
        enabled=True,
        issuer=ISSUER,
        client_id="test-client-id",
        jwks_uri=f"{ISSUER}/jwks",
        audience="test-client-id",
    )


@pytest.fixture
def jwks_client(signing_key):
    """Stub JWKS client serving the test public key."""
    client = MagicMock()
    client.get_signing_key_from_jwt.return_value = MagicMock(key=signing_key.public_key())
    return client


@pytest.fixture
def validator(oidc_config, jwks_client):
    return OIDCValidator(oidc_config, jwks_client=jwks_client)


@pytest.fixture
def valid_claims():
    """Create valid JWT claims."""
    now = datetime.now(timezone.utc)
    return {
        "sub": "user-123",
        "email": "test@example.com",
        "email_verified": True,
        "name": "Test User",
        "iss": ISSUER,
        "aud": "test-client-id",
        "exp": int((now + timedelta(hours=1)).timestamp()),
        "iat": int(now.timestamp()),
    }


def sign(claims, key) -> str:
    return jwt.encode(claims, key, algorithm="RS256")


@pytest.mark.asyncio
async def test_valid_token(validator, valid_claims, signing_key):
    is_valid, claims = await validator.validate_jwt_async(sign(valid_claims, signing_key))

    assert is_valid is True
    assert claims["email"] == "test@example.com"


@pytest.mark.asyncio
async def test_expired_token(validator, valid_claims, signing_key):
    valid_claims["exp"] = int((datetime.now(timezone.utc) - timedelta(minutes=5)).timestamp())

    assert await validator.validate_jwt_async(sign(valid_claims, signing_key)) == (False, None)


@pytest.mark.asyncio
async def test_wrong_audience(validator, valid_claims, signing_key):
    valid_claims["aud"] = "someone-else"

    assert await validator.validate_jwt_async(sign(valid_claims, signing_key)) == (False, None)


@pytest.mark.asyncio
async def test_wrong_issuer(validator, valid_claims, signing_key):
    valid_claims["iss"] = "https://evil.example.com"

    assert await validator.validate_jwt_async(sign(valid_claims, signing_key)) == (False, None)


@pytest.mark.asyncio
async def test_token_signed_by_other_key(validator, valid_claims):
    other = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    assert await validator.validate_jwt_async(sign(valid_claims, other)) == (False, None)


@pytest.mark.asyncio
async def test_jwks_failure_rejects(validator, jwks_client, valid_claims, signing_key):
    jwks_client.get_signing_key_from_jwt.side_effect = jwt.PyJWKClientError("fetch failed")

    assert await validator.validate_jwt_async(sign(valid_claims, signing_key)) == (False, None)


@pytest.mark.asyncio
async def test_disabled_config_rejects(jwks_client, valid_claims, signing_key):
    config = OIDCConfig(enabled=False, issuer=None, client_id="x", jwks_uri=None, audience=None)
    validator = OIDCValidator(config, jwks_client=jwks_client)

    assert await validator.validate_jwt_async(sign(valid_claims, signing_key)) == (False, None)
    jwks_client.get_signing_key_from_jwt.assert_not_called()


@pytest.mark.asyncio
async def test_resolve_returns_identity(validator, valid_claims, signing_key):
    identity = await validator.resolve(sign(valid_claims, signing_key))

    assert identity.email == "test@example.com"
    assert identity.full_name == "Test User"
    assert identity.provider == ExternalProvider.OIDC
    assert identity.provider_id == "user-123"


@pytest.mark.asyncio
async def test_resolve_rejects_invalid_token(validator):
    with pytest.raises(ExternalLoginFailed):
        await validator.resolve("not-a-token")


def test_google_issuer_maps_to_google(validator):
    assert validator.provider_for({"iss": "https://accounts.google.com"}) == ExternalProvider.GOOGLE


def test_configured_provider_name(jwks_client):
    config = OIDCConfig(
        enabled=True, issuer=ISSUER, client_id="x", jwks_uri=None, audience=None, provider="FACEBOOK"
    )
    validator = OIDCValidator(config, jwks_client=jwks_client)
    assert validator.provider_for({"iss": ISSUER}) == ExternalProvider.FACEBOOK


def test_identity_requires_email(validator, valid_claims):
    del valid_claims["email"]
    with pytest.raises(ExternalLoginFailed):
        validator.extract_identity(valid_claims)


def test_identity_requires_verified_email(validator, valid_claims):
    valid_claims["email_verified"] = False
    with pytest.raises(ExternalLoginFailed):
        validator.extract_identity(valid_claims)
