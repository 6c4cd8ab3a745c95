"""
OIDC ID token validator used by the external-login endpoint.

The provider handshake itself happens elsewhere; this module only verifies
the ID token the client brings back and maps its claims to an identity.
"""

import asyncio
import logging
from typing import Dict, Optional, Tuple, Any

import jwt
from jwt import PyJWKClient

from ...config.provider import OIDCConfig
from ..users.models import ExternalProvider
from ..users.service import ExternalIdentity
from .errors import ExternalLoginFailed
from .interfaces import TokenValidator

logger = logging.getLogger(__name__)

GOOGLE_ISSUERS = ("https://accounts.google.com", "accounts.google.com")


class OIDCValidator(TokenValidator):
    """
    Validates ID tokens from an OIDC provider.

    Signing keys come from the provider's JWKS endpoint and are cached for
    an hour by PyJWKClient.
    """

    def __init__(self, config: OIDCConfig, jwks_client: Optional[PyJWKClient] = None):
        """
        Initialize OIDC validator with injected config.

        Args:
            config: OIDC configuration object
            jwks_client: Pre-built JWKS client (tests inject a stub)
        """
        self.config = config
        self.issuer = config.issuer
        self.audience = config.audience

        self.jwks_client = jwks_client
        if self.jwks_client is None and config.jwks_uri and config.is_configured:
            self.jwks_client = PyJWKClient(config.jwks_uri, cache_keys=True, lifespan=3600)

    async def validate_jwt_async(self, token: str) -> Tuple[bool, Optional[Dict[str, Any]]]:
        """
        Validate an ID token.

        Returns:
            Tuple of (is_valid, claims_dict or None)
        """
        if not self.config.is_configured:
            logger.debug("OIDC not configured - rejecting token")
            return False, None

        if not self.jwks_client:
            logger.error("JWKS client not initialized - cannot verify JWT signatures")
            return False, None

        try:
            # Key fetch performs blocking HTTP on cache miss
            signing_key = await asyncio.to_thread(
                self.jwks_client.get_signing_key_from_jwt, token
            )
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256", "RS384", "RS512"],
                audience=self.audience,
                issuer=self.issuer,
                options={
                    "verify_signature": True,
                    "verify_aud": bool(self.audience),
                    "verify_iss": bool(self.issuer),
                    "verify_exp": True,
                    "require": ["exp", "iat", "sub"],
                },
            )
            return True, claims

        except jwt.ExpiredSignatureError:
            logger.debug("ID token expired")
            return False, None
        except jwt.InvalidAudienceError:
            logger.debug(f"Invalid audience in ID token (expected {self.audience})")
            return False, None
        except jwt.InvalidIssuerError:
            logger.debug(f"Invalid issuer in ID token (expected {self.issuer})")
            return False, None
        except jwt.PyJWKClientError as e:
            logger.warning(f"Could not obtain signing key: {e}")
            return False, None
        except jwt.InvalidTokenError as e:
            logger.debug(f"Invalid ID token: {e}")
            return False, None

    def provider_for(self, claims: Dict[str, Any]) -> ExternalProvider:
        """Map the token issuer to a provider."""
        if claims.get("iss") in GOOGLE_ISSUERS:
            return ExternalProvider.GOOGLE
        try:
            return ExternalProvider(self.config.provider)
        except ValueError:
            return ExternalProvider.OIDC

    def extract_identity(self, claims: Dict[str, Any]) -> ExternalIdentity:
        """
        Build an ExternalIdentity from verified claims.

        Raises:
            ExternalLoginFailed: Email missing or not verified by the provider
        """
        email = claims.get("email")
        if not email:
            raise ExternalLoginFailed("Identity token carries no email")
        if claims.get("email_verified") is False:
            raise ExternalLoginFailed("Provider has not verified this email")

        return ExternalIdentity(
            email=email,
            full_name=claims.get("name") or claims.get("preferred_username") or email,
            provider=self.provider_for(claims),
            provider_id=str(claims["sub"]),
        )

    async def resolve(self, token: str) -> ExternalIdentity:
        """Validate a token and return the identity it asserts."""
        is_valid, claims = await self.validate_jwt_async(token)
        if not is_valid or not claims:
            raise ExternalLoginFailed("Identity token rejected")
        return self.extract_identity(claims)
