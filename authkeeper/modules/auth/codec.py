"""
Bearer token codec.

Issues and decodes the signed, self-contained tokens presented on every
request. Nothing is stored server side: validity is recomputed from the token
itself plus the process-wide signing secret, so a leaked token stays usable
until its embedded expiry. Account-level revocation (locking) is caught by
``validate`` through the live account check.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Dict, Optional

import jwt

from ...config.provider import JWTConfig
from .errors import AuthError, SignatureInvalid, TokenExpired, TokenMalformed
from .interfaces import Principal

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

REQUIRED_CLAIMS = ["sub", "iat", "exp"]


def utc_now() -> datetime:
    return datetime.now(UTC)


class BearerTokenCodec:
    """
    Encodes and decodes HS256 bearer tokens.

    The secret is read once at construction and never changes afterwards.
    Rotating it means building a new codec, which invalidates every token
    issued by the old one.
    """

    def __init__(self, config: JWTConfig, clock: Optional[Clock] = None):
        """
        Initialize codec with injected config.

        Args:
            config: Signing configuration (secret, lifetime, algorithm)
            clock: Returns the current UTC time; injectable for tests
        """
        self._secret = config.secret
        self._algorithm = config.algorithm
        self._issuer = config.issuer
        self.lifetime = timedelta(hours=config.expiration_hours)
        self._clock = clock or utc_now

    def issue(self, principal: Principal, extra_claims: Optional[Dict[str, Any]] = None) -> str:
        """
        Issue a signed token for a principal.

        Args:
            principal: Account the token asserts
            extra_claims: Informational claims (never trusted on decode)

        Returns:
            Encoded token string
        """
        now = self._clock()
        claims: Dict[str, Any] = dict(extra_claims or {})
        claims.update(
            {
                "sub": principal.identity_key,
                "iat": int(now.timestamp()),
                "exp": int((now + self.lifetime).timestamp()),
                "roles": sorted(principal.authorities),
            }
        )
        if self._issuer:
            claims["iss"] = self._issuer

        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def decode_claims(self, token: str) -> Dict[str, Any]:
        """
        Verify a token and return its claims.

        Raises:
            TokenMalformed: Token cannot be parsed or lacks required claims
            SignatureInvalid: Signature does not match the current secret
            TokenExpired: Embedded expiry has passed (checked after signature)
        """
        if not token:
            raise TokenMalformed("Empty token")

        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={
                    "verify_signature": True,
                    "verify_iss": bool(self._issuer),
                    # Time checks run against the injected clock below
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidSignatureError as e:
            raise SignatureInvalid("Token signature does not verify") from e
        except jwt.InvalidAlgorithmError as e:
            raise SignatureInvalid(f"Token algorithm not accepted: {e}") from e
        except jwt.InvalidTokenError as e:
            raise TokenMalformed(f"Token could not be decoded: {e}") from e

        subject = claims.get("sub")
        expires_at = claims.get("exp")
        if not isinstance(subject, str) or not subject:
            raise TokenMalformed("Token subject claim is missing or empty")
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            raise TokenMalformed("Token expiry claim is not a timestamp")

        if self._clock().timestamp() >= expires_at:
            raise TokenExpired("Token has expired")

        return claims

    def decode_subject(self, token: str) -> str:
        """Return the subject claim embedded at issuance."""
        return self.decode_claims(token)["sub"]

    def validate(self, token: str, expected: Principal) -> bool:
        """
        Check a token against a live-loaded account.

        Args:
            token: Encoded bearer token
            expected: Account freshly loaded from the user store

        Returns:
            True only if the token decodes, names this account, and the
            account is currently usable
        """
        try:
            subject = self.decode_subject(token)
        except AuthError as e:
            logger.debug(f"Bearer token rejected: {type(e).__name__}")
            return False

        if subject != expected.identity_key:
            return False

        return expected.is_usable()
