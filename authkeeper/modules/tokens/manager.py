"""
Ephemeral token manager.

Issues, looks up, validates and consumes single-use tokens. ``lookup`` and
``consume`` fail loudly with typed errors for flows that must reject an
invalid token; ``is_valid`` never raises, for callers that only need a yes
or no.
"""

import logging
import secrets
from datetime import timedelta
from typing import Callable, Optional

from ..auth.audit import AuditLog
from ..auth.codec import Clock, utc_now
from ..auth.errors import (
    TokenAlreadyConsumed,
    TokenCollision,
    TokenExpired,
    TokenNotFound,
)
from .models import EphemeralToken, TokenPurpose
from .store import TokenStore

logger = logging.getLogger(__name__)

# 32 random bytes = 256 bits of entropy
TOKEN_BYTES = 32
MAX_GENERATION_ATTEMPTS = 3


def generate_token_value() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


class EphemeralTokenManager:
    """Lifecycle rules for verification and reset tokens."""

    def __init__(
        self,
        store: TokenStore,
        clock: Optional[Clock] = None,
        generator: Optional[Callable[[], str]] = None,
        audit: Optional[AuditLog] = None,
    ):
        """
        Initialize token manager.

        Args:
            store: Token persistence backend
            clock: Returns the current UTC time; injectable for tests
            generator: Produces opaque token values; injectable for tests
            audit: Optional audit trail
        """
        self.store = store
        self._clock = clock or utc_now
        self._generate = generator or generate_token_value
        self.audit = audit or AuditLog()

    async def issue(self, owner_id: str, purpose: TokenPurpose, ttl: timedelta) -> EphemeralToken:
        """
        Issue a new token, permanently removing the owner's previous one.

        Args:
            owner_id: Account the token belongs to
            purpose: What the token may be used for
            ttl: Time until the token expires

        Returns:
            The persisted token

        Raises:
            TokenCollision: Generator kept producing existing values
        """
        for attempt in range(1, MAX_GENERATION_ATTEMPTS + 1):
            now = self._clock()
            token = EphemeralToken(
                value=self._generate(),
                purpose=purpose,
                owner_id=owner_id,
                expires_at=now + ttl,
                issued_at=now,
            )
            try:
                await self.store.replace(token)
            except TokenCollision:
                logger.warning(
                    f"Token value collision for {purpose.value} (attempt {attempt})"
                )
                continue

            await self.audit.record(
                "ephemeral_token_issued",
                {
                    "owner_id": owner_id,
                    "purpose": purpose.value,
                    "expires_at": token.expires_at.isoformat(),
                },
            )
            return token

        raise TokenCollision(
            f"Could not generate a unique {purpose.value} token after "
            f"{MAX_GENERATION_ATTEMPTS} attempts"
        )

    async def lookup(self, value: str, purpose: TokenPurpose) -> EphemeralToken:
        """
        Find a token by its exact (value, purpose) pair.

        Raises:
            TokenNotFound: No such token, or it belongs to another purpose
        """
        if not value:
            raise TokenNotFound("Token not found")

        token = await self.store.get(value)
        if token is None or token.purpose != purpose:
            raise TokenNotFound("Token not found")
        return token

    async def consume(self, value: str, purpose: TokenPurpose) -> EphemeralToken:
        """
        Mark a token as used. Succeeds at most once per token.

        Returns:
            The token as it was before consumption

        Raises:
            TokenNotFound: No such token for this purpose
            TokenAlreadyConsumed: Token was used before (or concurrently)
            TokenExpired: Token deadline has passed
        """
        token = await self.lookup(value, purpose)

        if token.consumed:
            raise TokenAlreadyConsumed("Token already used")
        if token.is_expired(self._clock()):
            raise TokenExpired("Token has expired")

        # Compare-and-set: a concurrent consumer may have won since lookup
        if not await self.store.mark_consumed(value):
            raise TokenAlreadyConsumed("Token already used")

        await self.audit.record(
            "ephemeral_token_consumed",
            {"owner_id": token.owner_id, "purpose": purpose.value},
        )
        return token

    async def is_valid(self, value: str, purpose: TokenPurpose) -> bool:
        """Whether the token exists for this purpose, is unused and unexpired."""
        try:
            token = await self.lookup(value, purpose)
        except TokenNotFound:
            return False
        return token.is_valid(self._clock())

    async def revoke(self, owner_id: str, purpose: TokenPurpose) -> bool:
        """Drop any outstanding token of this purpose for the owner."""
        return await self.store.delete_for_owner(owner_id, purpose)
