"""
Authentication Middleware Module - Black Box Interface

Purpose: Decide, per request, whether a bearer token establishes an identity
Interface: RequestAuthGate.evaluate(), AuthGateMiddleware, require_principal(), require_role()
Hidden: Header parsing, token decoding, account resolution

The gate is fail-soft: it never ends a request with an error. Every outcome
continues downstream, where require_principal / require_role decide whether
an unauthenticated request may proceed. The one exception is an unreachable
user store, which fails that request with 503.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Optional

import redis.asyncio as redis
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from ...config.provider import AuthConfig
from ..auth.codec import BearerTokenCodec
from ..auth.errors import AuthError
from ..auth.interfaces import Principal
from ..users.repository import UserRepository

logger = logging.getLogger(__name__)

STORAGE_UNAVAILABLE = "Storage unavailable"


class GateDecision(str, Enum):
    """Why the gate reached its outcome."""

    BYPASSED = "bypassed"
    ALREADY_AUTHENTICATED = "already_authenticated"
    NO_CREDENTIAL = "no_credential"
    INVALID_TOKEN = "invalid_token"
    SUBJECT_REJECTED = "subject_rejected"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class RequestDescriptor:
    """The parts of a request the gate looks at."""

    path: str
    method: str = "GET"
    authorization: Optional[str] = None


@dataclass(frozen=True)
class GateOutcome:
    """Terminal state of one gate evaluation. Both states continue the request."""

    decision: GateDecision
    principal: Optional[Principal] = None

    @property
    def authenticated(self) -> bool:
        return self.principal is not None


class RequestAuthGate:
    """
    Per-request authentication decision.

    Steps: public allow-list bypass, credential extraction, token decode,
    then live account resolution. Failures at any step yield an
    unauthenticated outcome rather than an error.
    """

    def __init__(
        self,
        codec: BearerTokenCodec,
        users: UserRepository,
        config: Optional[AuthConfig] = None,
    ):
        self.codec = codec
        self.users = users
        self.config = config or AuthConfig()
        self._public_paths = frozenset(self.config.public_paths)
        self._public_prefixes = tuple(self.config.public_prefixes)
        self._scheme_prefix = f"{self.config.scheme} "

        # Track outcomes for the health endpoint
        self.stats: Dict[str, int] = {decision.value: 0 for decision in GateDecision}

    def is_public(self, path: str) -> bool:
        """Check the configured allow-list (exact paths and prefixes)."""
        return path in self._public_paths or path.startswith(self._public_prefixes)

    def extract_token(self, authorization: Optional[str]) -> Optional[str]:
        """Return the token from '<scheme> <token>', or None if absent or malformed."""
        if not authorization or not authorization.startswith(self._scheme_prefix):
            return None
        token = authorization[len(self._scheme_prefix):].strip()
        return token or None

    async def evaluate(
        self,
        request: RequestDescriptor,
        existing: Optional[Principal] = None,
    ) -> GateOutcome:
        """
        Decide the identity for a request.

        Args:
            request: Path, method and credential header of the request
            existing: Identity already established earlier in processing

        Returns:
            GateOutcome; ``principal`` is set only when authenticated
        """
        outcome = await self._evaluate(request, existing)
        self.stats[outcome.decision.value] += 1
        return outcome

    async def _evaluate(
        self,
        request: RequestDescriptor,
        existing: Optional[Principal],
    ) -> GateOutcome:
        if self.is_public(request.path):
            return GateOutcome(GateDecision.BYPASSED, existing)

        if existing is not None:
            return GateOutcome(GateDecision.ALREADY_AUTHENTICATED, existing)

        token = self.extract_token(request.authorization)
        if token is None:
            return GateOutcome(GateDecision.NO_CREDENTIAL)

        try:
            subject = self.codec.decode_subject(token)
        except AuthError as e:
            logger.debug(f"Bearer token rejected for {request.path}: {type(e).__name__}")
            return GateOutcome(GateDecision.INVALID_TOKEN)

        # Store failures propagate: they fail this request instead of downgrading it
        user = await self.users.find_by_subject_claim(subject)

        if user is None or not self.codec.validate(token, user):
            logger.info(f"Token subject not usable for {request.method} {request.path}")
            return GateOutcome(GateDecision.SUBJECT_REJECTED)

        return GateOutcome(GateDecision.AUTHENTICATED, user)


class AuthGateMiddleware:
    """
    FastAPI adapter around RequestAuthGate.

    Stores the established identity on ``request.state.principal`` and always
    passes the request on.
    """

    def __init__(
        self,
        gate_provider: Callable[[], Optional[RequestAuthGate]],
        header_name: str = "Authorization",
    ):
        """
        Initialize gate middleware.

        Args:
            gate_provider: Returns the gate, or None before startup completes
            header_name: Header carrying the bearer credential
        """
        self.gate_provider = gate_provider
        self.header_name = header_name

    async def __call__(self, request: Request, call_next):
        """Process the request through the authentication gate."""
        gate = self.gate_provider()
        existing = getattr(request.state, "principal", None)

        if gate is None:
            request.state.principal = existing
            return await call_next(request)

        descriptor = RequestDescriptor(
            path=str(request.url.path),
            method=request.method.upper(),
            authorization=request.headers.get(self.header_name),
        )
        try:
            outcome = await gate.evaluate(descriptor, existing)
        except redis.ConnectionError as e:
            # Runs outside the app exception handlers
            logger.error(f"User store unavailable during authentication: {e}")
            return JSONResponse(
                status_code=503,
                content={"success": False, "data": None, "error": STORAGE_UNAVAILABLE},
            )

        request.state.principal = outcome.principal
        request.state.auth_decision = outcome.decision.value
        if outcome.decision == GateDecision.AUTHENTICATED:
            logger.debug(f"Request authenticated for identity: {outcome.principal.identity_key}")

        return await call_next(request)


def require_principal(request: Request) -> Principal:
    """Downstream authorization: reject requests the gate left unauthenticated."""
    principal = getattr(request.state, "principal", None)
    if principal is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return principal


def require_role(role: str) -> Callable[[Request], Principal]:
    """Build a dependency that also demands a role."""

    def dependency(request: Request) -> Principal:
        principal = require_principal(request)
        if role not in principal.authorities:
            raise HTTPException(status_code=403, detail="Access denied")
        return principal

    return dependency


def public_paths(config: AuthConfig) -> Iterable[str]:
    """Allow-list entries, for discovery and diagnostics."""
    return list(config.public_paths) + [f"{prefix}*" for prefix in config.public_prefixes]


__all__ = [
    "AuthGateMiddleware",
    "GateDecision",
    "GateOutcome",
    "RequestAuthGate",
    "RequestDescriptor",
    "public_paths",
    "require_principal",
    "require_role",
]
