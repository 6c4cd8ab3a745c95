"""
Authentication Factory following Black Box Design principles.

This factory:
- Constructs the authentication stack based on configuration
- Wires dependencies together
- Returns the pieces the API layer talks to
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ...config.provider import ConfigProvider
from ..middleware import RequestAuthGate
from ..notify import EmailNotifier, create_notifier
from ..tokens.manager import EphemeralTokenManager
from ..tokens.store import InMemoryTokenStore, RedisTokenStore
from ..users.repository import InMemoryUserRepository, RedisUserRepository
from ..users.service import UserService
from .audit import AuditLog
from .codec import BearerTokenCodec, Clock
from .hasher import BcryptPasswordHasher
from .interfaces import PasswordHasher
from .oidc_validator import OIDCValidator

logger = logging.getLogger(__name__)


@dataclass
class AuthStack:
    """Everything the API layer needs, already wired."""

    codec: BearerTokenCodec
    tokens: EphemeralTokenManager
    users: UserService
    gate: RequestAuthGate
    oidc: Optional[OIDCValidator] = None


class AuthFactory:
    """
    Factory for building the authentication stack.

    This is the composition root that:
    - Creates all auth components
    - Wires them together via dependency injection
    - Picks Redis or in-memory persistence
    """

    @staticmethod
    def build(
        config_provider: ConfigProvider,
        redis_client: Optional[Any] = None,
        clock: Optional[Clock] = None,
        hasher: Optional[PasswordHasher] = None,
        notifier: Optional[EmailNotifier] = None,
        token_generator: Optional[Callable[[], str]] = None,
    ) -> AuthStack:
        """
        Build the complete authentication stack.

        Args:
            config_provider: Configuration provider
            redis_client: Redis client; None selects in-memory stores
            clock: Optional clock shared by the codec and token manager
            hasher: Optional password hasher (bcrypt by default)
            notifier: Optional email notifier (from mail config by default)
            token_generator: Optional ephemeral token value generator

        Returns:
            AuthStack with codec, token manager, user service and gate
        """
        jwt_config = config_provider.get_jwt_config()
        token_config = config_provider.get_token_config()
        auth_config = config_provider.get_auth_config()
        oidc_config = config_provider.get_oidc_config()

        audit = AuditLog(redis_client)

        if redis_client is not None:
            logger.info("Building authentication stack with Redis persistence")
            token_store = RedisTokenStore(redis_client, token_config.retention_seconds)
            user_repository = RedisUserRepository(redis_client)
        else:
            logger.info("Building authentication stack with in-memory persistence")
            token_store = InMemoryTokenStore()
            user_repository = InMemoryUserRepository()

        codec = BearerTokenCodec(jwt_config, clock=clock)
        token_manager = EphemeralTokenManager(
            token_store, clock=clock, generator=token_generator, audit=audit
        )
        user_service = UserService(
            users=user_repository,
            tokens=token_manager,
            hasher=hasher or BcryptPasswordHasher(),
            notifier=notifier or create_notifier(config_provider.get_mail_config(), token_config),
            token_config=token_config,
            audit=audit,
        )
        gate = RequestAuthGate(codec, user_repository, auth_config)

        oidc = None
        if oidc_config.is_configured:
            logger.info(f"External login enabled for issuer {oidc_config.issuer}")
            oidc = OIDCValidator(oidc_config)

        return AuthStack(
            codec=codec,
            tokens=token_manager,
            users=user_service,
            gate=gate,
            oidc=oidc,
        )
