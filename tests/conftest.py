"""
Shared pytest fixtures for Authkeeper tests.

This module provides common fixtures including:
- FakeClock: Controllable UTC clock for expiry tests
- StaticConfigProvider: In-code configuration with a valid signing secret
- RecordingNotifier: Captures outbound verification/reset tokens
- Redis mocks for the Redis-backed stores
- A fully wired in-memory AuthStack and FastAPI test client
"""

import os
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import List, Optional, Tuple
from unittest.mock import AsyncMock

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from authkeeper.config.provider import (
    APIConfig,
    AuthConfig,
    JWTConfig,
    MailConfig,
    OIDCConfig,
    TokenConfig,
)
from authkeeper.modules.auth.factory import AuthFactory, AuthStack
from authkeeper.modules.auth.hasher import BcryptPasswordHasher
from authkeeper.modules.tokens.models import EphemeralToken, TokenPurpose
from authkeeper.modules.users.models import User

TEST_SECRET = "unit-test-signing-secret-0123456789abcdef"
TEST_PASSWORD = "Str0ng!Pass"


# =============================================================================
# Clock, configuration and notification doubles
# =============================================================================

class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@dataclass
class StaticConfigProvider:
    """ConfigProvider returning fixed, test-friendly values."""

    jwt: JWTConfig = field(default_factory=lambda: JWTConfig(secret=TEST_SECRET))
    tokens: TokenConfig = field(default_factory=TokenConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    oidc: OIDCConfig = field(
        default_factory=lambda: OIDCConfig(
            enabled=False, issuer=None, client_id="authkeeper", jwks_uri=None, audience=None
        )
    )
    api: APIConfig = field(
        default_factory=lambda: APIConfig(port=8080, host="127.0.0.1", debug=False, cors_origins=["*"])
    )
    mail: MailConfig = field(
        default_factory=lambda: MailConfig(
            enabled=False,
            smtp_server="localhost",
            smtp_port=25,
            sender_email=None,
            sender_password=None,
            frontend_url="http://frontend.test",
        )
    )

    def get_jwt_config(self) -> JWTConfig:
        return self.jwt

    def get_token_config(self) -> TokenConfig:
        return self.tokens

    def get_auth_config(self) -> AuthConfig:
        return self.auth

    def get_oidc_config(self) -> OIDCConfig:
        return self.oidc

    def get_api_config(self) -> APIConfig:
        return self.api

    def get_mail_config(self) -> MailConfig:
        return self.mail


class RecordingNotifier:
    """Keeps every notification instead of sending it."""

    def __init__(self):
        self.sent: List[Tuple[User, TokenPurpose, EphemeralToken]] = []
        self.fail = False

    async def notify(self, user: User, purpose: TokenPurpose, token: EphemeralToken) -> None:
        if self.fail:
            raise ConnectionError("SMTP relay unavailable")
        self.sent.append((user, purpose, token))

    def last_token(self, purpose: TokenPurpose) -> str:
        for _, sent_purpose, token in reversed(self.sent):
            if sent_purpose == purpose:
                return token.value
        raise AssertionError(f"No {purpose.value} notification recorded")


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def clock():
    """Controllable clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def config_provider():
    return StaticConfigProvider()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def hasher():
    """Real bcrypt at the minimum cost factor to keep tests fast."""
    return BcryptPasswordHasher(rounds=4)


@pytest.fixture
def auth_stack(config_provider, clock, hasher, notifier) -> AuthStack:
    """In-memory authentication stack sharing the fake clock."""
    return AuthFactory.build(
        config_provider,
        redis_client=None,
        clock=clock,
        hasher=hasher,
        notifier=notifier,
    )


@pytest.fixture
def mock_redis():
    """Create a mock Redis client."""
    redis = AsyncMock()
    redis.eval = AsyncMock(return_value=1)
    redis.hgetall = AsyncMock(return_value={})
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.exists = AsyncMock(return_value=0)
    redis.lpush = AsyncMock()
    redis.ltrim = AsyncMock()
    return redis


@pytest.fixture
def client(config_provider, auth_stack):
    """FastAPI test client bound to the in-memory stack."""
    from fastapi.testclient import TestClient

    from authkeeper.main import create_app

    app = create_app(config_provider, auth_stack=auth_stack)
    with TestClient(app) as test_client:
        yield test_client


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: Integration tests requiring infrastructure"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take a long time to run"
    )
