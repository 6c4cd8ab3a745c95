"""Authentication configuration providers."""

from .provider import (
    APIConfig,
    AuthConfig,
    ConfigProvider,
    EnvConfigProvider,
    JWTConfig,
    MailConfig,
    OIDCConfig,
    TokenConfig,
)

__all__ = [
    "APIConfig",
    "AuthConfig",
    "ConfigProvider",
    "EnvConfigProvider",
    "JWTConfig",
    "MailConfig",
    "OIDCConfig",
    "TokenConfig",
]
