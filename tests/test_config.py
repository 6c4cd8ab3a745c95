"""
Tests for environment-driven configuration and logging setup.
"""

import logging

import pytest

from authkeeper.config.provider import (
    DEFAULT_PUBLIC_PATHS,
    DEFAULT_PUBLIC_PREFIXES,
    EnvConfigProvider,
)
from authkeeper.logging_config import HealthCheckFilter, get_logging_config
from authkeeper.modules.config import ConfigModule


@pytest.fixture
def provider():
    return EnvConfigProvider()


def test_jwt_secret_is_required(provider, monkeypatch):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    with pytest.raises(ValueError, match="JWT_SECRET"):
        provider.get_jwt_config()


def test_short_jwt_secret_is_rejected(provider, monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "too-short")
    with pytest.raises(ValueError, match="at least 32 bytes"):
        provider.get_jwt_config()


def test_jwt_config_from_env(provider, monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "x" * 48)
    monkeypatch.setenv("JWT_EXPIRATION_HOURS", "2")

    config = provider.get_jwt_config()

    assert config.secret == "x" * 48
    assert config.expiration_hours == 2
    assert config.algorithm == "HS256"


def test_token_lifetimes_default(provider, monkeypatch):
    monkeypatch.delenv("EMAIL_VERIFICATION_TOKEN_HOURS", raising=False)
    monkeypatch.delenv("PASSWORD_RESET_TOKEN_HOURS", raising=False)

    config = provider.get_token_config()

    assert config.email_verification_hours == 24
    assert config.password_reset_hours == 1


def test_default_allow_list(provider, monkeypatch):
    monkeypatch.delenv("AUTH_PUBLIC_PATHS", raising=False)
    monkeypatch.delenv("AUTH_PUBLIC_PREFIXES", raising=False)

    config = provider.get_auth_config()

    assert config.public_paths == DEFAULT_PUBLIC_PATHS
    assert config.public_prefixes == DEFAULT_PUBLIC_PREFIXES
    assert "/api/auth/login" not in config.public_paths


def test_allow_list_override(provider, monkeypatch):
    monkeypatch.setenv("AUTH_PUBLIC_PATHS", "/health, /status")
    monkeypatch.setenv("AUTH_PUBLIC_PREFIXES", "")

    config = provider.get_auth_config()

    assert config.public_paths == ["/health", "/status"]
    assert config.public_prefixes == []


def test_oidc_disabled_by_default(provider, monkeypatch):
    monkeypatch.delenv("OIDC_ENABLED", raising=False)
    monkeypatch.delenv("OIDC_ISSUER", raising=False)

    assert provider.get_oidc_config().is_configured is False


def test_oidc_jwks_uri_derived_from_issuer(provider, monkeypatch):
    monkeypatch.setenv("OIDC_ENABLED", "true")
    monkeypatch.setenv("OIDC_ISSUER", "https://idp.example.com")
    monkeypatch.delenv("OIDC_JWKS_URI", raising=False)

    config = provider.get_oidc_config()

    assert config.is_configured
    assert config.jwks_uri == "https://idp.example.com/jwks"


def test_mail_frontend_url_trailing_slash(provider, monkeypatch):
    monkeypatch.setenv("FRONTEND_URL", "https://app.example.com/")
    assert provider.get_mail_config().frontend_url == "https://app.example.com"


def test_config_module_defaults(monkeypatch):
    for name in ("STORAGE_BACKEND", "REDIS_PORT", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    config = ConfigModule()

    assert config.get("storage_backend") == "redis"
    assert config.get("redis_port") == 6379
    assert config.get("log_level") == "INFO"


def test_config_module_parses_k8s_redis_port(monkeypatch):
    monkeypatch.setenv("REDIS_PORT", "tcp://10.0.0.5:6380")
    assert ConfigModule().get("redis_port") == 6380


def test_config_module_rejects_unknown_backend(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "postgres")
    with pytest.raises(ValueError, match="Unsupported STORAGE_BACKEND"):
        ConfigModule()


def test_config_schema_lists_required_keys():
    schema = ConfigModule.get_config_schema()
    assert "storage_backend" in schema["required"]
    assert "redis_password" in schema["optional"]


def make_record(name: str, message: str) -> logging.LogRecord:
    return logging.LogRecord(name, logging.INFO, __file__, 1, message, None, None)


@pytest.mark.parametrize(
    "message,kept",
    [
        ('127.0.0.1 - "GET /health HTTP/1.1" 200', False),
        ('127.0.0.1 - "GET /health/auth HTTP/1.1" 200', False),
        ('127.0.0.1 - "GET /actuator/info HTTP/1.1" 200', False),
        ('127.0.0.1 - "POST /api/auth/login HTTP/1.1" 200', True),
    ],
)
def test_health_check_filter(message, kept):
    assert HealthCheckFilter().filter(make_record("uvicorn.access", message)) is kept


def test_health_check_filter_ignores_other_loggers():
    assert HealthCheckFilter().filter(make_record("authkeeper", "GET /health")) is True


def test_logging_config_level():
    config = get_logging_config("DEBUG")
    assert config["loggers"]["authkeeper"]["level"] == "DEBUG"
    assert config["handlers"]["access"]["filters"] == ["health_check_filter"]
