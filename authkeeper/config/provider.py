"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass, field
from typing import Optional, Protocol, List

# Minimum HMAC key length accepted for HS256 signing
MIN_SECRET_BYTES = 32

DEFAULT_PUBLIC_PATHS = [
    "/api/auth/register",
    "/api/auth/verify-email",
    "/api/auth/forgot-password",
    "/api/auth/reset-password",
    "/health",
    "/metrics",
]

DEFAULT_PUBLIC_PREFIXES = [
    "/oauth2/",
    "/login/oauth2/",
    "/actuator/",
]


def _split_env(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class JWTConfig:
    """Bearer token signing configuration."""
    secret: str
    expiration_hours: int = 24
    algorithm: str = "HS256"
    issuer: Optional[str] = None


@dataclass(frozen=True)
class TokenConfig:
    """Ephemeral token lifetimes."""
    email_verification_hours: int = 24
    password_reset_hours: int = 1
    # Redis keeps spent/expired rows this long before garbage collection
    retention_seconds: int = 86400


@dataclass
class AuthConfig:
    """Request authentication gate configuration."""
    header_name: str = "Authorization"
    scheme: str = "Bearer"
    public_paths: List[str] = field(default_factory=lambda: list(DEFAULT_PUBLIC_PATHS))
    public_prefixes: List[str] = field(default_factory=lambda: list(DEFAULT_PUBLIC_PREFIXES))


@dataclass
class OIDCConfig:
    """External login (OIDC) configuration."""
    enabled: bool
    issuer: Optional[str]
    client_id: str
    jwks_uri: Optional[str]
    audience: Optional[str]
    provider: str = "OIDC"

    @property
    def is_configured(self) -> bool:
        """Check if OIDC is properly configured."""
        return self.enabled and bool(self.issuer)


@dataclass
class APIConfig:
    """API configuration."""
    port: int
    host: str
    debug: bool
    cors_origins: List[str]


@dataclass
class MailConfig:
    """Outbound email configuration."""
    enabled: bool
    smtp_server: str
    smtp_port: int
    sender_email: Optional[str]
    sender_password: Optional[str]
    frontend_url: str


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_jwt_config(self) -> JWTConfig:
        """Get bearer token configuration."""
        ...

    def get_token_config(self) -> TokenConfig:
        """Get ephemeral token configuration."""
        ...

    def get_auth_config(self) -> AuthConfig:
        """Get authentication gate configuration."""
        ...

    def get_oidc_config(self) -> OIDCConfig:
        """Get OIDC configuration."""
        ...

    def get_api_config(self) -> APIConfig:
        """Get API configuration."""
        ...

    def get_mail_config(self) -> MailConfig:
        """Get mail configuration."""
        ...


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_jwt_config(self) -> JWTConfig:
        """Get bearer token configuration from environment variables."""
        # The signing secret is required - no default for security
        secret = os.getenv("JWT_SECRET")
        if not secret:
            raise ValueError(
                "JWT_SECRET environment variable is required. "
                "Generate one with: python -c 'import secrets; print(secrets.token_urlsafe(48))'"
            )
        if len(secret.encode("utf-8")) < MIN_SECRET_BYTES:
            raise ValueError(
                f"JWT_SECRET must be at least {MIN_SECRET_BYTES} bytes long"
            )

        return JWTConfig(
            secret=secret,
            expiration_hours=int(os.getenv("JWT_EXPIRATION_HOURS", "24")),
            issuer=os.getenv("JWT_ISSUER") or None,
        )

    def get_token_config(self) -> TokenConfig:
        """Get ephemeral token lifetimes from environment variables."""
        return TokenConfig(
            email_verification_hours=int(os.getenv("EMAIL_VERIFICATION_TOKEN_HOURS", "24")),
            password_reset_hours=int(os.getenv("PASSWORD_RESET_TOKEN_HOURS", "1")),
            retention_seconds=int(os.getenv("TOKEN_RETENTION_SECONDS", "86400")),
        )

    def get_auth_config(self) -> AuthConfig:
        """Get gate configuration from environment variables."""
        return AuthConfig(
            public_paths=_split_env("AUTH_PUBLIC_PATHS", DEFAULT_PUBLIC_PATHS),
            public_prefixes=_split_env("AUTH_PUBLIC_PREFIXES", DEFAULT_PUBLIC_PREFIXES),
        )

    def get_oidc_config(self) -> OIDCConfig:
        """Get OIDC configuration from environment variables."""
        enabled = os.getenv("OIDC_ENABLED", "false").lower() == "true"
        issuer = os.getenv("OIDC_ISSUER")
        client_id = os.getenv("OIDC_CLIENT_ID", "authkeeper")

        return OIDCConfig(
            enabled=enabled,
            issuer=issuer,
            client_id=client_id,
            jwks_uri=os.getenv("OIDC_JWKS_URI") or (f"{issuer}/jwks" if issuer else None),
            audience=os.getenv("OIDC_AUDIENCE") or client_id,
            provider=os.getenv("OIDC_PROVIDER", "OIDC").upper(),
        )

    def get_api_config(self) -> APIConfig:
        """Get API configuration from environment variables."""
        return APIConfig(
            port=int(os.getenv("API_PORT", "8080")),
            host=os.getenv("API_HOST", "0.0.0.0"),
            debug=os.getenv("API_DEBUG", "false").lower() == "true",
            cors_origins=os.getenv("CORS_ORIGINS", "*").split(","),
        )

    def get_mail_config(self) -> MailConfig:
        """Get mail configuration from environment variables."""
        return MailConfig(
            enabled=os.getenv("MAIL_ENABLED", "false").lower() == "true",
            smtp_server=os.getenv("SMTP_SERVER", "smtp.gmail.com"),
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            sender_email=os.getenv("SENDER_EMAIL"),
            sender_password=os.getenv("SENDER_PASSWORD"),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/"),
        )
