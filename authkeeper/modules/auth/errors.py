"""Typed failures raised by the token and account modules.

Token-level failures stay distinguishable inside the service so that logs and
tests can tell them apart. Anything that leaves the service boundary is
collapsed into ``InvalidToken`` or ``InvalidCredentials``.
"""


class AuthError(Exception):
    """Base class for authentication failures."""


class TokenNotFound(AuthError):
    """No token exists for the given value and purpose."""


class TokenExpired(AuthError):
    """The token deadline has passed (ephemeral or bearer)."""


class TokenAlreadyConsumed(AuthError):
    """The ephemeral token was already used; consumption is terminal."""


class TokenCollision(AuthError):
    """A generated token value already exists in the store."""


class SignatureInvalid(AuthError):
    """The bearer token signature does not match the signing secret."""


class TokenMalformed(AuthError):
    """The bearer token could not be parsed or lacks required claims."""


class UserNotFound(AuthError):
    """No user matches the requested identity."""


class InvalidCredentials(AuthError):
    """Login failed; never says which part of the credential was wrong."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class EmailAlreadyRegistered(AuthError):
    """Registration attempted with an email that already has an account."""


class InvalidToken(AuthError):
    """Uniform rejection for verification and reset flows."""

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)


class ExternalLoginFailed(AuthError):
    """The external identity token could not be validated."""


class PasswordTooLong(AuthError):
    """The password exceeds what bcrypt can hash without truncation."""

    def __init__(self, message: str = "Password must be at most 72 bytes"):
        super().__init__(message)


__all__ = [
    "AuthError",
    "TokenNotFound",
    "TokenExpired",
    "TokenAlreadyConsumed",
    "TokenCollision",
    "SignatureInvalid",
    "TokenMalformed",
    "UserNotFound",
    "InvalidCredentials",
    "EmailAlreadyRegistered",
    "InvalidToken",
    "ExternalLoginFailed",
    "PasswordTooLong",
]
