"""Authentication interfaces following Black Box Design principles."""
from typing import Protocol, FrozenSet, Optional, Tuple, Dict, Any


class Principal(Protocol):
    """Capability every authenticatable account exposes."""

    @property
    def identity_key(self) -> str:
        """Subject claim carried in bearer tokens (the email address)."""
        ...

    @property
    def credential_hash(self) -> Optional[str]:
        """Stored password hash, None for externally provisioned accounts."""
        ...

    @property
    def authorities(self) -> FrozenSet[str]:
        """Role names granted to the account."""
        ...

    def is_usable(self) -> bool:
        """Whether the account may currently authenticate."""
        ...


class PasswordHasher(Protocol):
    """Protocol for one-way password hashing - allows swappable algorithms."""

    def hash(self, password: str) -> str:
        """Hash a plaintext password."""
        ...

    def verify(self, password: str, password_hash: str) -> bool:
        """Check a plaintext password against a stored hash. Never raises."""
        ...


class TokenValidator(Protocol):
    """Protocol for external identity token validation."""

    async def validate_jwt_async(self, token: str) -> Tuple[bool, Optional[Dict[str, Any]]]:
        """
        Validate a JWT token.

        Args:
            token: JWT token string

        Returns:
            Tuple of (is_valid, claims_dict or None)
        """
        ...
