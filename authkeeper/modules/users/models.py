import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Set


class UserStatus(str, Enum):
    """Account lifecycle status."""

    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    ACTIVE = "ACTIVE"
    LOCKED = "LOCKED"
    INACTIVE = "INACTIVE"


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class ExternalProvider(str, Enum):
    """Identity providers accounts can be provisioned from."""

    GOOGLE = "GOOGLE"
    FACEBOOK = "FACEBOOK"
    OIDC = "OIDC"


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class User:
    """
    An account. Implements the Principal capability.

    State changes go through the named mutations below rather than direct
    field writes, so every transition keeps ``updated_at`` current and the
    status/verification pair consistent.
    """

    email: str
    full_name: str
    password_hash: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: UserStatus = UserStatus.PENDING_VERIFICATION
    email_verified: bool = False
    roles: Set[Role] = field(default_factory=lambda: {Role.USER})
    phone: Optional[str] = None
    profile_picture: Optional[str] = None
    external_provider: Optional[ExternalProvider] = None
    external_provider_id: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    # Principal capability

    @property
    def identity_key(self) -> str:
        return self.email

    @property
    def credential_hash(self) -> Optional[str]:
        return self.password_hash

    @property
    def authorities(self) -> FrozenSet[str]:
        return frozenset(role.value for role in self.roles)

    def is_locked(self) -> bool:
        return self.status == UserStatus.LOCKED

    def is_usable(self) -> bool:
        return self.status == UserStatus.ACTIVE and self.email_verified

    # Mutations

    def activate(self) -> None:
        """Complete email verification. Locked accounts stay locked."""
        if self.is_locked():
            raise ValueError("Locked accounts cannot be activated")
        self.status = UserStatus.ACTIVE
        self.email_verified = True
        self._touch()

    def lock(self) -> None:
        self.status = UserStatus.LOCKED
        self._touch()

    def deactivate(self) -> None:
        self.status = UserStatus.INACTIVE
        self._touch()

    def set_password_hash(self, password_hash: str) -> None:
        if not password_hash:
            raise ValueError("Password hash must not be empty")
        self.password_hash = password_hash
        self._touch()

    def update_profile(
        self,
        full_name: str,
        phone: Optional[str] = None,
        profile_picture: Optional[str] = None,
    ) -> None:
        self.full_name = full_name
        self.phone = phone
        self.profile_picture = profile_picture
        self._touch()

    def link_external(self, provider: ExternalProvider, provider_id: str) -> None:
        self.external_provider = provider
        self.external_provider_id = provider_id
        self._touch()

    def _touch(self) -> None:
        self.updated_at = _now()

    # Serialization

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "password_hash": self.password_hash,
            "status": self.status.value,
            "email_verified": self.email_verified,
            "roles": sorted(role.value for role in self.roles),
            "phone": self.phone,
            "profile_picture": self.profile_picture,
            "external_provider": self.external_provider.value if self.external_provider else None,
            "external_provider_id": self.external_provider_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        provider = data.get("external_provider")
        return cls(
            id=data["id"],
            email=data["email"],
            full_name=data["full_name"],
            password_hash=data.get("password_hash"),
            status=UserStatus(data["status"]),
            email_verified=bool(data.get("email_verified")),
            roles={Role(role) for role in data.get("roles", [Role.USER.value])},
            phone=data.get("phone"),
            profile_picture=data.get("profile_picture"),
            external_provider=ExternalProvider(provider) if provider else None,
            external_provider_id=data.get("external_provider_id"),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )

    @classmethod
    def from_json(cls, raw: str) -> "User":
        return cls.from_dict(json.loads(raw))
