from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Dict


class TokenPurpose(str, Enum):
    """What an ephemeral token may be used for."""

    EMAIL_VERIFY = "EMAIL_VERIFY"
    PASSWORD_RESET = "PASSWORD_RESET"


@dataclass(frozen=True)
class EphemeralToken:
    """A single-use token scoped to one owner and one purpose."""

    value: str
    purpose: TokenPurpose
    owner_id: str
    expires_at: datetime
    issued_at: datetime
    consumed: bool = False

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_valid(self, now: datetime) -> bool:
        return not self.consumed and not self.is_expired(now)

    def mark_consumed(self) -> "EphemeralToken":
        return replace(self, consumed=True)

    def to_mapping(self) -> Dict[str, str]:
        """Flat string mapping used by the Redis hash representation."""
        return {
            "value": self.value,
            "purpose": self.purpose.value,
            "owner_id": self.owner_id,
            "expires_at": self.expires_at.isoformat(),
            "issued_at": self.issued_at.isoformat(),
            "consumed": "1" if self.consumed else "0",
        }

    @classmethod
    def from_mapping(cls, data: Dict[str, str]) -> "EphemeralToken":
        return cls(
            value=data["value"],
            purpose=TokenPurpose(data["purpose"]),
            owner_id=data["owner_id"],
            expires_at=_parse_timestamp(data["expires_at"]),
            issued_at=_parse_timestamp(data["issued_at"]),
            consumed=data.get("consumed") == "1",
        )


def _parse_timestamp(raw: str) -> datetime:
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
