"""
Tokens Module - Black Box Interface

Purpose: Single-use, time-limited tokens for email verification and password reset
Interface: EphemeralTokenManager.issue(), lookup(), consume(), is_valid()
Hidden: Token storage, value generation, atomic replace/consume

Storage is pluggable (in-memory or Redis) behind the TokenStore protocol.
"""

from .manager import EphemeralTokenManager
from .models import EphemeralToken, TokenPurpose
from .store import InMemoryTokenStore, RedisTokenStore, TokenStore

__all__ = [
    "EphemeralToken",
    "EphemeralTokenManager",
    "InMemoryTokenStore",
    "RedisTokenStore",
    "TokenPurpose",
    "TokenStore",
]
