"""
Users Module - Black Box Interface

Purpose: Account model, persistence and account flows
Interface: UserService (register, verify_email, initiate_password_reset,
           reset_password, authenticate, login_external, lock_user)
Hidden: Storage layout, password hashing, notification wiring
"""

from .models import ExternalProvider, Role, User, UserStatus
from .repository import InMemoryUserRepository, RedisUserRepository, UserRepository
from .service import ExternalIdentity, UserService

__all__ = [
    "ExternalIdentity",
    "ExternalProvider",
    "InMemoryUserRepository",
    "RedisUserRepository",
    "Role",
    "User",
    "UserRepository",
    "UserService",
    "UserStatus",
]
