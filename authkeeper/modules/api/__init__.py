"""
API Module - Black Box Interface

Purpose: HTTP routing for account and session endpoints
Interface: create_*_router(), register_exception_handlers(), request/response models
Hidden: Envelope formatting, error-to-status mapping

The API module only orchestrates - it contains no business logic.
All logic is delegated to the user service, token manager and codec.
"""

from .errors import register_exception_handlers
from .models import (
    ApiResponse,
    LoginRequest,
    LoginResponse,
    ProfileResponse,
    RegisterUserRequest,
    RegisterUserResponse,
)
from .routes import (
    create_admin_router,
    create_auth_router,
    create_health_router,
    create_user_router,
)

__all__ = [
    "ApiResponse",
    "LoginRequest",
    "LoginResponse",
    "ProfileResponse",
    "RegisterUserRequest",
    "RegisterUserResponse",
    "create_admin_router",
    "create_auth_router",
    "create_health_router",
    "create_user_router",
    "register_exception_handlers",
]
