"""
Authkeeper API data models.

Request models validate input at the edge; response models define what
leaves the service. Every response is wrapped in ApiResponse.
"""

import re
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator

from ..auth.hasher import MAX_PASSWORD_BYTES, password_fits

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_PATTERN = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$"
)
PASSWORD_RULE = (
    "Password must contain at least 1 uppercase letter, 1 lowercase letter, "
    "1 number, and 1 special character"
)

T = TypeVar("T")


def _check_email(value: str) -> str:
    value = value.strip()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Email must be valid")
    return value.lower()


def _check_password(value: str) -> str:
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(PASSWORD_RULE)
    if not password_fits(value):
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


# Envelope


class ApiResponse(BaseModel, Generic[T]):
    """Uniform response envelope."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> "ApiResponse[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ApiResponse[T]":
        return cls(success=False, error=error)


class MessageResponse(BaseModel):
    message: str


# Request Models (API Input)


class RegisterUserRequest(BaseModel):
    """Request to create an account."""

    full_name: str = Field(..., min_length=2, max_length=100, description="Display name")
    email: str = Field(..., description="Login email")
    password: str = Field(..., min_length=8, description="Account password")
    confirm_password: str = Field(..., min_length=1, description="Repeat of password")

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v):
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Full name must be between 2 and 100 characters")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        return _check_password(v)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _check_email(v)


class VerifyEmailRequest(BaseModel):
    token: str = Field(..., min_length=1, description="Verification token from the email link")


class ResendVerificationRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _check_email(v)


class ForgotPasswordRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _check_email(v)


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1, description="Reset token from the email link")
    new_password: str = Field(..., min_length=8)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v):
        return _check_password(v)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v):
        return _check_password(v)

    @model_validator(mode="after")
    def passwords_differ(self):
        if self.current_password == self.new_password:
            raise ValueError("New password must differ from the current password")
        return self


class UpdateProfileRequest(BaseModel):
    full_name: str = Field(..., min_length=2, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)
    profile_picture: Optional[str] = Field(None, max_length=2048)


class ExternalLoginRequest(BaseModel):
    """ID token returned by the external provider after its handshake."""

    id_token: str = Field(..., min_length=1)


# Response Models (API Output)


class RegisterUserResponse(BaseModel):
    id: str
    email: str
    full_name: str
    message: str


class VerifyEmailResponse(BaseModel):
    message: str
    verified: bool


class LoginResponse(BaseModel):
    token: str
    type: str = "Bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
    id: str
    email: str
    full_name: str
    roles: List[str]


class ProfileResponse(BaseModel):
    id: str
    email: str
    full_name: str
    phone: Optional[str] = None
    profile_picture: Optional[str] = None
    roles: List[str]
    email_verified: bool
    status: str
    created_at: datetime
