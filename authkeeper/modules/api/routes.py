"""
HTTP routes for Authkeeper.

Routers are built by factories that receive a stack provider, so the same
routes serve the Redis-backed process and the in-memory stack used in tests.
"""

import logging
from typing import Callable, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ...config.provider import ConfigProvider
from ..auth.factory import AuthStack
from ..middleware import public_paths, require_principal, require_role
from ..users.models import Role, User
from .models import (
    ApiResponse,
    ChangePasswordRequest,
    ExternalLoginRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    RegisterUserRequest,
    RegisterUserResponse,
    ResendVerificationRequest,
    ResetPasswordRequest,
    UpdateProfileRequest,
    VerifyEmailRequest,
    VerifyEmailResponse,
)

logger = logging.getLogger(__name__)

StackProvider = Callable[[], Optional[AuthStack]]

RESET_REQUESTED_MESSAGE = "If an account exists with this email, a password reset link has been sent"
RESEND_REQUESTED_MESSAGE = "If the account is awaiting verification, a new link has been sent"


def _stack_dependency(stack_provider: StackProvider) -> Callable[[], AuthStack]:
    def get_stack() -> AuthStack:
        stack = stack_provider()
        if stack is None:
            raise HTTPException(503, "Service not initialized")
        return stack

    return get_stack


def login_payload(stack: AuthStack, user: User) -> LoginResponse:
    """Issue a bearer token for an authenticated account."""
    return LoginResponse(
        token=stack.codec.issue(user, {"uid": user.id}),
        type="Bearer",
        expires_in=int(stack.codec.lifetime.total_seconds()),
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        roles=sorted(user.authorities),
    )


def profile_payload(user: User) -> ProfileResponse:
    return ProfileResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        phone=user.phone,
        profile_picture=user.profile_picture,
        roles=sorted(user.authorities),
        email_verified=user.email_verified,
        status=user.status.value,
        created_at=user.created_at,
    )


def create_auth_router(stack_provider: StackProvider) -> APIRouter:
    """
    Create the public account router.

    Args:
        stack_provider: Returns the wired AuthStack, or None before startup

    Returns:
        FastAPI router mounted under /api/auth
    """
    router = APIRouter(prefix="/api/auth", tags=["auth"])
    get_stack = _stack_dependency(stack_provider)

    @router.post("/register", status_code=status.HTTP_201_CREATED)
    async def register(
        body: RegisterUserRequest, stack: AuthStack = Depends(get_stack)
    ) -> ApiResponse[RegisterUserResponse]:
        """Create a pending account and mail its verification link."""
        if body.password != body.confirm_password:
            raise HTTPException(400, "Passwords do not match")

        user = await stack.users.register(body.email, body.password, body.full_name)
        logger.info(f"Registered user {user.id}")
        return ApiResponse.ok(
            RegisterUserResponse(
                id=user.id,
                email=user.email,
                full_name=user.full_name,
                message="User registered successfully. Please check your email to verify your account.",
            )
        )

    @router.post("/verify-email")
    async def verify_email(
        body: VerifyEmailRequest, stack: AuthStack = Depends(get_stack)
    ) -> ApiResponse[VerifyEmailResponse]:
        await stack.users.verify_email(body.token)
        return ApiResponse.ok(
            VerifyEmailResponse(message="Email verified successfully", verified=True)
        )

    @router.post("/resend-verification")
    async def resend_verification(
        body: ResendVerificationRequest, stack: AuthStack = Depends(get_stack)
    ) -> ApiResponse[MessageResponse]:
        await stack.users.resend_verification(body.email)
        return ApiResponse.ok(MessageResponse(message=RESEND_REQUESTED_MESSAGE))

    @router.post("/forgot-password")
    async def forgot_password(
        body: ForgotPasswordRequest, stack: AuthStack = Depends(get_stack)
    ) -> ApiResponse[MessageResponse]:
        """Always answers the same way, whether or not the account exists."""
        await stack.users.initiate_password_reset(body.email)
        return ApiResponse.ok(MessageResponse(message=RESET_REQUESTED_MESSAGE))

    @router.post("/reset-password")
    async def reset_password(
        body: ResetPasswordRequest, stack: AuthStack = Depends(get_stack)
    ) -> ApiResponse[MessageResponse]:
        await stack.users.reset_password(body.token, body.new_password)
        return ApiResponse.ok(MessageResponse(message="Password has been reset successfully"))

    @router.post("/login")
    async def login(
        body: LoginRequest, stack: AuthStack = Depends(get_stack)
    ) -> ApiResponse[LoginResponse]:
        user = await stack.users.authenticate(body.email, body.password)
        return ApiResponse.ok(login_payload(stack, user))

    @router.post("/oauth2/success")
    async def external_login_success(
        body: ExternalLoginRequest, stack: AuthStack = Depends(get_stack)
    ) -> ApiResponse[LoginResponse]:
        """
        Exchange a provider ID token for a bearer token.

        The client completes the provider handshake itself and posts the
        resulting ID token here.
        """
        if stack.oidc is None:
            raise HTTPException(400, "External login is not configured")

        identity = await stack.oidc.resolve(body.id_token)
        user = await stack.users.login_external(identity)
        logger.info(f"External login for user {user.id} via {identity.provider.value}")
        return ApiResponse.ok(login_payload(stack, user))

    @router.get("/oauth2/failure")
    async def external_login_failure(error: Optional[str] = None):
        logger.info(f"External login failed at provider: {error or 'unknown error'}")
        raise HTTPException(400, "External authentication failed")

    return router


def create_user_router(stack_provider: StackProvider) -> APIRouter:
    """Create the router for the signed-in account's own data."""
    router = APIRouter(prefix="/api/user", tags=["user"])
    get_stack = _stack_dependency(stack_provider)

    @router.get("/profile")
    async def get_profile(principal: User = Depends(require_principal)) -> ApiResponse[ProfileResponse]:
        return ApiResponse.ok(profile_payload(principal))

    @router.put("/profile")
    async def update_profile(
        body: UpdateProfileRequest,
        principal: User = Depends(require_principal),
        stack: AuthStack = Depends(get_stack),
    ) -> ApiResponse[ProfileResponse]:
        user = await stack.users.update_profile(
            principal, body.full_name, body.phone, body.profile_picture
        )
        return ApiResponse.ok(profile_payload(user))

    @router.post("/change-password")
    async def change_password(
        body: ChangePasswordRequest,
        principal: User = Depends(require_principal),
        stack: AuthStack = Depends(get_stack),
    ) -> ApiResponse[MessageResponse]:
        await stack.users.change_password(principal, body.current_password, body.new_password)
        return ApiResponse.ok(MessageResponse(message="Password changed successfully"))

    return router


def create_admin_router(stack_provider: StackProvider) -> APIRouter:
    """Create the administrator router."""
    router = APIRouter(prefix="/api/admin", tags=["admin"])
    get_stack = _stack_dependency(stack_provider)

    @router.post("/users/{user_id}/lock")
    async def lock_user(
        user_id: str,
        admin: User = Depends(require_role(Role.ADMIN.value)),
        stack: AuthStack = Depends(get_stack),
    ) -> ApiResponse[ProfileResponse]:
        user = await stack.users.lock_user(user_id)
        logger.info(f"User {user_id} locked by {admin.identity_key}")
        return ApiResponse.ok(profile_payload(user))

    return router


def create_health_router(config_provider: ConfigProvider, stack_provider: StackProvider) -> APIRouter:
    """
    Create health routes.

    Neither route requires a principal, so probes need no credentials.
    """
    router = APIRouter(tags=["health"])

    @router.get("/health")
    async def health() -> Dict:
        stack = stack_provider()
        return {"status": "healthy" if stack is not None else "starting"}

    @router.get("/health/auth")
    async def auth_health() -> Dict:
        """
        Report authentication system health.

        Returns:
            Gate outcome counters and external login status
        """
        stack = stack_provider()
        oidc_config = config_provider.get_oidc_config()

        health = {
            "gate": {
                "ready": stack is not None,
                "public_paths": list(public_paths(config_provider.get_auth_config())),
                "decisions": dict(stack.gate.stats) if stack else {},
            },
            "external_login": {
                "enabled": oidc_config.enabled,
                "healthy": bool(stack and stack.oidc),
            },
        }
        if oidc_config.is_configured:
            health["external_login"]["issuer"] = oidc_config.issuer

        return health

    return router
