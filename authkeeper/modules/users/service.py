"""
Account flows: registration, verification, password reset, login.

Token failures coming out of the ephemeral token manager are distinct types
(not found, expired, consumed); this service collapses all of them into a
single InvalidToken so callers cannot tell which tokens exist.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from ...config.provider import TokenConfig
from ..auth.audit import AuditLog
from ..auth.errors import (
    EmailAlreadyRegistered,
    InvalidCredentials,
    InvalidToken,
    TokenAlreadyConsumed,
    TokenExpired,
    TokenNotFound,
    UserNotFound,
)
from ..auth.interfaces import PasswordHasher
from ..notify import EmailNotifier
from ..tokens.manager import EphemeralTokenManager
from ..tokens.models import EphemeralToken, TokenPurpose
from .models import ExternalProvider, User, UserStatus
from .repository import UserRepository, normalize_email

logger = logging.getLogger(__name__)

TOKEN_FAILURES = (TokenNotFound, TokenExpired, TokenAlreadyConsumed)


@dataclass
class ExternalIdentity:
    """Identity asserted by an external provider after a verified handshake."""

    email: str
    full_name: str
    provider: ExternalProvider
    provider_id: str


class UserService:
    """Account lifecycle operations built on the token manager and user store."""

    def __init__(
        self,
        users: UserRepository,
        tokens: EphemeralTokenManager,
        hasher: PasswordHasher,
        notifier: EmailNotifier,
        token_config: Optional[TokenConfig] = None,
        audit: Optional[AuditLog] = None,
    ):
        self.users = users
        self.tokens = tokens
        self.hasher = hasher
        self.notifier = notifier
        self.token_config = token_config or TokenConfig()
        self.audit = audit or AuditLog()
        self._decoy: Optional[str] = None

    @property
    def verification_ttl(self) -> timedelta:
        return timedelta(hours=self.token_config.email_verification_hours)

    @property
    def reset_ttl(self) -> timedelta:
        return timedelta(hours=self.token_config.password_reset_hours)

    async def register(self, email: str, password: str, full_name: str) -> User:
        """
        Create a pending account and send its verification link.

        Raises:
            EmailAlreadyRegistered: An account already uses this email
        """
        email = normalize_email(email)
        if await self.users.exists_by_email(email):
            raise EmailAlreadyRegistered(f"User with email {email} already exists")

        user = User(
            email=email,
            full_name=full_name,
            password_hash=self.hasher.hash(password),
            status=UserStatus.PENDING_VERIFICATION,
            email_verified=False,
        )
        try:
            await self.users.save(user)
        except ValueError as e:
            # Lost a race with a concurrent registration
            raise EmailAlreadyRegistered(f"User with email {email} already exists") from e

        token = await self.tokens.issue(user.id, TokenPurpose.EMAIL_VERIFY, self.verification_ttl)
        await self._notify(user, TokenPurpose.EMAIL_VERIFY, token)

        await self.audit.record("user_registered", {"user_id": user.id})
        return user

    async def verify_email(self, token_value: str) -> User:
        """
        Consume a verification token and activate its owner.

        Raises:
            InvalidToken: For any token failure, without saying which
        """
        user = await self._consume_for_owner(token_value, TokenPurpose.EMAIL_VERIFY)
        try:
            user.activate()
        except ValueError as e:
            raise InvalidToken() from e
        await self.users.save(user)

        await self.audit.record("email_verified", {"user_id": user.id})
        return user

    async def resend_verification(self, email: str) -> None:
        """Issue a fresh verification token for a pending account. Silent otherwise."""
        user = await self.users.find_by_email(email)
        if user is None or user.status != UserStatus.PENDING_VERIFICATION:
            logger.info("Verification resend requested for unknown or non-pending account")
            return

        token = await self.tokens.issue(user.id, TokenPurpose.EMAIL_VERIFY, self.verification_ttl)
        await self._notify(user, TokenPurpose.EMAIL_VERIFY, token)

    async def initiate_password_reset(self, email: str) -> None:
        """
        Issue a reset token and mail it. Unknown emails are ignored silently
        so callers cannot probe which accounts exist.
        """
        user = await self.users.find_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return

        token = await self.tokens.issue(user.id, TokenPurpose.PASSWORD_RESET, self.reset_ttl)
        await self._notify(user, TokenPurpose.PASSWORD_RESET, token)
        await self.audit.record("password_reset_requested", {"user_id": user.id})

    async def reset_password(self, token_value: str, new_password: str) -> User:
        """
        Consume a reset token and replace the owner's password.

        Raises:
            InvalidToken: For any token failure, without saying which
            PasswordTooLong: The new password cannot be hashed; the token
                is left unconsumed
        """
        password_hash = self.hasher.hash(new_password)
        user = await self._consume_for_owner(token_value, TokenPurpose.PASSWORD_RESET)
        user.set_password_hash(password_hash)
        await self.users.save(user)

        await self.audit.record("password_reset_completed", {"user_id": user.id})
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """
        Check an email/password pair.

        Raises:
            InvalidCredentials: Unknown email, wrong password, password-less
                account or an account that is not usable
        """
        user = await self.users.find_by_email(email)
        if user is None or not user.credential_hash:
            # Unknown accounts cost one bcrypt check like known ones
            self.hasher.verify(password, self._decoy_hash())
            raise InvalidCredentials()
        if not self.hasher.verify(password, user.credential_hash):
            await self.audit.record("login_failed", {"user_id": user.id})
            raise InvalidCredentials()
        if not user.is_usable():
            await self.audit.record(
                "login_rejected", {"user_id": user.id, "status": user.status.value}
            )
            raise InvalidCredentials()

        await self.audit.record("login_succeeded", {"user_id": user.id})
        return user

    async def login_external(self, identity: ExternalIdentity) -> User:
        """
        Resolve an externally authenticated identity to an account.

        Existing provider links win, then an account with the same email is
        linked, otherwise a new active account without a password is created.

        Raises:
            InvalidCredentials: The resolved account is locked or inactive
        """
        user = await self.users.find_by_external_provider(identity.provider, identity.provider_id)
        if user is None:
            user = await self.users.find_by_email(identity.email)
            if user is not None:
                user.link_external(identity.provider, identity.provider_id)
                if user.status == UserStatus.PENDING_VERIFICATION:
                    # Provider vouched for the email address
                    user.activate()
                    await self.tokens.revoke(user.id, TokenPurpose.EMAIL_VERIFY)
                await self.users.save(user)
            else:
                user = User(
                    email=normalize_email(identity.email),
                    full_name=identity.full_name,
                    password_hash=None,
                    status=UserStatus.ACTIVE,
                    email_verified=True,
                    external_provider=identity.provider,
                    external_provider_id=identity.provider_id,
                )
                await self.users.save(user)
                await self.audit.record(
                    "user_provisioned_externally",
                    {"user_id": user.id, "provider": identity.provider.value},
                )

        if not user.is_usable():
            raise InvalidCredentials()
        return user

    async def get_user(self, user_id: str) -> User:
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise UserNotFound("User not found")
        return user

    async def update_profile(
        self,
        user: User,
        full_name: str,
        phone: Optional[str] = None,
        profile_picture: Optional[str] = None,
    ) -> User:
        user.update_profile(full_name, phone, profile_picture)
        return await self.users.save(user)

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        """
        Raises:
            InvalidCredentials: Current password does not match
        """
        if not user.credential_hash or not self.hasher.verify(current_password, user.credential_hash):
            raise InvalidCredentials("Current password is incorrect")

        user.set_password_hash(self.hasher.hash(new_password))
        await self.users.save(user)
        # An outstanding reset link must not undo the change
        await self.tokens.revoke(user.id, TokenPurpose.PASSWORD_RESET)
        await self.audit.record("password_changed", {"user_id": user.id})

    async def lock_user(self, user_id: str) -> User:
        """
        Lock an account. Existing bearer tokens stop authenticating on the
        next request because the gate checks account state live.

        Raises:
            UserNotFound: No account with this id
        """
        user = await self.get_user(user_id)
        user.lock()
        await self.users.save(user)
        await self.audit.record("user_locked", {"user_id": user.id})
        return user

    def _decoy_hash(self) -> str:
        if self._decoy is None:
            self._decoy = self.hasher.hash(secrets.token_urlsafe(32))
        return self._decoy

    async def _consume_for_owner(self, token_value: str, purpose: TokenPurpose) -> User:
        try:
            token = await self.tokens.consume(token_value, purpose)
        except TOKEN_FAILURES as e:
            logger.info(f"{purpose.value} token rejected: {type(e).__name__}")
            raise InvalidToken() from e

        user = await self.users.find_by_id(token.owner_id)
        if user is None:
            logger.warning(f"{purpose.value} token owner {token.owner_id} no longer exists")
            raise InvalidToken()
        return user

    async def _notify(self, user: User, purpose: TokenPurpose, token: EphemeralToken) -> None:
        try:
            await self.notifier.notify(user, purpose, token)
        except Exception as e:
            # Token stays issued; the user can ask for another link
            logger.error(f"Failed to send {purpose.value} email to {user.email}: {e}")
