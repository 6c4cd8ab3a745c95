"""
Notification Module - Black Box Interface

Purpose: Deliver verification and password-reset links to account owners
Interface: EmailNotifier.notify(user, purpose, token)
Hidden: Transport (SMTP or log), message wording

Delivery is fire-and-forget from the caller's point of view: the user service
logs failures and never rolls back token state because of them.
"""

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol, Tuple

from ...config.provider import MailConfig, TokenConfig
from ..tokens.models import EphemeralToken, TokenPurpose
from ..users.models import User

logger = logging.getLogger(__name__)


class EmailNotifier(Protocol):
    """Protocol for outbound account notifications."""

    async def notify(self, user: User, purpose: TokenPurpose, token: EphemeralToken) -> None:
        ...


def build_message(
    user: User,
    purpose: TokenPurpose,
    token: EphemeralToken,
    frontend_url: str,
    token_config: TokenConfig,
) -> Tuple[str, str]:
    """Return (subject, body) for a notification."""
    if purpose == TokenPurpose.EMAIL_VERIFY:
        link = f"{frontend_url}/verify-email?token={token.value}"
        hours = token_config.email_verification_hours
        subject = "Verify your email address"
        intro = (
            "Thank you for registering with our service. "
            "Please click the link below to verify your email address:"
        )
        outro = "If you did not create an account, please ignore this email."
    else:
        link = f"{frontend_url}/reset-password?token={token.value}"
        hours = token_config.password_reset_hours
        subject = "Reset your password"
        intro = "You requested to reset your password. Please click the link below to reset your password:"
        outro = "If you did not request this password reset, please ignore this email."

    expiry = "1 hour" if hours == 1 else f"{hours} hours"
    body = f"""Hello {user.full_name},

{intro}

{link}

This link will expire in {expiry}.

{outro}

Best regards,
The Authentication Team
"""
    return subject, body


class LoggingEmailNotifier:
    """Development notifier: writes the message to the log instead of sending it."""

    def __init__(self, frontend_url: str, token_config: TokenConfig):
        self.frontend_url = frontend_url
        self.token_config = token_config

    async def notify(self, user: User, purpose: TokenPurpose, token: EphemeralToken) -> None:
        subject, body = build_message(user, purpose, token, self.frontend_url, self.token_config)
        logger.info(f"[mail disabled] {purpose.value} message for {user.email}: {subject}")
        # The body carries a live single-use token
        logger.debug(f"[mail disabled] Body:\n{body}")


class SmtpEmailNotifier:
    """Sends notifications through an SMTP relay using STARTTLS."""

    def __init__(self, config: MailConfig, token_config: TokenConfig):
        if not config.sender_email or not config.sender_password:
            raise ValueError(
                "Email credentials not configured. "
                "Set SENDER_EMAIL and SENDER_PASSWORD environment variables."
            )
        self.config = config
        self.token_config = token_config

    async def notify(self, user: User, purpose: TokenPurpose, token: EphemeralToken) -> None:
        subject, body = build_message(
            user, purpose, token, self.config.frontend_url, self.token_config
        )
        # smtplib blocks; keep it off the event loop
        await asyncio.to_thread(self._send, user.email, subject, body)
        logger.info(f"{purpose.value} email sent to: {user.email}")

    def _send(self, recipient: str, subject: str, body: str) -> None:
        message = MIMEMultipart()
        message["From"] = self.config.sender_email
        message["To"] = recipient
        message["Subject"] = subject
        message.attach(MIMEText(body, "plain"))

        with smtplib.SMTP(self.config.smtp_server, self.config.smtp_port, timeout=30) as server:
            server.starttls()
            server.login(self.config.sender_email, self.config.sender_password)
            server.send_message(message)


def create_notifier(config: MailConfig, token_config: TokenConfig) -> EmailNotifier:
    """Pick the SMTP notifier when mail is enabled, otherwise log messages."""
    if config.enabled:
        return SmtpEmailNotifier(config, token_config)
    logger.info("Mail delivery disabled - notifications will be logged")
    return LoggingEmailNotifier(config.frontend_url, token_config)


__all__ = [
    "EmailNotifier",
    "LoggingEmailNotifier",
    "SmtpEmailNotifier",
    "build_message",
    "create_notifier",
]
