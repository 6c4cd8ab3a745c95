"""
Tests for outbound account notifications.
"""

import logging
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from authkeeper.config.provider import MailConfig, TokenConfig
from authkeeper.modules.notify import (
    LoggingEmailNotifier,
    SmtpEmailNotifier,
    build_message,
    create_notifier,
)
from authkeeper.modules.tokens import EphemeralToken, TokenPurpose
from authkeeper.modules.users import User

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def user():
    return User(email="alice@example.com", full_name="Alice Example")


def make_token(purpose: TokenPurpose) -> EphemeralToken:
    return EphemeralToken(
        value="tok-123",
        purpose=purpose,
        owner_id="user-1",
        expires_at=NOW + timedelta(hours=1),
        issued_at=NOW,
    )


def mail_config(**overrides) -> MailConfig:
    values = dict(
        enabled=True,
        smtp_server="smtp.example.com",
        smtp_port=587,
        sender_email="noreply@example.com",
        sender_password="app-password",
        frontend_url="https://app.example.com",
    )
    values.update(overrides)
    return MailConfig(**values)


def test_verification_message(user):
    subject, body = build_message(
        user, TokenPurpose.EMAIL_VERIFY, make_token(TokenPurpose.EMAIL_VERIFY),
        "https://app.example.com", TokenConfig(),
    )

    assert subject == "Verify your email address"
    assert "Hello Alice Example" in body
    assert "https://app.example.com/verify-email?token=tok-123" in body
    assert "expire in 24 hours" in body


def test_reset_message(user):
    subject, body = build_message(
        user, TokenPurpose.PASSWORD_RESET, make_token(TokenPurpose.PASSWORD_RESET),
        "https://app.example.com", TokenConfig(),
    )

    assert subject == "Reset your password"
    assert "https://app.example.com/reset-password?token=tok-123" in body
    assert "expire in 1 hour." in body


def test_create_notifier_defaults_to_logging():
    notifier = create_notifier(mail_config(enabled=False), TokenConfig())
    assert isinstance(notifier, LoggingEmailNotifier)


def test_create_notifier_uses_smtp_when_enabled():
    assert isinstance(create_notifier(mail_config(), TokenConfig()), SmtpEmailNotifier)


def test_smtp_requires_credentials():
    with pytest.raises(ValueError, match="SENDER_EMAIL"):
        SmtpEmailNotifier(mail_config(sender_password=None), TokenConfig())


@pytest.mark.asyncio
async def test_logging_notifier_does_not_raise(user):
    notifier = LoggingEmailNotifier("https://app.example.com", TokenConfig())
    await notifier.notify(user, TokenPurpose.EMAIL_VERIFY, make_token(TokenPurpose.EMAIL_VERIFY))


@pytest.mark.asyncio
async def test_smtp_notifier_sends_with_starttls(user):
    notifier = SmtpEmailNotifier(mail_config(), TokenConfig())

    with patch("authkeeper.modules.notify.smtplib.SMTP") as smtp_class:
        server = MagicMock()
        smtp_class.return_value.__enter__.return_value = server

        await notifier.notify(user, TokenPurpose.PASSWORD_RESET, make_token(TokenPurpose.PASSWORD_RESET))

    smtp_class.assert_called_once_with("smtp.example.com", 587, timeout=30)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("noreply@example.com", "app-password")
    message = server.send_message.call_args[0][0]
    assert message["To"] == "alice@example.com"
    assert message["Subject"] == "Reset your password"


@pytest.mark.asyncio
async def test_smtp_failures_propagate_to_caller(user):
    notifier = SmtpEmailNotifier(mail_config(), TokenConfig())

    with patch("authkeeper.modules.notify.smtplib.SMTP", side_effect=OSError("connection refused")):
        with pytest.raises(OSError):
            await notifier.notify(user, TokenPurpose.EMAIL_VERIFY, make_token(TokenPurpose.EMAIL_VERIFY))


@pytest.mark.asyncio
async def test_logging_notifier_keeps_token_out_of_info_logs(user, caplog):
    notifier = LoggingEmailNotifier("https://app.example.com", TokenConfig())
    token = make_token(TokenPurpose.PASSWORD_RESET)

    with caplog.at_level(logging.INFO, logger="authkeeper.modules.notify"):
        await notifier.notify(user, TokenPurpose.PASSWORD_RESET, token)
    assert "Reset your password" in caplog.text
    assert "tok-123" not in caplog.text

    caplog.clear()
    with caplog.at_level(logging.DEBUG, logger="authkeeper.modules.notify"):
        await notifier.notify(user, TokenPurpose.PASSWORD_RESET, token)
    assert "reset-password?token=tok-123" in caplog.text
