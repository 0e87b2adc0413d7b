"""Tests for the SMTP email service"""
import smtplib
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from taskflow.config import Settings
from taskflow.services.email import EmailService


@pytest.fixture
def smtp_settings():
    return Settings(
        EMAIL_ENABLED=True,
        SMTP_HOST="smtp.test",
        SMTP_PORT=2525,
        SMTP_USER="bot@example.com",
        SMTP_PASSWORD="pw",
    )


def test_disabled_email_is_not_sent():
    service = EmailService(Settings(EMAIL_ENABLED=False))
    with patch("taskflow.services.email.smtplib.SMTP") as smtp_cls:
        assert service.send_email("a@example.com", "Hi", "<p>Hi</p>") is False
        smtp_cls.assert_not_called()


def test_missing_credentials():
    service = EmailService(Settings(EMAIL_ENABLED=True, SMTP_USER="", SMTP_PASSWORD=""))
    assert service.send_email("a@example.com", "Hi", "<p>Hi</p>") is False


def test_send_email(smtp_settings):
    service = EmailService(smtp_settings)
    with patch("taskflow.services.email.smtplib.SMTP") as smtp_cls:
        server = MagicMock()
        smtp_cls.return_value.__enter__.return_value = server

        assert service.send_email("a@example.com", "Hi", "<p>Hi</p>", "Hi") is True

        smtp_cls.assert_called_once_with("smtp.test", 2525, timeout=30)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("bot@example.com", "pw")
        message = server.send_message.call_args.args[0]
        assert message["To"] == "a@example.com"
        assert message["From"] == "bot@example.com"


def test_smtp_failure_returns_false(smtp_settings):
    service = EmailService(smtp_settings)
    with patch("taskflow.services.email.smtplib.SMTP") as smtp_cls:
        smtp_cls.return_value.__enter__.return_value.login.side_effect = smtplib.SMTPAuthenticationError(535, b"nope")
        assert service.send_email("a@example.com", "Hi", "<p>Hi</p>") is False


def test_reminder_email_escapes_user_content(smtp_settings):
    service = EmailService(smtp_settings)
    with patch.object(service, "send_email", return_value=True) as send:
        service.send_reminder_email(
            user_email="a@example.com",
            user_name="<Alice>",
            title="Pay <b>rent</b>",
            description="Before noon",
            remind_at=datetime(2026, 5, 1, 9, 30),
        )

    to_email, subject, html_body, text_body = send.call_args.args
    assert subject == "⏰ Reminder: Pay <b>rent</b>"
    assert "Pay &lt;b&gt;rent&lt;/b&gt;" in html_body
    assert "&lt;Alice&gt;" in html_body
    assert "2026-05-01 09:30 UTC" in text_body
    assert "Before noon" in text_body


def test_overdue_email(smtp_settings):
    service = EmailService(smtp_settings)
    with patch.object(service, "send_email", return_value=True) as send:
        assert service.send_item_overdue_email("a@example.com", "Alice", "Taxes", datetime(2026, 4, 15)) is True

    _, subject, html_body, _ = send.call_args.args
    assert subject == "⚠️ Overdue: Taxes"
    assert "2026-04-15 00:00 UTC" in html_body
