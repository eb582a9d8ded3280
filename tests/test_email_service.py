"""
Tests for SMTP email delivery and account lifecycle emails.
"""

import smtplib
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from nephrocare.config import Settings
from nephrocare.email import AccountEmailService, EmailService
from nephrocare.email.templates import default_template, get_email_template


def configured_service() -> EmailService:
    return EmailService(
        smtp_host="smtp.test.com",
        smtp_port=587,
        smtp_user="test@test.com",
        smtp_password="testpass",
    )


@pytest.mark.asyncio
async def test_email_service_send_email():
    service = configured_service()

    with patch("smtplib.SMTP") as mock_smtp:
        mock_server = MagicMock()
        mock_smtp.return_value = mock_server

        result = await service.send_email(
            to_email="recipient@test.com",
            subject="Objet",
            html_body="<html><body>Test</body></html>",
            text_body="Test",
        )

    assert result is True
    mock_smtp.assert_called_once_with("smtp.test.com", 587)
    mock_server.starttls.assert_called_once()
    mock_server.login.assert_called_once_with("test@test.com", "testpass")
    mock_server.send_message.assert_called_once()
    mock_server.quit.assert_called_once()


@pytest.mark.asyncio
async def test_email_service_without_credentials_skips():
    service = EmailService()

    with patch("smtplib.SMTP") as mock_smtp:
        result = await service.send_email("recipient@test.com", "Objet", "<p>x</p>")

    assert result is False
    mock_smtp.assert_not_called()


@pytest.mark.asyncio
async def test_email_service_smtp_failure_returns_false():
    service = configured_service()

    with patch("smtplib.SMTP") as mock_smtp:
        mock_server = MagicMock()
        mock_server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        mock_smtp.return_value = mock_server

        result = await service.send_email("recipient@test.com", "Objet", "<p>x</p>")

    assert result is False
    mock_server.quit.assert_called_once()


def test_email_service_from_settings():
    settings = Settings(smtp_user="bot@nephro.test", smtp_password="pw", smtp_from_name="Néphro")
    service = EmailService.from_settings(settings)

    assert service.configured is True
    assert service.from_email == "bot@nephro.test"
    message = service._create_message("a@b.c", "Sujet", "<p>html</p>", "text")
    assert message["From"] == "Néphro <bot@nephro.test>"


def test_unknown_template_falls_back_to_default():
    assert get_email_template("nope") is default_template


@pytest.mark.asyncio
async def test_verification_email_contains_link():
    email_service = configured_service()
    email_service.send_email = AsyncMock(return_value=True)
    accounts = AccountEmailService(email_service, support_email="support@nephro.test")

    sent = await accounts.send_verification_email(
        "new@clinic.test", "https://app.test/verify?token=abc", user_name="Dr Martin"
    )

    assert sent is True
    to_email, subject, html_body, text_body = email_service.send_email.await_args.args
    assert to_email == "new@clinic.test"
    assert "Vérifiez" in subject
    assert "https://app.test/verify?token=abc" in html_body
    assert "https://app.test/verify?token=abc" in text_body
    assert "Dr Martin" in text_body
    assert "support@nephro.test" in html_body


@pytest.mark.asyncio
async def test_password_reset_email_reports_failure():
    email_service = configured_service()
    email_service.send_email = AsyncMock(return_value=False)
    accounts = AccountEmailService(email_service)

    sent = await accounts.send_password_reset_email("doc@clinic.test", "https://app.test/reset?token=t")

    assert sent is False
    subject = email_service.send_email.await_args.args[1]
    assert "mot de passe" in subject


@pytest.mark.asyncio
async def test_notification_email_links_to_app():
    email_service = configured_service()
    email_service.send_email = AsyncMock(return_value=True)
    accounts = AccountEmailService(email_service, app_base_url="https://app.test/")

    await accounts.send_notification_email(
        "doc@clinic.test",
        {"title": "Baisse significative du DFG", "message": "DFG 100 → 85", "actionUrl": "/patients/p1/analyse"},
    )

    _, subject, html_body, text_body = email_service.send_email.await_args.args
    assert subject.startswith("Baisse significative du DFG")
    assert "https://app.test/patients/p1/analyse" in text_body
