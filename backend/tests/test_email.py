"""
Test Module: test_email.py
Description: Tests for the SMTP transport and reminder email templates.

Author: MoneyWise Team
"""

import smtplib
from datetime import datetime
from unittest.mock import MagicMock, patch

from services import email_templates
from services.email_service import EmailService, Sent, Failed


# =============================================================================
# Transport Tests
# =============================================================================

class TestEmailService:
    """Tests for send results."""

    def test_unconfigured_transport_fails_without_connecting(self, monkeypatch):
        monkeypatch.delenv("SMTP_HOST", raising=False)
        service = EmailService()

        with patch("services.email_service.smtplib.SMTP") as smtp:
            result = service.send_mail("a@example.com", "Hi", "<p>Hi</p>")

        assert result == Failed("SMTP not configured")
        assert result.ok is False
        smtp.assert_not_called()

    def test_successful_send(self):
        service = EmailService(host="smtp.example.com", port=2525, user="bot", password="pw")
        server = MagicMock()

        with patch("services.email_service.smtplib.SMTP") as smtp:
            smtp.return_value.__enter__.return_value = server
            result = service.send_mail("a@example.com", "Hi", "<p>Hi</p>")

        assert isinstance(result, Sent)
        assert result.ok is True
        smtp.assert_called_once_with("smtp.example.com", 2525, timeout=service.timeout)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("bot", "pw")
        args = server.sendmail.call_args.args
        assert args[1] == ["a@example.com"]
        assert "Subject: Hi" in args[2]

    def test_smtp_error_becomes_failed(self):
        service = EmailService(host="smtp.example.com")

        with patch("services.email_service.smtplib.SMTP",
                   side_effect=smtplib.SMTPConnectError(421, "busy")):
            result = service.send_mail("a@example.com", "Hi", "<p>Hi</p>")

        assert isinstance(result, Failed)
        assert "busy" in result.reason

    def test_network_error_becomes_failed(self):
        service = EmailService(host="smtp.example.com")

        with patch("services.email_service.smtplib.SMTP",
                   side_effect=ConnectionRefusedError("refused")):
            result = service.send_mail("a@example.com", "Hi", "<p>Hi</p>")

        assert result == Failed("refused")


# =============================================================================
# Template Tests
# =============================================================================

class TestPaymentReminderTemplate:
    """Tests for urgency labels and the rendered body."""

    def test_urgency_bands(self):
        assert email_templates.urgency(0) == ("Due Today!", "#EF4444")
        assert email_templates.urgency(1) == ("Due Tomorrow!", "#EF4444")
        assert email_templates.urgency(3) == ("Due Soon", "#F59E0B")
        assert email_templates.urgency(7) == ("Upcoming", "#2563EB")
        assert email_templates.urgency(-2) == ("Overdue", "#B91C1C")

    def test_due_today_subject(self):
        message = email_templates.payment_reminder(
            "Ana", title="Rent", amount=1200, due_date=datetime(2026, 3, 10),
            category="HOUSING", days_until_due=0,
        )
        assert message["subject"] == "Due Today!: Rent Payment Due Today"
        assert "due <strong>today</strong>" in message["html"]

    def test_body_contents(self):
        message = email_templates.payment_reminder(
            "Ana", title="Rent", amount=1200, due_date=datetime(2026, 3, 17),
            category="HOUSING", days_until_due=7,
        )
        html = message["html"]
        assert message["subject"] == "Upcoming: Rent Payment Due in 7 days"
        assert "$1200.00" in html
        assert "Tuesday, March 17, 2026" in html
        assert "HOUSING" in html
        assert "Hi Ana" in html

    def test_overdue_wording(self):
        message = email_templates.payment_reminder(
            "Ana", title="Rent", amount=1200, due_date=datetime(2026, 3, 7),
            category="HOUSING", days_until_due=-3,
        )
        assert message["subject"] == "Overdue: Rent Payment Overdue by 3 days"
        assert "was due <strong>3 days ago</strong>" in message["html"]

    def test_overdue_by_one_day_is_singular(self):
        message = email_templates.payment_reminder(
            "Ana", title="Rent", amount=1200, due_date=datetime(2026, 3, 9),
            category="HOUSING", days_until_due=-1,
        )
        assert message["subject"] == "Overdue: Rent Payment Overdue by 1 day"

    def test_welcome(self):
        message = email_templates.welcome("Ana")
        assert message["subject"] == "Welcome to MoneyWise!"
        assert "Welcome to MoneyWise, Ana!" in message["html"]
