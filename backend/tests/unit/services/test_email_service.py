"""
Unit tests for the task assignment email
"""
from datetime import datetime

import aiosmtplib
import pytest

from agileflow.services.email_service import EmailService, dispatch_task_assignment_email


@pytest.fixture
def configured_service():
    service = EmailService()
    service.smtp_host = "smtp.example.com"
    service.smtp_user = "mailer"
    service.smtp_password = "secret"
    return service


class TestEmailService:
    """Tests for best-effort delivery"""

    async def test_not_configured_skips(self):
        """Test that sending without SMTP settings returns False"""
        service = EmailService()
        service.smtp_host = ""
        assert service.is_configured is False
        assert await service.send_email("a@example.com", "Subject", "<p>x</p>") is False

    async def test_smtp_failure_returns_false(self, configured_service, monkeypatch):
        """Test that an SMTP error is reported, not raised"""
        async def broken_send(*args, **kwargs):
            raise aiosmtplib.SMTPException("connection refused")

        monkeypatch.setattr(aiosmtplib, "send", broken_send)
        sent = await configured_service.send_task_assignment_email(
            "student@example.com", "Asha", "Lab report", "Prof. Iyer", datetime(2024, 5, 1, 17, 0)
        )
        assert sent is False

    async def test_assignment_email_content(self, configured_service, monkeypatch):
        """Test recipient, subject and escaped body of the notice"""
        captured = {}

        async def fake_send(message, **kwargs):
            captured["message"] = message
            captured["kwargs"] = kwargs

        monkeypatch.setattr(aiosmtplib, "send", fake_send)
        sent = await configured_service.send_task_assignment_email(
            "student@example.com", "Asha", "<b>Lab</b> report", "Prof. Iyer", None
        )

        assert sent is True
        message = captured["message"]
        assert message["To"] == "student@example.com"
        assert message["Subject"] == "New Task Assigned - Agile Flow"
        assert captured["kwargs"]["start_tls"] is True
        html = message.get_payload()[-1].get_payload(decode=True).decode()
        assert "&lt;b&gt;Lab&lt;/b&gt; report" in html
        assert "No deadline set" in html

    async def test_dispatch_swallows_errors(self):
        """Test that the background wrapper never raises"""
        class ExplodingService(EmailService):
            async def send_task_assignment_email(self, *args, **kwargs):
                raise RuntimeError("boom")

        await dispatch_task_assignment_email(
            ExplodingService(),
            recipient_email="s@example.com",
            recipient_name="S",
            task_title="T",
            assigner_name="P",
        )

    async def test_dispatch_passes_arguments(self, email_recorder):
        """Test that the wrapper forwards the notice fields"""
        await dispatch_task_assignment_email(
            email_recorder,
            recipient_email="s@example.com",
            recipient_name="Sam",
            task_title="Inventory",
            assigner_name="Dr. Rao",
        )
        assert email_recorder.sent == [("s@example.com", "Sam", "Inventory", "Dr. Rao", None)]
