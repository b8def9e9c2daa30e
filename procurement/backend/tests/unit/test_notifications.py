from __future__ import annotations

import os
import smtplib
import sys
from pathlib import Path
from unittest.mock import MagicMock

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_procurement.db")

import pytest

from procurement.backend.src.services import notifications
from procurement.backend.src.services.notifications import (
    EmailAttachment,
    EmailComposer,
    LoggingNotifier,
    SmtpNotifier,
    build_notifier,
)


@pytest.fixture()
def smtp_notifier() -> SmtpNotifier:
    return SmtpNotifier(
        "smtp.example.com",
        587,
        username="mailer",
        password="secret",
        from_email="noreply@procure.example",
        from_name="Procurement Desk",
    )


def test_smtp_notifier_sends_html_with_attachment(smtp_notifier: SmtpNotifier, monkeypatch: pytest.MonkeyPatch) -> None:
    server = MagicMock()
    smtp_factory = MagicMock()
    smtp_factory.return_value.__enter__.return_value = server
    monkeypatch.setattr(notifications.smtplib, "SMTP", smtp_factory)

    result = smtp_notifier.send(
        "approver@example.com",
        "Purchase Order Approval Required - PO/2026/0001",
        "<p>Please review</p>",
        attachments=[EmailAttachment("PO_2026_0001.pdf", b"%PDF")],
    )

    assert result.delivered is True
    smtp_factory.assert_called_once_with("smtp.example.com", 587, timeout=10.0)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("mailer", "secret")
    message = server.send_message.call_args.args[0]
    assert message["To"] == "approver@example.com"
    assert message["From"] == "Procurement Desk <noreply@procure.example>"
    filenames = [part.get_filename() for part in message.walk() if part.get_filename()]
    assert filenames == ["PO_2026_0001.pdf"]


def test_smtp_failure_is_reported_not_raised(smtp_notifier: SmtpNotifier, monkeypatch: pytest.MonkeyPatch) -> None:
    def refuse(*_args, **_kwargs):  # type: ignore[no-untyped-def]
        raise smtplib.SMTPConnectError(421, "service not available")

    monkeypatch.setattr(notifications.smtplib, "SMTP", refuse)

    result = smtp_notifier.send("approver@example.com", "subject", "<p>body</p>")

    assert result.delivered is False
    assert "approver@example.com" in result.warning


def test_logging_notifier_keeps_outbox() -> None:
    notifier = LoggingNotifier()

    result = notifier.send("creator@example.com", "Hello", "<p>hi</p>")

    assert result.delivered is True
    assert notifier.outbox[0].to == "creator@example.com"


def test_build_notifier_prefers_smtp_when_configured(settings) -> None:  # type: ignore[no-untyped-def]
    assert isinstance(build_notifier(settings), LoggingNotifier)
    assert isinstance(build_notifier(settings.model_copy(update={"mail_server": "smtp.example.com"})), SmtpNotifier)


def test_composer_renders_request_links_and_escapes_names() -> None:
    composer = EmailComposer("Test Procurement Co")

    subject, body = composer.approval_request(
        kind_label="Budgetary Offer",
        number="BO/2026/0001",
        creator_name="<script>alert(1)</script>",
        approver_name="Arjun Mehta",
        approve_url="https://procure.example/api/budgetary-offers/email-approve/abc",
        reject_url="https://procure.example/api/budgetary-offers/email-reject/abc",
    )

    assert subject == "Budgetary Offer Approval Required - BO/2026/0001"
    assert "https://procure.example/api/budgetary-offers/email-approve/abc" in body
    assert "<script>" not in body
    assert "Test Procurement Co" in body


def test_composer_renders_decision() -> None:
    composer = EmailComposer("Test Procurement Co")

    subject, body = composer.decision(
        kind_label="Purchase Order",
        number="PO/2026/0001",
        status="REJECTED",
        recipient_name="Priya Sharma",
        actor_name="Arjun Mehta",
        comments="Over budget",
    )

    assert subject == "Purchase Order PO/2026/0001 Rejected"
    assert "Over budget" in body
    assert "rejected by Arjun Mehta" in body
