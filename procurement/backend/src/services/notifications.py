"""Email notifications for approval requests and decisions."""

from __future__ import annotations

import smtplib
from dataclasses import dataclass, field
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Protocol, Sequence

import structlog
from jinja2 import Environment, FileSystemLoader, select_autoescape

from procurement.backend.src.core.config import Settings

LOGGER = structlog.get_logger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"


@dataclass(frozen=True, slots=True)
class NotificationResult:
    delivered: bool
    warning: str | None = None


@dataclass(frozen=True, slots=True)
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


@dataclass(frozen=True, slots=True)
class EmailLink:
    label: str
    url: str


class Notifier(Protocol):
    """Best-effort message delivery. Implementations report, never raise."""

    def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        attachments: Sequence[EmailAttachment] = (),
        links: Sequence[EmailLink] = (),
    ) -> NotificationResult:
        ...


@dataclass
class SentMessage:
    to: str
    subject: str
    html_body: str
    attachments: tuple[EmailAttachment, ...] = ()
    links: tuple[EmailLink, ...] = ()


@dataclass
class LoggingNotifier:
    """Notifier used when no mail server is configured; keeps an outbox."""

    outbox: list[SentMessage] = field(default_factory=list)

    def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        attachments: Sequence[EmailAttachment] = (),
        links: Sequence[EmailLink] = (),
    ) -> NotificationResult:
        message = SentMessage(to, subject, html_body, tuple(attachments), tuple(links))
        self.outbox.append(message)
        LOGGER.info(
            "email_logged",
            to=to,
            subject=subject,
            attachments=[attachment.filename for attachment in message.attachments],
            links=[link.url for link in message.links],
        )
        return NotificationResult(delivered=True)


class SmtpNotifier:
    """Send HTML email with optional PDF attachments over SMTP."""

    def __init__(
        self,
        server: str,
        port: int,
        *,
        username: str | None = None,
        password: str | None = None,
        from_email: str,
        from_name: str,
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.server = server
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.from_name = from_name
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpNotifier":
        return cls(
            settings.mail_server or "localhost",
            settings.mail_port,
            username=settings.mail_username,
            password=settings.mail_password,
            from_email=settings.mail_from,
            from_name=settings.mail_from_name,
            use_tls=settings.mail_use_tls,
        )

    def build_message(
        self,
        to: str,
        subject: str,
        html_body: str,
        attachments: Sequence[EmailAttachment] = (),
    ) -> MIMEMultipart:
        msg = MIMEMultipart("mixed")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to
        msg.attach(MIMEText(html_body, "html"))
        for attachment in attachments:
            subtype = attachment.content_type.split("/", 1)[-1]
            part = MIMEApplication(attachment.content, _subtype=subtype)
            part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
            msg.attach(part)
        return msg

    def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        attachments: Sequence[EmailAttachment] = (),
        links: Sequence[EmailLink] = (),
    ) -> NotificationResult:
        msg = self.build_message(to, subject, html_body, attachments)
        try:
            with smtplib.SMTP(self.server, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            LOGGER.error("email_send_failed", to=to, subject=subject, error=str(exc))
            return NotificationResult(delivered=False, warning=f"Email to {to} could not be sent")

        LOGGER.info("email_sent", to=to, subject=subject)
        return NotificationResult(delivered=True)


class EmailComposer:
    """Render notification and email-action pages from jinja2 templates."""

    def __init__(self, company_name: str, templates_dir: Path = TEMPLATES_DIR) -> None:
        self.company_name = company_name
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html"]),
        )

    def render(self, template_name: str, **context: Any) -> str:
        template = self.env.get_template(template_name)
        return template.render(company_name=self.company_name, **context)

    def approval_request(
        self,
        *,
        kind_label: str,
        number: str,
        creator_name: str,
        approver_name: str,
        approve_url: str,
        reject_url: str,
    ) -> tuple[str, str]:
        subject = f"{kind_label} Approval Required - {number}"
        body = self.render(
            "email/approval_request.html",
            kind_label=kind_label,
            number=number,
            creator_name=creator_name,
            approver_name=approver_name,
            approve_url=approve_url,
            reject_url=reject_url,
        )
        return subject, body

    def decision(
        self,
        *,
        kind_label: str,
        number: str,
        status: str,
        recipient_name: str,
        actor_name: str,
        comments: str | None,
    ) -> tuple[str, str]:
        subject = f"{kind_label} {number} {status.replace('_', ' ').title()}"
        body = self.render(
            "email/decision.html",
            kind_label=kind_label,
            number=number,
            status=status,
            recipient_name=recipient_name,
            actor_name=actor_name,
            comments=comments,
        )
        return subject, body


def build_notifier(settings: Settings) -> Notifier:
    """Return an SMTP notifier when a mail server is configured."""

    if settings.mail_server:
        return SmtpNotifier.from_settings(settings)
    return LoggingNotifier()


__all__ = [
    "EmailAttachment",
    "EmailComposer",
    "EmailLink",
    "LoggingNotifier",
    "NotificationResult",
    "Notifier",
    "SentMessage",
    "SmtpNotifier",
    "TEMPLATES_DIR",
    "build_notifier",
]
