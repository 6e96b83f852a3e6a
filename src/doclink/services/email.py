"""Email notification service for request links.

Sends the customer the tokenized link right after a request is issued.
Messages are rendered from Jinja2 templates in the customer's language and
delivered over SMTP. Delivery runs in a worker thread so the event loop is
never blocked by the SMTP conversation.

Usage:
    notifier = EmailNotifier(settings.smtp)
    result = await notifier.send_request_link(
        recipient_email="customer@example.com",
        recipient_name="Ana",
        kind=RequestKind.DOCUMENT_REQUEST,
        link="https://docs.example.com/upload?token=...",
        expiry_date=request.expiry_date,
        language="pt",
    )
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import secrets
import smtplib
import ssl
from dataclasses import dataclass
from datetime import UTC, datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING

from jinja2 import Environment, PackageLoader, select_autoescape

from doclink.db.models.base import RequestKind

if TYPE_CHECKING:
    from doclink.core.config import SMTPSettings

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"

# Per-language copy for the link email; {name} and {expiry_date} are filled in
LINK_EMAIL_COPY: dict[RequestKind, dict[str, dict[str, str]]] = {
    RequestKind.DOCUMENT_REQUEST: {
        "en": {
            "subject": "Documents requested",
            "title": "Hello {name}",
            "greeting": "We need a few documents from you.",
            "body": "Please upload the requested documents before {expiry_date}.",
            "button": "Upload documents",
            "footer": "If you did not expect this email you can ignore it.",
        },
        "pt": {
            "subject": "Pedido de documentos",
            "title": "Olá {name}",
            "greeting": "Precisamos de alguns documentos seus.",
            "body": "Por favor carregue os documentos pedidos até {expiry_date}.",
            "button": "Carregar documentos",
            "footer": "Se não esperava este email pode ignorá-lo.",
        },
    },
    RequestKind.MORTGAGE_APPLICATION: {
        "en": {
            "subject": "Your mortgage application",
            "title": "Hello {name}",
            "greeting": "Your mortgage application form is ready.",
            "body": "Please complete the application before {expiry_date}.",
            "button": "Open application",
            "footer": "If you did not expect this email you can ignore it.",
        },
        "pt": {
            "subject": "O seu pedido de crédito habitação",
            "title": "Olá {name}",
            "greeting": "O seu formulário de crédito habitação está pronto.",
            "body": "Por favor preencha o formulário até {expiry_date}.",
            "button": "Abrir formulário",
            "footer": "Se não esperava este email pode ignorá-lo.",
        },
    },
}


@dataclass(frozen=True, slots=True)
class NotificationResult:
    """Result of a notification attempt.

    Attributes:
        success: Whether the email was handed to the SMTP server.
        message_id: SMTP message ID.
        recipient_hash: SHA-256 hash of the recipient address (for logs).
        error: Error message if sending failed.
        sent_at: When the email was sent.
    """

    success: bool
    message_id: str | None
    recipient_hash: str
    error: str | None
    sent_at: datetime | None


class EmailError(Exception):
    """Base exception for email operations."""


class EmailDeliveryError(EmailError):
    """Raised when email delivery fails."""


def hash_email(email: str) -> str:
    """Hash an email address so logs never carry the raw address."""
    return hashlib.sha256(email.lower().strip().encode()).hexdigest()


class EmailNotifier:
    """Sends templated emails over SMTP."""

    def __init__(self, smtp_settings: SMTPSettings) -> None:
        self.smtp_settings = smtp_settings
        self._env = Environment(
            loader=PackageLoader("doclink", "templates/email"),
            autoescape=select_autoescape(["html", "xml"]),
        )

    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str | None = None,
    ) -> NotificationResult:
        """Send one email; failures are logged and reported in the result."""
        recipient_hash = hash_email(to_email)
        try:
            message_id = await asyncio.to_thread(
                self._send_email, to_email, subject, html_body, text_body
            )
        except EmailDeliveryError as e:
            logger.error(
                "Failed to send email",
                extra={"recipient_hash": recipient_hash[:16], "error": str(e)},
            )
            return NotificationResult(
                success=False,
                message_id=None,
                recipient_hash=recipient_hash,
                error=str(e),
                sent_at=None,
            )

        logger.info(
            "Email sent",
            extra={"recipient_hash": recipient_hash[:16], "message_id": message_id},
        )
        return NotificationResult(
            success=True,
            message_id=message_id,
            recipient_hash=recipient_hash,
            error=None,
            sent_at=datetime.now(UTC),
        )

    async def send_request_link(
        self,
        *,
        recipient_email: str,
        recipient_name: str | None,
        kind: RequestKind,
        link: str,
        expiry_date: datetime,
        language: str,
    ) -> NotificationResult:
        """Render and send the link email for a newly issued request."""
        subject, html_body, text_body = self.render_link_email(
            recipient_name=recipient_name,
            kind=kind,
            link=link,
            expiry_date=expiry_date,
            language=language,
        )
        return await self.send(recipient_email, subject, html_body, text_body)

    def render_link_email(
        self,
        *,
        recipient_name: str | None,
        kind: RequestKind,
        link: str,
        expiry_date: datetime,
        language: str,
    ) -> tuple[str, str, str]:
        """Render the link email.

        Unknown languages fall back to English.

        Returns:
            Tuple of (subject, html_body, text_body).
        """
        lang = (language or DEFAULT_LANGUAGE).lower()
        copy_by_lang = LINK_EMAIL_COPY[kind]
        if lang not in copy_by_lang:
            lang = DEFAULT_LANGUAGE
        values = {"name": recipient_name or "", "expiry_date": expiry_date.date().isoformat()}
        copy = {key: text.format(**values) for key, text in copy_by_lang[lang].items()}

        context = {
            "lang": lang,
            "link": link,
            "expiry_date": values["expiry_date"],
            **copy,
        }
        html_body = self._env.get_template("request_link.html").render(**context)
        text_body = self._env.get_template("request_link.txt").render(**context)
        return copy["subject"], html_body, text_body

    def _send_email(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str | None,
    ) -> str:
        """Send an email via SMTP.

        Returns:
            SMTP message ID.

        Raises:
            EmailDeliveryError: If the email cannot be sent.
        """
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.smtp_settings.from_name} <{self.smtp_settings.from_address}>"
        msg["To"] = to_email

        domain = self.smtp_settings.from_address.split("@")[-1]
        message_id = f"<{secrets.token_hex(16)}@{domain}>"
        msg["Message-ID"] = message_id

        if text_body:
            msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            if self.smtp_settings.use_ssl:
                context = ssl.create_default_context()
                server = smtplib.SMTP_SSL(
                    self.smtp_settings.host,
                    self.smtp_settings.port,
                    timeout=self.smtp_settings.timeout,
                    context=context,
                )
            else:
                server = smtplib.SMTP(
                    self.smtp_settings.host,
                    self.smtp_settings.port,
                    timeout=self.smtp_settings.timeout,
                )
                if self.smtp_settings.use_tls:
                    context = ssl.create_default_context()
                    server.starttls(context=context)

            if self.smtp_settings.username and self.smtp_settings.password:
                server.login(
                    self.smtp_settings.username,
                    self.smtp_settings.password.get_secret_value(),
                )

            server.sendmail(
                self.smtp_settings.from_address,
                [to_email],
                msg.as_string(),
            )
            server.quit()

            return message_id

        except smtplib.SMTPException as e:
            msg = f"SMTP error: {e}"
            raise EmailDeliveryError(msg) from e
        except OSError as e:
            msg = f"Connection error: {e}"
            raise EmailDeliveryError(msg) from e
