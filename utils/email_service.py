"""SMTP-backed email channel for complaint status notifications."""
import smtplib
import ssl
import threading
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid
from enum import Enum
from typing import Mapping, Optional, Tuple

from flask import current_app, render_template

from utils.markdown_formatter import (
    format_status_update_markdown,
    markdown_to_email_html,
    markdown_to_plaintext,
)


class EmailDeliveryError(Exception):
    """Raised when email dispatch fails."""


class EmailOutcome(str, Enum):
    SENT = "SENT"
    UNAVAILABLE = "UNAVAILABLE"
    FAILED = "FAILED"


@dataclass(frozen=True)
class EmailSendResult:
    outcome: EmailOutcome
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is EmailOutcome.SENT


@dataclass(frozen=True)
class EmailSettings:
    host: str
    port: int
    username: str
    password: str
    use_tls: bool = True
    use_ssl: bool = False
    sender: str = ""
    sender_name: str = ""
    timeout: float = 10.0

    @classmethod
    def from_config(cls, config: Mapping) -> "EmailSettings":
        username = (config.get("MAIL_USERNAME") or "").strip()
        return cls(
            host=(config.get("MAIL_SERVER") or "").strip(),
            port=int(config.get("MAIL_PORT") or 587),
            username=username,
            password=config.get("MAIL_PASSWORD") or "",
            use_tls=bool(config.get("MAIL_USE_TLS", True)),
            use_ssl=bool(config.get("MAIL_USE_SSL", False)),
            sender=(config.get("MAIL_DEFAULT_SENDER") or username).strip(),
            sender_name=config.get("PORTAL_NAME") or "",
            timeout=float(config.get("MAIL_TIMEOUT_SECONDS") or 10),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.username and self.password)


class EmailChannel:
    """Uniform send contract over SMTP.

    ``send`` never raises for transport problems: a missing configuration or
    recipient is reported as ``UNAVAILABLE``; a message that cannot be built
    (header values with line breaks, for instance) and any transport error,
    timeout or cancellation as ``FAILED``. There is no retry; one call is one
    attempt.

    ``settings.timeout`` is handed to ``smtplib`` and bounds each socket
    operation (connect, each read and write), not the send as a whole: a
    server that keeps trickling replies can hold one call for several
    multiples of the timeout.
    """

    def __init__(self, settings: EmailSettings) -> None:
        self.settings = settings
        self.is_configured = settings.is_configured

    def send(
        self,
        to: Optional[str],
        subject: str,
        html: str,
        text: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> EmailSendResult:
        if not self.is_configured:
            return EmailSendResult(EmailOutcome.UNAVAILABLE, "Email channel is not configured")
        if not (to or "").strip():
            return EmailSendResult(EmailOutcome.UNAVAILABLE, "Recipient has no email address")
        if cancel_event is not None and cancel_event.is_set():
            return EmailSendResult(EmailOutcome.FAILED, "Dispatch cancelled before email send")

        try:
            msg = self._build_message(to.strip(), subject, html, text)
        except (ValueError, TypeError) as exc:
            current_app.logger.warning(
                "Email message could not be built",
                extra={"recipient": to, "subject": subject, "error": str(exc)},
            )
            return EmailSendResult(EmailOutcome.FAILED, f"Invalid email message: {exc}")

        try:
            self._deliver(msg, cancel_event)
        except EmailDeliveryError as exc:
            current_app.logger.warning(
                "Email delivery failed",
                extra={"recipient": to, "subject": subject, "error": str(exc)},
            )
            return EmailSendResult(EmailOutcome.FAILED, str(exc))

        current_app.logger.info("Email delivered", extra={"recipient": to, "subject": subject})
        return EmailSendResult(EmailOutcome.SENT)

    def _build_message(self, to: str, subject: str, html: str, text: Optional[str]) -> EmailMessage:
        sender = self.settings.sender
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((self.settings.sender_name, sender)) if self.settings.sender_name else sender
        msg["To"] = to
        msg["Date"] = formatdate(localtime=True)
        msg["Message-ID"] = make_msgid()
        msg.set_content(text or markdown_to_plaintext(html))
        msg.add_alternative(html, subtype="html")
        return msg

    def _deliver(self, msg: EmailMessage, cancel_event: Optional[threading.Event]) -> None:
        settings = self.settings

        def _transmit(server) -> None:
            server.login(settings.username, settings.password)
            if cancel_event is not None and cancel_event.is_set():
                raise EmailDeliveryError("Dispatch cancelled before email send")
            server.send_message(msg)

        try:
            if settings.use_ssl:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(settings.host, settings.port, context=context, timeout=settings.timeout) as server:
                    _transmit(server)
            else:
                with smtplib.SMTP(settings.host, settings.port, timeout=settings.timeout) as server:
                    server.ehlo()
                    if settings.use_tls:
                        server.starttls(context=ssl.create_default_context())
                        server.ehlo()
                    _transmit(server)
        except TimeoutError as exc:
            raise EmailDeliveryError(f"SMTP timed out after {settings.timeout:g}s") from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(str(exc) or exc.__class__.__name__) from exc


def get_email_channel() -> EmailChannel:
    """Return the app-lifetime channel, building it from config on first use."""
    channel = current_app.extensions.get("email_channel")
    if channel is None:
        channel = EmailChannel(EmailSettings.from_config(current_app.config))
        current_app.extensions["email_channel"] = channel
    return channel


def track_url_for(reference_code: Optional[str]) -> Optional[str]:
    base = (current_app.config.get("PORTAL_BASE_URL") or "").rstrip("/")
    if not base or not reference_code:
        return None
    return f"{base}/complaints/track/{reference_code}"


def render_status_email(
    *,
    subject: str,
    message: str,
    complaint_title: str,
    reference_code: Optional[str],
    status_words: str,
    full_name: Optional[str] = None,
) -> Tuple[str, str]:
    """Return plaintext and HTML bodies using a shared markdown source."""
    track_url = track_url_for(reference_code)
    markdown_body = format_status_update_markdown(
        message,
        complaint_title=complaint_title,
        reference_code=reference_code,
        status_words=status_words,
        track_url=track_url,
    )
    greeting = f"Hello {full_name}!" if full_name else "Hello!"
    text_body = f"{greeting}\n\n{markdown_to_plaintext(markdown_body)}"
    html_body = render_template(
        "email/status_update.html",
        subject=subject,
        greeting=greeting,
        content_html=markdown_to_email_html(markdown_body),
        track_url=track_url,
        portal_name=current_app.config.get("PORTAL_NAME") or "JanConnect+",
        preheader=message,
    )
    return text_body, html_body
