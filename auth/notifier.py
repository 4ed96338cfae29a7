"""
auth/notifier.py -- Outbound email for one-time codes.

Two senders share one interface, send(to, subject, html_body), and both
raise NotificationError on failure:

  SmtpEmailSender    -- stdlib smtplib; STARTTLS and login when configured.
  ConsoleEmailSender -- logs the message instead of sending it. For local
                        development only (EMAIL_BACKEND=console).

AuthService only cares whether send() raised. Anything the SMTP library or
the socket layer throws is wrapped so callers catch a single type.

Message bodies are rendered from Jinja2 templates in auth/templates/ with
autoescaping on, so a display name or code can never inject markup.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.config import Settings

logger = logging.getLogger("accountgate.auth.notifier")

_templates = Environment(
    loader=FileSystemLoader(str(Path(__file__).parent / "templates")),
    autoescape=select_autoescape(["html"]),
)


class NotificationError(Exception):
    """Raised when a message could not be handed to the mail server."""


def render_otp_email(otp: str, ttl_seconds: int, resend: bool = False) -> str:
    """Render the HTML body carrying a one-time code."""
    template = _templates.get_template("otp_email.html")
    return template.render(
        heading="Resend OTP" if resend else "Email Confirmation",
        lead="Your new OTP code is:" if resend else "Your OTP code:",
        otp=otp,
        ttl_minutes=ttl_seconds // 60,
    )


class SmtpEmailSender:
    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        sender: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.use_tls = use_tls
        self.timeout = timeout
        if not self.host or not self.sender:
            logger.warning("SMTP not configured (SMTP_HOST / MAIL_FROM). Email sending will fail.")

    def send(self, to: str, subject: str, html_body: str) -> None:
        if not self.host or not self.sender:
            raise NotificationError("SMTP is not configured.")

        message = MIMEMultipart("alternative")
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP error sending %r to %s: %s", subject, to, exc)
            raise NotificationError(str(exc)) from exc

        logger.info("Email %r sent to %s", subject, to)


class ConsoleEmailSender:
    """Development sender: writes the message to the log instead of the network."""

    def send(self, to: str, subject: str, html_body: str) -> None:
        logger.info("Email to %s | %s\n%s", to, subject, html_body)


def build_email_sender(settings: Settings) -> SmtpEmailSender | ConsoleEmailSender:
    """Return the sender selected by EMAIL_BACKEND."""
    if settings.email_backend == "console":
        if settings.is_production:
            logger.warning("EMAIL_BACKEND=console in production -- one-time codes will only be logged")
        return ConsoleEmailSender()
    return SmtpEmailSender(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        sender=settings.mail_from,
        use_tls=settings.smtp_use_tls,
        timeout=settings.smtp_timeout,
    )
