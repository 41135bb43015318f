"""
SMTP e-mail channel for the PoolPilot notifier.

Sends plain-text alert e-mails through an SMTP relay (STARTTLS, or
implicit TLS on port 465).  ``smtplib`` is blocking, so each message
is sent from a worker thread.
"""

from __future__ import annotations

import asyncio
import smtplib
import ssl
from email.message import EmailMessage

import structlog

from pp_common.errors import DeliveryError
from pp_common.logging import mask_address
from pp_common.models.alert import ContactKind

from .base import AlertChannel

logger = structlog.get_logger()

_DEFAULT_SUBJECT = "🚨 Pool Alert"
_DEFAULT_TIMEOUT_S = 15.0


class SmtpEmailChannel(AlertChannel):
    """Deliver alerts as e-mail via SMTP.

    Args:
        host: SMTP server hostname.
        port: SMTP server port (587 for STARTTLS, 465 for SSL, 25 for plain).
        username: SMTP authentication username.
        password: SMTP authentication password.
        from_address: Sender address.
        use_tls: Issue STARTTLS on non-465 ports.
        subject: Subject line for every alert e-mail.
        timeout: Socket timeout in seconds.
    """

    name: str = "smtp_email"
    kind: ContactKind = ContactKind.EMAIL

    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        username: str | None = None,
        password: str | None = None,
        from_address: str = "alerts@poolpilot.local",
        use_tls: bool = True,
        subject: str = _DEFAULT_SUBJECT,
        timeout: float = _DEFAULT_TIMEOUT_S,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.use_tls = use_tls
        self.subject = subject
        self.timeout = timeout

    def build_message(self, destination: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = self.subject
        msg["From"] = self.from_address
        msg["To"] = destination
        msg.set_content(body)
        return msg

    def _send_sync(self, msg: EmailMessage) -> None:
        if self.port == 465:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout) as server:
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
            return

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls(context=ssl.create_default_context())
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)

    async def send(self, destination: str, body: str) -> None:
        """Send *body* to *destination* as a plain-text e-mail.

        Raises:
            DeliveryError: On SMTP rejection or connection failure.
        """
        log = logger.bind(channel=self.name, to=mask_address(destination))
        msg = self.build_message(destination, body)
        try:
            await asyncio.to_thread(self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as exc:
            log.error("email_delivery_failed", error=str(exc))
            raise DeliveryError(f"smtp delivery failed: {exc}", channel=self.name) from exc
        log.info("email_delivered")
