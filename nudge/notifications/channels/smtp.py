"""
SmtpChannel — sends nudges as plain e-mail over SMTP.

Requires config:
    [smtp]
    host         = "smtp.example.com"
    port         = 587
    secure       = false     # true = implicit TLS (465), false = STARTTLS
    username     = "user"
    password     = "${SMTP_PASSWORD}"
    sender_email = "nudge@example.com"
    to_email     = "me@example.com"

smtplib is blocking, so each send runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import html
import logging
import smtplib
import ssl
from email.message import EmailMessage

from nudge.core.config import SmtpConfig
from nudge.core.errors import DeliveryError
from nudge.notifications.base import DeliveryBackend

logger = logging.getLogger(__name__)


class SmtpChannel(DeliveryBackend):
    """E-mail via any SMTP server."""

    def __init__(self, config: SmtpConfig, smtp_factory=None) -> None:
        self._config = config
        self._smtp_factory = smtp_factory

    @property
    def name(self) -> str:
        return "smtp"

    def build_email(self, body: str) -> EmailMessage:
        cfg = self._config
        msg = EmailMessage()
        msg["From"] = cfg.sender_email
        msg["To"] = cfg.to_email
        msg["Subject"] = cfg.subject
        msg.set_content(body)
        msg.add_alternative(f"<p>{html.escape(body)}</p>", subtype="html")
        return msg

    async def send_message(self, body: str) -> None:
        msg = self.build_email(body)
        try:
            await asyncio.to_thread(self._send_blocking, msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"SMTP send failed: {e}", backend=self.name) from e
        logger.debug(f"SMTP e-mail sent to {self._config.to_email}")

    def _send_blocking(self, msg: EmailMessage) -> None:
        cfg = self._config
        if self._smtp_factory is not None:
            server = self._smtp_factory(cfg.host, cfg.port)
        elif cfg.secure:
            server = smtplib.SMTP_SSL(cfg.host, cfg.port, timeout=15, context=ssl.create_default_context())
        else:
            server = smtplib.SMTP(cfg.host, cfg.port, timeout=15)

        with server:
            if not cfg.secure and self._smtp_factory is None:
                server.starttls(context=ssl.create_default_context())
            if cfg.username:
                server.login(cfg.username, cfg.password)
            server.send_message(msg)
