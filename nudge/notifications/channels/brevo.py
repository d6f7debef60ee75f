"""
BrevoChannel — sends nudges as transactional e-mail through Brevo's HTTP API.

Requires config:
    [brevo]
    api_key      = "${BREVO_API_KEY}"
    sender_email = "nudge@example.com"
    sender_name  = "nudge"
    to_email     = "me@example.com"
"""

from __future__ import annotations

import html
import logging

import httpx

from nudge.core.config import BrevoConfig
from nudge.core.errors import DeliveryError, RateLimitedError
from nudge.notifications.base import DeliveryBackend, parse_retry_after

logger = logging.getLogger(__name__)

_BREVO_API = "https://api.brevo.com/v3/smtp/email"


class BrevoChannel(DeliveryBackend):
    """Transactional e-mail via Brevo."""

    def __init__(
        self,
        config: BrevoConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport

    @property
    def name(self) -> str:
        return "brevo"

    async def send_message(self, body: str) -> None:
        cfg = self._config
        payload = {
            "sender": {"email": cfg.sender_email, "name": cfg.sender_name},
            "to": [{"email": cfg.to_email}],
            "subject": cfg.subject,
            "textContent": body,
            "htmlContent": f"<p>{html.escape(body)}</p>",
        }
        headers = {"api-key": cfg.api_key, "accept": "application/json"}

        try:
            async with httpx.AsyncClient(timeout=15, transport=self._transport) as client:
                resp = await client.post(_BREVO_API, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise DeliveryError(f"Brevo request failed: {e}", backend=self.name) from e

        if resp.status_code == 429:
            raise RateLimitedError(
                "Brevo rate limit hit",
                backend=self.name,
                retry_after=parse_retry_after(resp.headers.get("Retry-After")),
            )
        if resp.status_code >= 400:
            raise DeliveryError(
                f"Brevo API error ({resp.status_code}): {resp.text}",
                backend=self.name,
            )
        logger.debug(f"Brevo e-mail sent to {cfg.to_email}")
