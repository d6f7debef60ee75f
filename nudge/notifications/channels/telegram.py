"""
TelegramChannel — delivers nudges via a Telegram bot.

Requires config:
    [telegram]
    token   = "BOT_TOKEN"
    chat_id = "YOUR_CHAT_ID"

To get your chat_id:
    1. Create a bot via @BotFather, copy the token.
    2. Send your bot any message.
    3. Visit https://api.telegram.org/bot<TOKEN>/getUpdates
       and read the "chat.id" field.

Telegram answers 429 with {"parameters": {"retry_after": <seconds>}};
that becomes a RateLimitedError so FanoutDelivery can retry once.
"""

from __future__ import annotations

import html
import logging

import httpx

from nudge.core.config import TelegramConfig
from nudge.core.errors import DeliveryError, RateLimitedError
from nudge.notifications.base import (
    NUDGE_ICON,
    NUDGE_TITLE,
    DeliveryBackend,
    json_object,
    parse_retry_after,
)

logger = logging.getLogger(__name__)

_TELEGRAM_API = "https://api.telegram.org/bot{token}/sendMessage"


class TelegramChannel(DeliveryBackend):
    """Sends nudges as Telegram messages."""

    def __init__(
        self,
        config: TelegramConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = config.token.strip()
        self._chat_id = config.chat_id.strip()
        self._parse_mode = config.parse_mode
        self._disable_notification = config.disable_notification
        self._transport = transport

    @property
    def name(self) -> str:
        return "telegram"

    def format_message(self, body: str) -> str:
        """Prefix the body with a header matching the configured parse mode."""
        if self._parse_mode == "HTML":
            return f"{NUDGE_ICON} <b>{NUDGE_TITLE}</b>\n\n{html.escape(body)}"
        if self._parse_mode in ("Markdown", "MarkdownV2"):
            return f"{NUDGE_ICON} *{NUDGE_TITLE}*\n\n{body}"
        return f"{NUDGE_ICON} {NUDGE_TITLE}\n\n{body}"

    async def send_message(self, body: str) -> None:
        payload: dict = {
            "chat_id": self._chat_id,
            "text": self.format_message(body),
            "disable_notification": self._disable_notification,
        }
        if self._parse_mode in ("HTML", "Markdown", "MarkdownV2"):
            payload["parse_mode"] = self._parse_mode

        url = _TELEGRAM_API.format(token=self._token)
        try:
            async with httpx.AsyncClient(timeout=10, transport=self._transport) as client:
                resp = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise DeliveryError(f"Telegram request failed: {e}", backend=self.name) from e

        if resp.status_code == 429:
            raise RateLimitedError(
                "Telegram rate limit hit",
                backend=self.name,
                retry_after=_retry_after(resp),
            )
        if resp.status_code >= 400:
            raise DeliveryError(
                f"Telegram API error ({resp.status_code}): {resp.text}",
                backend=self.name,
            )
        logger.debug(f"Telegram nudge sent to {self._chat_id}")


def _retry_after(resp: httpx.Response) -> float | None:
    parameters = json_object(resp).get("parameters")
    if isinstance(parameters, dict) and parameters.get("retry_after") is not None:
        return parse_retry_after(parameters["retry_after"])
    return parse_retry_after(resp.headers.get("Retry-After"))
