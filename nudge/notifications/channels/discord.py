"""
DiscordChannel — posts nudges to a Discord webhook.

Requires config:
    [discord]
    webhook_url = "https://discord.com/api/webhooks/..."

Optional: username, avatar_url, use_embeds (default true), embed_color.

Discord answers 429 with a Retry-After header (seconds) and a JSON body
carrying "retry_after"; either becomes a RateLimitedError.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import httpx

from nudge.core.config import DiscordConfig
from nudge.core.errors import DeliveryError, RateLimitedError
from nudge.notifications.base import (
    NUDGE_ICON,
    NUDGE_TITLE,
    DeliveryBackend,
    json_object,
    parse_retry_after,
)

logger = logging.getLogger(__name__)


class DiscordChannel(DeliveryBackend):
    """Sends nudges through a Discord webhook, as an embed or plain text."""

    def __init__(
        self,
        config: DiscordConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._webhook_url = config.webhook_url
        self._username = config.username
        self._avatar_url = config.avatar_url
        self._use_embeds = config.use_embeds
        self._embed_color = config.embed_color
        self._transport = transport

    @property
    def name(self) -> str:
        return "discord"

    def build_payload(self, body: str) -> dict:
        payload: dict = {"username": self._username}
        if self._avatar_url:
            payload["avatar_url"] = self._avatar_url

        if self._use_embeds:
            payload["embeds"] = [
                {
                    "title": f"{NUDGE_ICON} {NUDGE_TITLE}",
                    "description": body,
                    "color": self._embed_color,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "footer": {"text": "nudge"},
                }
            ]
        else:
            payload["content"] = f"{NUDGE_ICON} **{NUDGE_TITLE}**\n\n{body}"
        return payload

    async def send_message(self, body: str) -> None:
        try:
            async with httpx.AsyncClient(timeout=10, transport=self._transport) as client:
                resp = await client.post(self._webhook_url, json=self.build_payload(body))
        except httpx.HTTPError as e:
            raise DeliveryError(f"Discord request failed: {e}", backend=self.name) from e

        if resp.status_code == 429:
            raise RateLimitedError(
                "Discord rate limit hit",
                backend=self.name,
                retry_after=_retry_after(resp),
            )
        if resp.status_code >= 400:
            raise DeliveryError(
                f"Discord webhook failed with status {resp.status_code}: {resp.text}",
                backend=self.name,
            )
        logger.debug("Discord nudge sent")


def _retry_after(resp: httpx.Response) -> float | None:
    value = resp.headers.get("Retry-After")
    if value is None:
        value = json_object(resp).get("retry_after")
    return parse_retry_after(value)
