"""
DeliveryBackend — the contract every notification channel implements.

Every delivery target (Telegram, Discord, Brevo, SMTP, file log) implements
DeliveryBackend. FanoutDelivery sends each message to all of them.

send_message() returns normally on success. Failures raise:
    DeliveryError      — rejected / transport failure, give up on this one
    RateLimitedError   — back off retry_after seconds, then one retry
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx

NUDGE_TITLE = "nudge reminder"
NUDGE_ICON = "\N{BELL}"


class DeliveryBackend(ABC):
    """Abstract delivery target."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier, e.g. 'telegram', 'discord', 'file'."""
        ...

    @abstractmethod
    async def send_message(self, body: str) -> None:
        """
        Deliver one message body.

        Raises:
            DeliveryError: the message was not delivered.
            RateLimitedError: the backend asked to retry later.
        """
        ...

    async def close(self) -> None:
        """Release network resources. Default: nothing to release."""
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def parse_retry_after(value: Any) -> float | None:
    """Seconds from a Retry-After header or JSON field; None when unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        seconds = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        # HTTP-date form or garbage
        return None
    return seconds if seconds >= 0 else None


def json_object(resp: httpx.Response) -> dict[str, Any]:
    """The response body as a JSON object, or {} if it is anything else."""
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
