"""
Concrete delivery backends and the factory that picks them from config.

The set is closed: config.backends names which of these are active.
"""

from __future__ import annotations

from pathlib import Path

import httpx

from nudge.core.config import KNOWN_BACKENDS, NudgeConfig
from nudge.core.errors import ConfigError
from nudge.notifications.base import DeliveryBackend
from nudge.notifications.channels.brevo import BrevoChannel
from nudge.notifications.channels.discord import DiscordChannel
from nudge.notifications.channels.file import FileChannel
from nudge.notifications.channels.smtp import SmtpChannel
from nudge.notifications.channels.telegram import TelegramChannel

__all__ = [
    "BrevoChannel",
    "DiscordChannel",
    "FileChannel",
    "SmtpChannel",
    "TelegramChannel",
    "build_backends",
]


def build_backends(
    config: NudgeConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[DeliveryBackend]:
    """
    Instantiate every backend listed in config.backends, in that order.

    Raises ConfigError for unknown names, unconfigured backends, or an
    empty result.
    """
    backends: list[DeliveryBackend] = []
    for name in dict.fromkeys(config.backends):
        if name not in KNOWN_BACKENDS:
            raise ConfigError(f"Unknown backend: {name!r} (known: {', '.join(KNOWN_BACKENDS)})")
        if not getattr(config, name).configured:
            raise ConfigError(f"Backend {name!r} is enabled but not configured")

        if name == "telegram":
            backends.append(TelegramChannel(config.telegram, transport=transport))
        elif name == "discord":
            backends.append(DiscordChannel(config.discord, transport=transport))
        elif name == "brevo":
            backends.append(BrevoChannel(config.brevo, transport=transport))
        elif name == "smtp":
            backends.append(SmtpChannel(config.smtp))
        elif name == "file":
            backends.append(FileChannel(Path(config.file.path)))

    if not backends:
        raise ConfigError("No clients configured: set 'backends' in nudge.toml or NUDGE_BACKENDS")
    return backends
