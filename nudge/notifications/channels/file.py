"""
FileChannel — appends every nudge to ~/.nudge/notifications.log.

Useful as a permanent local record next to the real backends, and as
the only backend when trying Nudge out without any credentials.
"""

from __future__ import annotations

import datetime
import logging
from pathlib import Path

from nudge.core.errors import DeliveryError
from nudge.notifications.base import NUDGE_TITLE, DeliveryBackend

logger = logging.getLogger(__name__)


class FileChannel(DeliveryBackend):
    """Appends nudges to a plain-text log file."""

    def __init__(self, log_path: Path | None = None) -> None:
        self._log_path = (log_path or (Path.home() / ".nudge" / "notifications.log")).expanduser()

    @property
    def name(self) -> str:
        return "file"

    @property
    def path(self) -> Path:
        return self._log_path

    async def send_message(self, body: str) -> None:
        ts = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        entry = f"[{ts}] [{NUDGE_TITLE}]\n{body}\n{'─' * 60}\n"
        try:
            self._log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._log_path, "a", encoding="utf-8") as f:
                f.write(entry)
        except OSError as e:
            raise DeliveryError(f"FileChannel write failed: {e}", backend=self.name) from e
