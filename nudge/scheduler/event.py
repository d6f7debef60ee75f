"""
ScheduledEvent — one concrete nudge for one day.

An event is created during the daily regeneration pass, read by its timer
callback, and deleted right after its delivery attempt (or when a reset
invalidates it first). The message is chosen at creation time so the
content does not depend on anything that happens at fire time.
"""

from __future__ import annotations

import itertools
import time
import uuid
from dataclasses import dataclass
from datetime import datetime

_sequence = itertools.count(1)


def new_event_id() -> str:
    """
    nudge_<epoch-ms>_<seq>_<random>.

    The process-wide sequence keeps ids unique even when many are minted
    in the same millisecond; the random suffix keeps them opaque.
    """
    return f"nudge_{int(time.time() * 1000)}_{next(_sequence)}_{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True, slots=True)
class ScheduledEvent:
    """A fire time plus the message to deliver at that time."""

    fire_time: datetime  # timezone-aware
    message: str
    window: str = ""     # label of the originating window, for logs
    id: str = ""

    def __post_init__(self) -> None:
        if self.fire_time.tzinfo is None:
            raise ValueError("ScheduledEvent.fire_time must be timezone-aware")
        if not self.id:
            object.__setattr__(self, "id", new_event_id())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fire_time": self.fire_time.isoformat(),
            "message": self.message,
            "window": self.window,
        }
