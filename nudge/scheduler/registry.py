"""
NudgeRegistry — today's scheduled events, keyed by event id.

regenerate() rebuilds the whole registry: one time draw and one message per
enabled window, in configuration order. A window that fails (bad draw,
generation timeout, LLM down) is logged and skipped; the rest still get
their event.

The registry is owned by a single event loop and does no locking.
"""

from __future__ import annotations

import logging
from typing import Iterator, Sequence

from nudge.core.config import TimeWindowConfig
from nudge.core.errors import NoMessagesAvailable, RegistryError
from nudge.messages.generator import GenerativeMessageSource
from nudge.messages.selector import MessageSelector
from nudge.scheduler.event import ScheduledEvent
from nudge.scheduler.window import WindowTimeGenerator

logger = logging.getLogger(__name__)


class NudgeRegistry:
    """In-memory map of event id → ScheduledEvent, regenerated daily."""

    def __init__(
        self,
        times: WindowTimeGenerator,
        selector: MessageSelector | None = None,
        fallback_message: str = "hey, you forgot to set a message",
        generator: GenerativeMessageSource | None = None,
    ) -> None:
        self._times = times
        self._selector = selector or MessageSelector()
        self._fallback_message = fallback_message
        self._generator = generator
        self._events: dict[str, ScheduledEvent] = {}

    # ── Queries ──────────────────────────────────────────────────────────────

    def get(self, event_id: str) -> ScheduledEvent | None:
        return self._events.get(event_id)

    def ids(self) -> list[str]:
        return list(self._events)

    def events(self) -> list[ScheduledEvent]:
        return list(self._events.values())

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._events

    def __iter__(self) -> Iterator[ScheduledEvent]:
        return iter(list(self._events.values()))

    # ── Mutation ─────────────────────────────────────────────────────────────

    def add(self, event: ScheduledEvent) -> None:
        """Insert an event. Refuses to overwrite an existing id."""
        if event.id in self._events:
            raise RegistryError(f"Duplicate event id: {event.id}")
        self._events[event.id] = event

    def remove(self, event_id: str) -> ScheduledEvent | None:
        return self._events.pop(event_id, None)

    def clear(self) -> None:
        count = len(self._events)
        self._events.clear()
        logger.debug(f"Registry cleared ({count} events dropped)")

    async def regenerate(self, windows: Sequence[TimeWindowConfig]) -> list[ScheduledEvent]:
        """
        Replace the registry with one fresh event per enabled window.

        Returns the new events in configuration order.
        """
        self.clear()
        created: list[ScheduledEvent] = []

        for window in windows:
            if not window.enabled:
                continue
            try:
                fire_time = self._times.random_instant(window)
                message = await self._pick_message(window)
                event = ScheduledEvent(fire_time=fire_time, message=message, window=window.label)
                self.add(event)
            except Exception as e:
                logger.warning(f"Failed to schedule nudge for window {window.label!r}: {e}")
                continue

            created.append(event)
            logger.info(
                f"Scheduled nudge {event.id} at "
                f"{event.fire_time:%Y-%m-%d %H:%M} ({event.fire_time.tzname()}) "
                f"for window {window.label!r}"
            )

        return created

    async def _pick_message(self, window: TimeWindowConfig) -> str:
        if self._generator is not None:
            return await self._generator.generate()
        try:
            return self._selector.select(window.messages)
        except NoMessagesAvailable:
            logger.warning(f"Window {window.label!r} has no messages, using fallback message")
            return self._fallback_message
