"""
TimerScheduler — arms one asyncio timer per scheduled nudge.

Design:
- No polling. Every event gets a loop.call_later() handle for
  (fire_time - now); a separate handle fires at the next local midnight.
- start() kicks off a regenerate-and-arm pass in the background and arms
  the midnight reset; it never waits for message generation.
- On an event timer: deliver via FanoutDelivery in its own task, then drop
  the event from the registry. Deliveries already in flight are never
  cancelled, not even by stop().
- On the reset timer: cancel every live event timer (and an unfinished
  regeneration pass), clear the registry, run a new pass, re-arm for the
  following midnight.
- Each pass carries the generation number it started under. If a reset or
  stop bumps the generation while the pass is still awaiting the LLM, the
  pass arms nothing.

Everything runs on one event loop, so neither the registry nor the timer
map needs a lock.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Sequence

from nudge.core.clock import Clock, seconds_between
from nudge.core.config import TimeWindowConfig
from nudge.notifications.fanout import FanoutDelivery
from nudge.scheduler.event import ScheduledEvent
from nudge.scheduler.registry import NudgeRegistry
from nudge.scheduler.window import WindowTimeGenerator

logger = logging.getLogger(__name__)

# A reset timer that fires earlier than this before midnight re-arms itself
EARLY_RESET_TOLERANCE = 1.0  # seconds


class SchedulerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class TimerScheduler:
    """
    Usage:
        scheduler = TimerScheduler(registry, fanout, config.windows, clock)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        registry: NudgeRegistry,
        delivery: FanoutDelivery,
        windows: Sequence[TimeWindowConfig],
        clock: Clock,
        times: WindowTimeGenerator | None = None,
    ) -> None:
        self._registry = registry
        self._delivery = delivery
        self._windows = list(windows)
        self._clock = clock
        self._times = times or WindowTimeGenerator(clock)

        self._state = SchedulerState.STOPPED
        self._generation = 0
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._reset_timer: asyncio.TimerHandle | None = None
        self._reset_at: datetime | None = None
        self._pass_task: asyncio.Task | None = None
        self._deliveries: set[asyncio.Task] = set()

    # ── Public state ─────────────────────────────────────────────────────────

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    @property
    def reset_at(self) -> datetime | None:
        """When the next daily reset is due (None while stopped)."""
        return self._reset_at

    @property
    def armed_ids(self) -> list[str]:
        return list(self._timers)

    def scheduled(self) -> list[ScheduledEvent]:
        """Events that still have a live timer, soonest first."""
        events = [self._registry.get(i) for i in self._timers]
        return sorted((e for e in events if e is not None), key=lambda e: e.fire_time)

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Stopped → Running. No-op if already running."""
        if self.is_running:
            logger.debug("TimerScheduler already running")
            return
        self._state = SchedulerState.RUNNING
        self._begin_pass()
        self._arm_reset()
        logger.info(f"TimerScheduler started ({len(self._windows)} window(s))")

    async def stop(self) -> None:
        """Running → Stopped. Cancels every timer; in-flight deliveries finish."""
        if not self.is_running:
            logger.debug("TimerScheduler already stopped")
            return
        self._state = SchedulerState.STOPPED
        self._cancel_pass()
        self._cancel_event_timers()
        if self._reset_timer is not None:
            self._reset_timer.cancel()
            self._reset_timer = None
        self._reset_at = None
        self._registry.clear()
        logger.info("TimerScheduler stopped")

    def reset(self) -> None:
        """
        The daily boundary: drop every pending event and timer, regenerate
        for the new day and re-arm the midnight timer.
        """
        self._reset()

    def _reset(self, after: datetime | None = None) -> None:
        if not self.is_running:
            logger.debug("Reset requested while stopped, ignoring")
            return
        logger.info("Daily reset triggered")
        self._cancel_pass()
        self._cancel_event_timers()
        self._registry.clear()
        self._begin_pass()
        self._arm_reset(after=after)

    def cancel(self, event_id: str) -> bool:
        """Cancel one pending event. No delivery is attempted."""
        handle = self._timers.pop(event_id, None)
        if handle is None:
            return False
        handle.cancel()
        self._registry.remove(event_id)
        logger.info(f"Nudge {event_id} cancelled")
        return True

    async def wait_until_armed(self) -> list[ScheduledEvent]:
        """Wait for the current regenerate-and-arm pass; return what got armed."""
        task = self._pass_task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
        return self.scheduled()

    async def wait_for_deliveries(self) -> None:
        """Wait for every delivery task that has already fired."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    # ── Regenerate-and-arm ───────────────────────────────────────────────────

    def _begin_pass(self) -> None:
        self._generation += 1
        self._pass_task = asyncio.create_task(
            self._regenerate_and_arm(self._generation),
            name=f"nudge-regenerate-{self._generation}",
        )

    def _cancel_pass(self) -> None:
        self._generation += 1
        if self._pass_task is not None and not self._pass_task.done():
            self._pass_task.cancel()
        self._pass_task = None

    async def _regenerate_and_arm(self, generation: int) -> None:
        logger.info("Generating daily nudges...")
        try:
            self._registry.clear()
            events = await self._registry.regenerate(self._windows)
        except Exception as e:
            logger.error(f"Regeneration pass failed: {e}", exc_info=True)
            return

        if generation != self._generation or not self.is_running:
            logger.debug(f"Regeneration pass {generation} superseded, not arming")
            return

        now = self._clock.now()
        for event in events:
            delay = seconds_between(now, event.fire_time)
            if delay <= 0:
                logger.info(f"Nudge {event.id} is already past due, skipping")
                self._registry.remove(event.id)
                continue
            self._arm_event(event, delay)

        logger.info(f"{len(self._timers)} nudge(s) armed for today")

    def _arm_event(self, event: ScheduledEvent, delay: float) -> None:
        loop = asyncio.get_running_loop()
        self._timers[event.id] = loop.call_later(delay, self._on_event_timer, event.id)
        logger.info(
            f"Nudge {event.id} armed for {event.fire_time:%Y-%m-%d %H:%M} "
            f"({event.fire_time.tzname()}), window {event.window!r}"
        )

    def _cancel_event_timers(self) -> None:
        for event_id, handle in self._timers.items():
            handle.cancel()
            logger.debug(f"Cleared timer for nudge {event_id}")
        self._timers.clear()

    # ── Firing ───────────────────────────────────────────────────────────────

    def _on_event_timer(self, event_id: str) -> None:
        if self._timers.pop(event_id, None) is None:
            return
        event = self._registry.get(event_id)
        if event is None:
            logger.error(f"Nudge not found: {event_id}")
            return
        task = asyncio.create_task(self._deliver(event), name=f"nudge-deliver-{event_id}")
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def _deliver(self, event: ScheduledEvent) -> None:
        logger.info(f"Executing nudge {event.id} (window {event.window!r})")
        try:
            await self._delivery.deliver(event.message)
        except Exception as e:
            logger.error(f"Nudge {event.id} delivery crashed: {e}", exc_info=True)
        finally:
            self._registry.remove(event.id)

    # ── Daily reset ──────────────────────────────────────────────────────────

    def _arm_reset(self, after: datetime | None = None) -> None:
        if self._reset_timer is not None:
            self._reset_timer.cancel()
        now = self._clock.now()
        # after = the midnight just handled, so an early-firing reset is not repeated
        base = after if after is not None and seconds_between(now, after) > 0 else now
        self._reset_at = self._times.next_midnight(base)
        delay = max(seconds_between(now, self._reset_at), 0.0)
        loop = asyncio.get_running_loop()
        self._reset_timer = loop.call_later(delay, self._on_reset_timer)
        logger.debug(f"Next daily reset at {self._reset_at:%Y-%m-%d %H:%M} ({delay:.0f}s)")

    def _on_reset_timer(self) -> None:
        self._reset_timer = None
        if not self.is_running or self._reset_at is None:
            return

        # The loop's monotonic clock can run ahead of the wall clock
        remaining = seconds_between(self._clock.now(), self._reset_at)
        if remaining > EARLY_RESET_TOLERANCE:
            loop = asyncio.get_running_loop()
            self._reset_timer = loop.call_later(remaining, self._on_reset_timer)
            return

        self._reset(after=self._reset_at)
