"""Tests for nudge/scheduler/engine.py"""

from __future__ import annotations

import asyncio
import random
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from conftest import UTC, FakeBackend, make_window
from nudge.core.clock import FixedClock
from nudge.messages.generator import GenerativeMessageSource
from nudge.notifications.fanout import FanoutDelivery
from nudge.scheduler.engine import SchedulerState, TimerScheduler
from nudge.scheduler.event import ScheduledEvent
from nudge.scheduler.registry import NudgeRegistry
from nudge.scheduler.window import WindowTimeGenerator

# 200ms before the 09:00 window opens
JUST_BEFORE_NINE = datetime(2025, 1, 15, 8, 59, 59, 800_000, tzinfo=UTC)


def _build(clock, windows, backend=None, generator=None, registry_cls=NudgeRegistry, rng=None):
    backend = backend or FakeBackend()
    times = WindowTimeGenerator(clock, rng=rng)
    registry = registry_cls(times, generator=generator)
    scheduler = TimerScheduler(registry, FanoutDelivery([backend]), windows, clock, times=times)
    return scheduler, registry, backend


@pytest.mark.asyncio
async def test_event_fires_at_its_time():
    clock = FixedClock(JUST_BEFORE_NINE)
    scheduler, registry, backend = _build(clock, [make_window("09:00", "09:00", "hello")])

    await scheduler.start()
    try:
        armed = await scheduler.wait_until_armed()
        assert len(armed) == 1
        assert armed[0].fire_time == datetime(2025, 1, 15, 9, 0, tzinfo=UTC)

        await asyncio.sleep(0.05)
        assert backend.calls == []

        await asyncio.sleep(0.4)
        await scheduler.wait_for_deliveries()
        assert backend.delivered == ["hello"]
        # Delivered events are dropped
        assert len(registry) == 0
        assert scheduler.armed_ids == []
    finally:
        await scheduler.stop()


@pytest.mark.asyncio
async def test_reset_right_after_arming_discards_old_timer(mock_llm):
    mock_llm.set_responses(["first", "second"])
    clock = FixedClock(JUST_BEFORE_NINE)
    scheduler, registry, backend = _build(
        clock,
        [make_window("09:00", "09:00")],
        generator=GenerativeMessageSource(mock_llm),
    )

    await scheduler.start()
    try:
        armed = await scheduler.wait_until_armed()
        assert [e.message for e in armed] == ["first"]

        scheduler.reset()
        armed = await scheduler.wait_until_armed()
        assert [e.message for e in armed] == ["second"]

        await asyncio.sleep(0.5)
        await scheduler.wait_for_deliveries()
        assert backend.delivered == ["second"]
    finally:
        await scheduler.stop()


@pytest.mark.asyncio
async def test_superseded_pass_arms_nothing(mock_llm):
    mock_llm.delay = 0.2
    mock_llm.set_response("fresh")
    clock = FixedClock(datetime(2025, 1, 15, 6, 0, tzinfo=UTC))
    scheduler, registry, backend = _build(
        clock,
        [make_window("09:00", "10:00")],
        generator=GenerativeMessageSource(mock_llm),
    )

    await scheduler.start()
    try:
        # Let the first pass reach the LLM call, then reset underneath it
        await asyncio.sleep(0.05)
        scheduler.reset()
        armed = await scheduler.wait_until_armed()

        assert len(scheduler.armed_ids) == 1
        assert len(registry) == 1
        # The cancelled call never consumed its queued reply
        assert mock_llm.call_count == 2
        assert [e.message for e in armed] == ["fresh"]
    finally:
        await scheduler.stop()


@pytest.mark.asyncio
async def test_reset_timer_at_midnight_regenerates_and_rearms():
    clock = FixedClock(datetime(2025, 1, 15, 23, 59, 59, 900_000, tzinfo=UTC))
    scheduler, registry, backend = _build(clock, [make_window("09:00", "10:00", "hi")])

    await scheduler.start()
    try:
        assert scheduler.reset_at == datetime(2025, 1, 16, 0, 0, tzinfo=UTC)

        # The reset fires ~100ms later while the pinned clock still reads 23:59:59.9;
        # the next reset must still move a full day ahead
        await asyncio.sleep(0.3)
        assert scheduler.reset_at == datetime(2025, 1, 17, 0, 0, tzinfo=UTC)

        armed = await scheduler.wait_until_armed()
        assert len(armed) == 1
    finally:
        await scheduler.stop()


@pytest.mark.asyncio
async def test_early_reset_timer_rearms_without_resetting(clock):
    scheduler, registry, backend = _build(clock, [make_window("09:00", "10:00", "hi")])

    await scheduler.start()
    try:
        before = await scheduler.wait_until_armed()
        reset_at = scheduler.reset_at

        # Simulate the loop timer firing hours early
        scheduler._on_reset_timer()

        assert scheduler.reset_at == reset_at
        assert [e.id for e in scheduler.scheduled()] == [e.id for e in before]
    finally:
        await scheduler.stop()


class PastDueRegistry(NudgeRegistry):
    """Produces one event that is already in the past when armed."""

    async def regenerate(self, windows):
        self.clear()
        now = self._times.clock.now()
        event = ScheduledEvent(fire_time=now - timedelta(minutes=1), message="too late")
        self.add(event)
        return [event]


@pytest.mark.asyncio
async def test_past_due_events_are_discarded(clock):
    scheduler, registry, backend = _build(
        clock, [make_window("09:00", "10:00", "hi")], registry_cls=PastDueRegistry
    )

    await scheduler.start()
    try:
        armed = await scheduler.wait_until_armed()
        await asyncio.sleep(0.05)

        assert armed == []
        assert len(registry) == 0
        assert backend.calls == []
    finally:
        await scheduler.stop()


@pytest.mark.asyncio
async def test_start_and_stop_are_idempotent(clock):
    scheduler, registry, backend = _build(clock, [make_window("09:00", "10:00", "hi")])
    assert scheduler.state is SchedulerState.STOPPED

    await scheduler.start()
    await scheduler.start()
    await scheduler.wait_until_armed()
    assert scheduler.is_running
    assert len(scheduler.armed_ids) == 1

    await scheduler.stop()
    await scheduler.stop()
    assert scheduler.state is SchedulerState.STOPPED
    assert scheduler.reset_at is None
    assert scheduler.armed_ids == []
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_stop_cancels_pending_timers():
    clock = FixedClock(JUST_BEFORE_NINE)
    scheduler, registry, backend = _build(clock, [make_window("09:00", "09:00", "hello")])

    await scheduler.start()
    await scheduler.wait_until_armed()
    await scheduler.stop()

    await asyncio.sleep(0.4)
    assert backend.calls == []


@pytest.mark.asyncio
async def test_in_flight_delivery_survives_stop():
    clock = FixedClock(datetime(2025, 1, 15, 8, 59, 59, 900_000, tzinfo=UTC))
    backend = FakeBackend(delay=0.3)
    scheduler, registry, _ = _build(clock, [make_window("09:00", "09:00", "hello")], backend=backend)

    await scheduler.start()
    await scheduler.wait_until_armed()
    await asyncio.sleep(0.2)
    assert backend.calls == ["hello"]

    await scheduler.stop()
    await scheduler.wait_for_deliveries()
    assert backend.delivered == ["hello"]


@pytest.mark.asyncio
async def test_cancel_single_event():
    clock = FixedClock(JUST_BEFORE_NINE)
    scheduler, registry, backend = _build(clock, [make_window("09:00", "09:00", "hello")])

    await scheduler.start()
    try:
        armed = await scheduler.wait_until_armed()
        event_id = armed[0].id

        assert scheduler.cancel(event_id) is True
        assert scheduler.cancel(event_id) is False
        assert event_id not in registry

        await asyncio.sleep(0.4)
        assert backend.calls == []
    finally:
        await scheduler.stop()


@pytest.mark.asyncio
async def test_scheduled_is_sorted_by_fire_time(clock):
    windows = [
        make_window("18:00", "18:00", "evening", name="evening"),
        make_window("09:00", "09:00", "morning", name="morning"),
    ]
    scheduler, registry, backend = _build(clock, windows)

    await scheduler.start()
    try:
        await scheduler.wait_until_armed()
        assert [e.window for e in scheduler.scheduled()] == ["morning", "evening"]
    finally:
        await scheduler.stop()


@pytest.mark.asyncio
async def test_reset_while_stopped_is_ignored(clock):
    scheduler, registry, backend = _build(clock, [make_window("09:00", "10:00", "hi")])
    scheduler.reset()
    assert scheduler.armed_ids == []
    assert len(registry) == 0


class FixedDraw(random.Random):
    """Always draws the same minute offset."""

    def __init__(self, offset: int) -> None:
        super().__init__()
        self.offset = offset

    def randint(self, a: int, b: int) -> int:
        return self.offset


def _delay(handle: asyncio.TimerHandle) -> float:
    return handle.when() - asyncio.get_running_loop().time()


@pytest.mark.asyncio
async def test_timers_use_real_elapsed_time_across_dst():
    new_york = ZoneInfo("America/New_York")
    # Clocks jump from 02:00 to 03:00, so 09:00 is only 8 real hours away
    clock = FixedClock(datetime(2025, 3, 9, 0, 0, tzinfo=new_york))
    scheduler, registry, backend = _build(clock, [make_window("09:00", "09:00")])

    await scheduler.start()
    try:
        armed = await scheduler.wait_until_armed()
        assert armed[0].fire_time == datetime(2025, 3, 9, 9, 0, tzinfo=new_york)

        assert _delay(scheduler._timers[armed[0].id]) == pytest.approx(8 * 3600, abs=5)
        # The local day itself is 23 hours long
        assert scheduler.reset_at == datetime(2025, 3, 10, 0, 0, tzinfo=new_york)
        assert _delay(scheduler._reset_timer) == pytest.approx(23 * 3600, abs=5)
    finally:
        await scheduler.stop()


@pytest.mark.asyncio
async def test_crossing_window_tail_drawn_at_midnight_fires_before_next_reset():
    clock = FixedClock(datetime(2025, 1, 15, 0, 0, tzinfo=UTC))
    # 25:00, i.e. 01:00 in the early hours after a 22:00 start
    scheduler, registry, backend = _build(
        clock, [make_window("22:00", "02:00", "late")], rng=FixedDraw(25 * 60)
    )

    await scheduler.start()
    try:
        armed = await scheduler.wait_until_armed()
        assert len(armed) == 1
        assert armed[0].fire_time == datetime(2025, 1, 15, 1, 0, tzinfo=UTC)
        assert armed[0].fire_time < scheduler.reset_at
        assert _delay(scheduler._timers[armed[0].id]) == pytest.approx(3600, abs=5)
    finally:
        await scheduler.stop()
