"""Tests for nudge/notifications/fanout.py"""

from __future__ import annotations

import time

import pytest

from conftest import FakeBackend
from nudge.notifications.fanout import MAX_ATTEMPTS, FanoutDelivery


class ExplodingBackend(FakeBackend):
    """Raises something that is not a DeliveryError."""

    async def send_message(self, body: str) -> None:
        self.calls.append(body)
        raise RuntimeError("kaboom")


@pytest.mark.asyncio
async def test_every_backend_receives_the_message():
    backends = [FakeBackend("a"), FakeBackend("b")]
    outcomes = await FanoutDelivery(backends).deliver("hello")

    assert [b.delivered for b in backends] == [["hello"], ["hello"]]
    assert [(o.backend, o.success, o.attempts) for o in outcomes] == [("a", True, 1), ("b", True, 1)]


@pytest.mark.asyncio
async def test_failing_backend_does_not_stop_others():
    first, broken, third = FakeBackend("one"), FakeBackend("two", fail=True), FakeBackend("three")
    outcomes = await FanoutDelivery([first, broken, third]).deliver("hello")

    assert first.delivered == ["hello"]
    assert broken.calls == ["hello"] and broken.delivered == []
    assert third.delivered == ["hello"]
    assert [o.success for o in outcomes] == [True, False, True]
    assert outcomes[1].error == "backend down"


@pytest.mark.asyncio
async def test_unexpected_exception_is_isolated():
    good = FakeBackend("good")
    outcomes = await FanoutDelivery([ExplodingBackend("bad"), good]).deliver("hello")

    assert good.delivered == ["hello"]
    assert outcomes[0].success is False
    assert "RuntimeError" in outcomes[0].error


@pytest.mark.asyncio
async def test_rate_limited_backend_retries_once_after_delay():
    backend = FakeBackend("slow", rate_limited=1, retry_after=0.5)
    outcomes = await FanoutDelivery([backend]).deliver("hello")

    assert len(backend.calls) == MAX_ATTEMPTS
    assert backend.call_times[1] - backend.call_times[0] >= 0.45
    assert backend.delivered == ["hello"]
    assert outcomes[0].success and outcomes[0].attempts == 2


@pytest.mark.asyncio
async def test_rate_limited_twice_gives_up():
    backend = FakeBackend("slow", rate_limited=5, retry_after=0.01)
    outcomes = await FanoutDelivery([backend]).deliver("hello")

    assert len(backend.calls) == 2
    assert outcomes[0].success is False
    assert outcomes[0].attempts == 2
    assert "rate limited" in outcomes[0].error


@pytest.mark.asyncio
async def test_no_retry_without_retry_after():
    backend = FakeBackend("slow", rate_limited=1, retry_after=None)
    outcomes = await FanoutDelivery([backend]).deliver("hello")

    assert len(backend.calls) == 1
    assert outcomes[0].success is False


@pytest.mark.asyncio
async def test_retry_sleep_does_not_delay_other_backends():
    limited = FakeBackend("limited", rate_limited=1, retry_after=0.5)
    quick = FakeBackend("quick")

    start = time.monotonic()
    await FanoutDelivery([limited, quick]).deliver("hello")

    assert quick.call_times[0] - start < 0.2
    assert limited.delivered == ["hello"]


@pytest.mark.asyncio
async def test_retry_after_is_capped():
    slept: list[float] = []

    async def fake_sleep(delay: float) -> None:
        slept.append(delay)

    backend = FakeBackend("slow", rate_limited=1, retry_after=3600)
    await FanoutDelivery([backend], max_retry_after=2.0, sleep=fake_sleep).deliver("hello")

    assert slept == [2.0]
    assert backend.delivered == ["hello"]


@pytest.mark.asyncio
async def test_negative_retry_after_retries_immediately():
    slept: list[float] = []

    async def fake_sleep(delay: float) -> None:
        slept.append(delay)

    backend = FakeBackend("slow", rate_limited=1, retry_after=-5)
    await FanoutDelivery([backend], sleep=fake_sleep).deliver("hello")

    assert slept == [0.0]


@pytest.mark.asyncio
async def test_hanging_backend_times_out():
    hanging = FakeBackend("hang", delay=5.0)
    quick = FakeBackend("quick")

    start = time.monotonic()
    outcomes = await FanoutDelivery([hanging, quick], timeout=0.1).deliver("hello")

    assert time.monotonic() - start < 1.0
    assert outcomes[0].success is False
    assert "timed out" in outcomes[0].error
    assert quick.delivered == ["hello"]


@pytest.mark.asyncio
async def test_total_failure_does_not_raise():
    outcomes = await FanoutDelivery([FakeBackend("a", fail=True), FakeBackend("b", fail=True)]).deliver("x")
    assert [o.success for o in outcomes] == [False, False]


@pytest.mark.asyncio
async def test_no_backends_returns_empty():
    assert await FanoutDelivery().deliver("hello") == []


@pytest.mark.asyncio
async def test_register_and_close():
    closed: list[str] = []

    class Closing(FakeBackend):
        async def close(self) -> None:
            closed.append(self.name)

    fanout = FanoutDelivery()
    fanout.register(Closing("x"))
    fanout.register(Closing("y"))
    assert fanout.backend_names == ["x", "y"]

    await fanout.close()
    assert closed == ["x", "y"]


@pytest.mark.asyncio
async def test_backends_run_concurrently():
    backends = [FakeBackend(str(i), delay=0.2) for i in range(5)]
    start = time.monotonic()
    await FanoutDelivery(backends).deliver("hello")
    # Five sequential 0.2s sends would take a full second
    assert time.monotonic() - start < 0.6
