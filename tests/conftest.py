"""Shared test fixtures for Nudge."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from nudge.core.clock import FixedClock
from nudge.core.config import MessageConfig, NudgeConfig, TimeWindowConfig
from nudge.core.errors import DeliveryError, RateLimitedError
from nudge.llm.mock import MockLLMProvider
from nudge.notifications.base import DeliveryBackend

UTC = ZoneInfo("UTC")


class FakeBackend(DeliveryBackend):
    """
    Controllable test backend.

    fail=True          → every call raises DeliveryError
    rate_limited=N     → the first N calls raise RateLimitedError(retry_after)
    delay=seconds      → sleep before answering
    """

    def __init__(
        self,
        name: str = "fake",
        *,
        fail: bool = False,
        rate_limited: int = 0,
        retry_after: float | None = 0.5,
        delay: float = 0.0,
    ) -> None:
        self._name = name
        self._fail = fail
        self._rate_limited = rate_limited
        self._retry_after = retry_after
        self._delay = delay
        self.calls: list[str] = []
        self.call_times: list[float] = []
        self.delivered: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    async def send_message(self, body: str) -> None:
        self.calls.append(body)
        self.call_times.append(time.monotonic())
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._rate_limited > 0:
            self._rate_limited -= 1
            raise RateLimitedError("slow down", backend=self._name, retry_after=self._retry_after)
        if self._fail:
            raise DeliveryError("backend down", backend=self._name)
        self.delivered.append(body)


def make_window(start: str, end: str, *bodies: str, name: str = "", **kwargs) -> TimeWindowConfig:
    return TimeWindowConfig(
        name=name,
        start_time=start,
        end_time=end,
        messages=[MessageConfig(body=b) for b in bodies],
        **kwargs,
    )


@pytest.fixture
def config():
    """Create a default config without loading from disk."""
    return NudgeConfig()


@pytest.fixture
def clock():
    """A clock pinned to 2025-01-15 08:00 UTC."""
    return FixedClock(datetime(2025, 1, 15, 8, 0, tzinfo=UTC))


@pytest.fixture
def mock_llm():
    """Create a mock LLM provider."""
    return MockLLMProvider()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep tests away from the real ~/.nudge and NUDGE_* variables."""
    import os
    from pathlib import Path

    for key in list(os.environ):
        if key.startswith("NUDGE_"):
            monkeypatch.delenv(key)
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    monkeypatch.chdir(tmp_path)
