"""
Clock — the single source of "now" for the scheduling core.

Everything that needs the current time asks a Clock, never datetime.now()
directly, so tests can pin time and the configured timezone is applied in
one place.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone, tzinfo


class Clock(ABC):
    """Returns timezone-aware instants in a fixed zone."""

    @property
    @abstractmethod
    def tz(self) -> tzinfo:
        ...

    @abstractmethod
    def now(self) -> datetime:
        """Current instant, localized to self.tz."""
        ...


class SystemClock(Clock):
    """Wall clock in the configured timezone."""

    def __init__(self, tz: tzinfo) -> None:
        self._tz = tz

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def now(self) -> datetime:
        return datetime.now(self._tz)


class FixedClock(Clock):
    """
    A clock that only moves when told to.

    Usage in tests:
        clock = FixedClock(datetime(2025, 3, 1, 8, 0, tzinfo=ZoneInfo("UTC")))
        clock.advance(minutes=30)
    """

    def __init__(self, at: datetime) -> None:
        if at.tzinfo is None:
            raise ValueError("FixedClock needs a timezone-aware datetime")
        self._now = at

    @property
    def tz(self) -> tzinfo:
        return self._now.tzinfo  # type: ignore[return-value]

    def now(self) -> datetime:
        return self._now

    def set(self, at: datetime) -> None:
        self._now = at.astimezone(self.tz)

    def advance(self, **delta: float) -> None:
        # Elapsed time, so advancing across a DST change moves the wall clock correctly
        self._now = (self._now.astimezone(timezone.utc) + timedelta(**delta)).astimezone(self.tz)


def seconds_between(start: datetime, end: datetime) -> float:
    """
    Real elapsed seconds from `start` to `end`.

    Aware datetimes sharing one tzinfo subtract by wall clock, which is an
    hour off across a DST change; going through UTC is not.
    """
    return (end.astimezone(timezone.utc) - start.astimezone(timezone.utc)).total_seconds()
