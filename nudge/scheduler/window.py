"""
WindowTimeGenerator — draws a random fire time inside a daily window.

    window 09:00–12:00, now 08:15  → some minute in today's 09:00..12:00
    window 09:00–12:00, now 13:40  → today's draw would be past → tomorrow
    window 22:00–02:00             → offsets 1320..1560, i.e. up to 02:00
                                     of the following calendar day
    window 22:00–02:00, now 00:00  → a 01:00 draw is today's 01:00,
                                     the tail of yesterday's window

Fire times are composed from wall-clock values in the configured zone, so
a DST change never moves 09:00 to 08:00 or 10:00. Whether a candidate is
still in the future is decided on real elapsed time.
"""

from __future__ import annotations

import random
from datetime import date, datetime, timedelta

from nudge.core.clock import Clock, seconds_between
from nudge.core.config import TimeWindowConfig

MINUTES_PER_DAY = 24 * 60


class WindowTimeGenerator:
    """
    Usage:
        times = WindowTimeGenerator(SystemClock(config.tz))
        fire_at = times.random_instant(window)
    """

    def __init__(self, clock: Clock, rng: random.Random | None = None) -> None:
        self._clock = clock
        self._rng = rng or random.Random()

    @property
    def clock(self) -> Clock:
        return self._clock

    def draw_offset(self, window: TimeWindowConfig) -> int:
        """Uniform minute offset from midnight in [start, end], end inclusive."""
        start = window.start_minutes
        end = window.end_minutes
        if end < start:
            end += MINUTES_PER_DAY
        return self._rng.randint(start, end)

    def random_instant(self, window: TimeWindowConfig, now: datetime | None = None) -> datetime:
        """
        A concrete, timezone-aware instant strictly after `now`.

        The offset is resolved against today; if that is not in the future
        the same offset is resolved against tomorrow. An offset past
        midnight (the tail of a crossing window) is first tried against
        yesterday's window, which is the early hours of today, so a draw
        made at the midnight reset still fires before the next reset.
        """
        now = (now or self._clock.now()).astimezone(self._clock.tz)
        offset = self.draw_offset(window)

        first = -1 if offset >= MINUTES_PER_DAY else 0
        for days in range(first, 2):
            candidate = self._resolve(now.date() + timedelta(days=days), offset)
            if seconds_between(now, candidate) > 0:
                return candidate
        # Unreachable: tomorrow's resolution is always after now
        return candidate

    def next_midnight(self, now: datetime | None = None) -> datetime:
        """Start of the next local day."""
        now = (now or self._clock.now()).astimezone(self._clock.tz)
        return self._resolve(now.date() + timedelta(days=1), 0)

    def _resolve(self, day: date, offset: int) -> datetime:
        extra_days, minute_of_day = divmod(offset, MINUTES_PER_DAY)
        day = day + timedelta(days=extra_days)
        hour, minute = divmod(minute_of_day, 60)
        return datetime(day.year, day.month, day.day, hour, minute, 0, 0, tzinfo=self._clock.tz)
