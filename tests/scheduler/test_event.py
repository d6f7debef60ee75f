"""Tests for nudge/scheduler/event.py"""

from datetime import datetime

import pytest

from conftest import UTC
from nudge.scheduler.event import ScheduledEvent, new_event_id


def test_ids_are_unique_under_burst():
    ids = {new_event_id() for _ in range(10_000)}
    assert len(ids) == 10_000


def test_id_format():
    parts = new_event_id().split("_")
    assert parts[0] == "nudge"
    assert parts[1].isdigit() and parts[2].isdigit()
    assert len(parts[3]) == 8


def test_event_gets_an_id():
    event = ScheduledEvent(fire_time=datetime(2025, 1, 15, 9, 0, tzinfo=UTC), message="hi")
    assert event.id.startswith("nudge_")


def test_explicit_id_is_kept():
    event = ScheduledEvent(fire_time=datetime(2025, 1, 15, 9, 0, tzinfo=UTC), message="hi", id="abc")
    assert event.id == "abc"


def test_naive_fire_time_rejected():
    with pytest.raises(ValueError):
        ScheduledEvent(fire_time=datetime(2025, 1, 15, 9, 0), message="hi")


def test_to_dict():
    event = ScheduledEvent(
        fire_time=datetime(2025, 1, 15, 9, 0, tzinfo=UTC), message="hi", window="morning", id="x"
    )
    assert event.to_dict() == {
        "id": "x",
        "fire_time": "2025-01-15T09:00:00+00:00",
        "message": "hi",
        "window": "morning",
    }
