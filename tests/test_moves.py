"""
Tests for single-event date changes: wall-clock time is preserved.
"""

from datetime import date

import pandas as pd
import pytest

from organizer.errors import PastDateError
from organizer.moves import (
    duplicate_event, move_event, move_to_next_week, move_to_tomorrow,
    retime_event, shift_preserving_local_time,
)
from tests.helpers import NY, make_event, ny


class TestDstSafeShift:

    def test_across_spring_forward(self):
        event = make_event("2024-03-08", "09:00")   # EST
        moved = move_event(event, "2024-03-11", now=ny("2024-03-01 08:00"))
        assert moved.scheduled_for == pd.Timestamp("2024-03-11T13:00:00Z")
        assert moved.local_time(NY) == "09:00"
        assert moved.local_date(NY) == date(2024, 3, 11)

    def test_across_fall_back(self):
        event = make_event("2024-11-01", "09:00")   # EDT
        moved = move_event(event, date(2024, 11, 4), now=ny("2024-10-01 08:00"))
        assert moved.scheduled_for == pd.Timestamp("2024-11-04T14:00:00Z")
        assert moved.local_time(NY) == "09:00"

    def test_shift_helper(self):
        ts = shift_preserving_local_time(pd.Timestamp("2024-07-01T13:00:00Z"), "2024-12-02")
        assert ts == pd.Timestamp("2024-12-02T14:00:00Z")


class TestPastMoves:

    def test_move_into_past_is_rejected(self, now):
        event = make_event("2024-06-12", "18:00", id=3)
        before = event.scheduled_for
        with pytest.raises(PastDateError) as exc:
            move_event(event, "2024-06-09", now=now)
        assert exc.value.target == date(2024, 6, 9)
        assert exc.value.today == date(2024, 6, 10)
        assert event.scheduled_for == before

    def test_same_day_is_allowed(self, now):
        event = make_event("2024-06-10", "08:00")
        moved = move_event(event, "2024-06-10", now=now)
        assert moved.scheduled_for == event.scheduled_for

    def test_input_event_is_not_mutated(self, now):
        event = make_event("2024-06-10", "08:00", id=1)
        moved = move_event(event, "2024-06-20", now=now)
        assert moved is not event
        assert event.local_date(NY) == date(2024, 6, 10)
        assert moved.id == 1


class TestQuickMoves:

    def test_tomorrow_month_rollover(self, now):
        moved = move_to_tomorrow(make_event("2024-06-30", "20:00"), now=now)
        assert moved.local_date(NY) == date(2024, 7, 1)
        assert moved.local_time(NY) == "20:00"

    def test_tomorrow_uses_new_york_date(self, now):
        # 22:00 in New York is already the next day in UTC
        event = make_event("2024-06-10", "22:00")
        assert event.scheduled_for.date() == date(2024, 6, 11)
        moved = move_to_tomorrow(event, now=now)
        assert moved.local_date(NY) == date(2024, 6, 11)
        assert moved.scheduled_for == pd.Timestamp("2024-06-12T02:00:00Z")

    def test_next_week_year_rollover(self):
        moved = move_to_next_week(make_event("2024-12-28", "10:15"), now=ny("2024-12-20 09:00"))
        assert moved.local_date(NY) == date(2025, 1, 4)
        assert moved.local_time(NY) == "10:15"

    def test_tomorrow_from_a_past_event_still_past(self, now):
        with pytest.raises(PastDateError):
            move_to_tomorrow(make_event("2024-06-01", "09:00"), now=now)


class TestDuplicate:

    def test_duplicate_drops_recurrence(self, now):
        child = make_event(
            "2024-06-12", "18:00", id=9, folder="Kids Sports", recurrence_type="weekly",
            recurrence_days=("wednesday",), recurrence_count=6, recurrence_parent_id=2,
        )
        copy = duplicate_event(child, "2024-06-20", now=now)
        assert copy.id is None
        assert copy.recurrence_type == "none"
        assert copy.recurrence_parent_id is None
        assert copy.recurrence_days == ()
        assert copy.recurrence_count is None
        assert copy.folder == "Kids Sports"
        assert copy.local_date(NY) == date(2024, 6, 20)
        assert copy.local_time(NY) == "18:00"
        assert child.id == 9

    def test_duplicate_defaults_to_same_day(self, now):
        copy = duplicate_event(make_event("2024-06-11", "07:45"), now=now)
        assert copy.local_date(NY) == date(2024, 6, 11)

    def test_duplicate_into_past_is_rejected(self, now):
        with pytest.raises(PastDateError):
            duplicate_event(make_event("2024-06-11"), "2024-06-01", now=now)


def test_retime_keeps_the_date():
    event = make_event("2024-11-03", "09:00")
    retimed = retime_event(event, "19:30")
    assert retimed.local_date(NY) == date(2024, 11, 3)
    assert retimed.local_time(NY) == "19:30"
