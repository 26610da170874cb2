"""
Tests for recurrence expansion: weekly and every-4-weeks series.
"""

from datetime import date

import pandas as pd
import pytest

from organizer import recurrence
from organizer.errors import RecurrenceError
from organizer.models import RecurrenceRule
from organizer.recurrence import describe_rule, expand, occurrence_dates, rule_from_event
from tests.helpers import NY, make_event


def weekly(days, **kw):
    return RecurrenceRule(kind="weekly", days=tuple(days), **kw)


def dates_of(children):
    return [c.local_date(NY) for c in children]


class TestWeekly:

    def test_practice_series(self):
        parent = make_event("2024-06-03", "18:00", id=7)
        rule = weekly(["monday", "wednesday"], end_type="count", count=6)
        children = expand(parent, rule)

        assert dates_of(children) == [
            date(2024, 6, 5), date(2024, 6, 10), date(2024, 6, 12),
            date(2024, 6, 17), date(2024, 6, 19),
        ]
        for child in children:
            assert child.local_time(NY) == "18:00"
            assert child.recurrence_parent_id == 7
            assert child.id is None
            assert child.title == "Practice"
            assert child.recurrence_type == "weekly"
            assert child.recurrence_count == 6
            assert child.recurrence_days == ("monday", "wednesday")

    def test_count_bound(self):
        parent = make_event("2024-06-03", id=1)
        children = expand(parent, weekly(["monday", "wednesday"], end_type="count", count=5))
        days = dates_of(children)
        assert len(children) == 4
        assert date(2024, 6, 3) not in days
        assert all(d.weekday() in (0, 2) for d in days)
        assert days == sorted(days)

    def test_count_of_one_is_only_the_parent(self):
        parent = make_event("2024-06-03", id=1)
        assert expand(parent, weekly(["monday"], end_type="count", count=1)) == []

    def test_date_bound_is_inclusive(self):
        parent = make_event("2024-06-07", id=1)   # Friday
        children = expand(parent, weekly(["friday"], end_type="date", end_date=date(2024, 7, 1)))
        assert dates_of(children) == [date(2024, 6, 14), date(2024, 6, 21), date(2024, 6, 28)]
        assert all(d <= date(2024, 7, 1) for d in dates_of(children))

        inclusive = expand(parent, weekly(["friday"], end_type="date", end_date="2024-06-28"))
        assert dates_of(inclusive)[-1] == date(2024, 6, 28)

    def test_zero_days_generates_nothing(self):
        parent = make_event("2024-06-03", id=1)
        assert expand(parent, weekly([], end_type="count", count=5)) == []
        assert expand(parent, weekly([], end_type="date", end_date=date(2024, 12, 31))) == []
        assert expand(parent, weekly([])) == []

    def test_days_before_parent_in_first_week_are_skipped(self):
        parent = make_event("2024-06-05", id=1)   # Wednesday
        children = expand(parent, weekly(["monday", "wednesday"], end_type="count", count=3))
        assert dates_of(children) == [date(2024, 6, 10), date(2024, 6, 12)]

    def test_unsorted_and_repeated_days(self):
        parent = make_event("2024-06-03", id=1)
        children = expand(parent, weekly(["wednesday", "Mon", "monday"], end_type="count", count=3))
        assert dates_of(children) == [date(2024, 6, 5), date(2024, 6, 10)]

    def test_end_date_before_parent(self):
        parent = make_event("2024-06-03", id=1)
        assert expand(parent, weekly(["monday"], end_type="date", end_date=date(2024, 5, 1))) == []

    def test_interval_skips_weeks(self):
        parent = make_event("2024-06-03", id=1)
        rule = weekly(["monday"], end_type="date", end_date=date(2024, 7, 1), interval=2)
        assert dates_of(expand(parent, rule)) == [date(2024, 6, 17), date(2024, 7, 1)]

    def test_local_time_survives_dst(self):
        parent = make_event("2024-03-04", "09:00", id=1)
        children = expand(parent, weekly(["monday"], end_type="count", count=3))
        assert [c.local_time(NY) for c in children] == ["09:00", "09:00"]
        assert parent.scheduled_for == pd.Timestamp("2024-03-04T14:00:00Z")
        assert children[0].scheduled_for == pd.Timestamp("2024-03-11T13:00:00Z")


class TestEvery4Weeks:

    def test_date_bound(self):
        parent = make_event("2024-01-05", id=1)
        rule = RecurrenceRule(kind="every4weeks", end_type="date", end_date=date(2024, 4, 30))
        assert dates_of(expand(parent, rule)) == [
            date(2024, 2, 2), date(2024, 3, 1), date(2024, 3, 29), date(2024, 4, 26),
        ]

    def test_count_is_exact(self):
        parent = make_event("2024-01-05", id=1)
        rule = RecurrenceRule(kind="every4weeks", end_type="count", count=3)
        assert dates_of(expand(parent, rule)) == [date(2024, 2, 2), date(2024, 3, 1)]


class TestRejections:

    def test_none_rule(self):
        assert expand(make_event("2024-06-03", id=1), RecurrenceRule()) == []

    @pytest.mark.parametrize("rule", [
        RecurrenceRule(kind="daily", end_type="count", count=3),
        RecurrenceRule(kind="weekly", days=("monday",), end_type="count", count=0),
        RecurrenceRule(kind="weekly", days=("monday",), end_type="date"),
        RecurrenceRule(kind="weekly", days=("funday",), end_type="count", count=3),
        RecurrenceRule(kind="weekly", days=("monday",), end_type="forever"),
        RecurrenceRule(kind="every4weeks", end_type="count", count=3, interval=0),
    ])
    def test_invalid_rules(self, rule):
        with pytest.raises(RecurrenceError):
            expand(make_event("2024-06-03", id=1), rule)

    def test_zero_day_rule_normalizes_end_date(self):
        rule = recurrence.validate_rule(weekly([], end_type="date", end_date="2024-07-01"))
        assert rule.end_date == date(2024, 7, 1)
        assert recurrence.rule_fields(rule)["recurrence_end_date"] == "2024-07-01"

    def test_recurrence_error_is_a_value_error(self):
        assert issubclass(RecurrenceError, ValueError)

    def test_parent_must_be_stored(self):
        with pytest.raises(RecurrenceError):
            expand(make_event("2024-06-03"), weekly(["monday"], end_type="count", count=3))

    def test_parent_with_malformed_instant(self):
        parent = make_event("2024-06-03", id=1)
        parent.scheduled_for = "garbage"
        with pytest.raises(RecurrenceError):
            expand(parent, weekly(["monday"], end_type="count", count=3))

    def test_one_bad_occurrence_rejects_the_batch(self, monkeypatch):
        real = recurrence.combine_local
        calls = []

        def flaky(day, time_of_day, tz):
            calls.append(day)
            return "" if len(calls) == 2 else real(day, time_of_day, tz)

        monkeypatch.setattr(recurrence, "combine_local", flaky)
        with pytest.raises(RecurrenceError):
            expand(make_event("2024-06-03", id=1), weekly(["monday"], end_type="count", count=4))


class TestRuleHelpers:

    def test_occurrence_dates_without_parent_event(self):
        rule = weekly(["tuesday"], end_type="count", count=3)
        assert occurrence_dates(date(2024, 6, 3), rule) == [date(2024, 6, 4), date(2024, 6, 11)]

    def test_rule_from_child(self):
        parent = make_event("2024-06-03", id=1)
        child = expand(parent, weekly(["monday", "wednesday"], end_type="count", count=6))[0]
        assert rule_from_event(child) == weekly(["monday", "wednesday"], end_type="count", count=6)

    def test_rule_from_date_bounded_child(self):
        parent = make_event("2024-06-07", id=1)
        child = expand(parent, weekly(["friday"], end_type="date", end_date=date(2024, 7, 1)))[0]
        assert child.recurrence_end_date == "2024-07-01"
        assert rule_from_event(child).end_date == date(2024, 7, 1)

    def test_describe(self):
        assert describe_rule(RecurrenceRule()) == "Does not repeat"
        assert describe_rule(weekly(["monday", "wednesday"], end_type="count", count=6)) == \
            "Weekly on Mon, Wed, 6 times"
        assert describe_rule(RecurrenceRule(kind="every4weeks", end_date=date(2024, 7, 1))) == \
            "Every 4 weeks until 2024-07-01"
