# organizer/moves.py
"""
Date changes for a single event.

Every move keeps the event's local wall-clock time: the time of day is read
in the display timezone and recombined with the target civil date, so an
09:00 event stays at 09:00 even when the move crosses a DST change.
"""
from dataclasses import replace
from typing import Optional

import pandas as pd

from .dates import (
    TZ, CivilDate, Instant, add_days, combine_local, local_date,
    local_time_of_day, parse_date_key, today,
)
from .errors import PastDateError
from .models import Event


def shift_preserving_local_time(instant: Instant, target: CivilDate, tz: str = TZ) -> pd.Timestamp:
    return combine_local(target, local_time_of_day(instant, tz), tz)


def ensure_not_past(target: CivilDate, now: Optional[Instant] = None, tz: str = TZ) -> None:
    target_date = parse_date_key(target)
    current = today(now, tz)
    if target_date < current:
        raise PastDateError(target_date, current)


def move_event(event: Event, target: CivilDate, now: Optional[Instant] = None, tz: str = TZ) -> Event:
    """
    Return a copy of `event` moved to the civil date `target`.

    Raises PastDateError for targets before today; `event` is never modified.
    """
    ensure_not_past(target, now, tz)
    return replace(event, scheduled_for=shift_preserving_local_time(event.scheduled_for, target, tz))


def move_to_tomorrow(event: Event, now: Optional[Instant] = None, tz: str = TZ) -> Event:
    return move_event(event, add_days(local_date(event.scheduled_for, tz), 1), now, tz)


def move_to_next_week(event: Event, now: Optional[Instant] = None, tz: str = TZ) -> Event:
    return move_event(event, add_days(local_date(event.scheduled_for, tz), 7), now, tz)


def duplicate_event(event: Event, target: Optional[CivilDate] = None,
                    now: Optional[Instant] = None, tz: str = TZ) -> Event:
    """New, unsaved event at the same local time; recurrence metadata is not copied."""
    if target is None:
        target = local_date(event.scheduled_for, tz)
    ensure_not_past(target, now, tz)
    return Event(
        title=event.title,
        description=event.description,
        folder=event.folder,
        scheduled_for=shift_preserving_local_time(event.scheduled_for, target, tz),
        end_time=event.end_time,
        all_day=event.all_day,
    )


def retime_event(event: Event, time_of_day: str, tz: str = TZ) -> Event:
    """Keep the civil date, change the local time of day."""
    return replace(event, scheduled_for=combine_local(local_date(event.scheduled_for, tz), time_of_day, tz))
