# organizer/organizer.py
import logging
from datetime import date, timedelta
from typing import Callable, List, Optional, Tuple

from .dates import (
    TZ, CivilDate, Instant, combine_local, compute_week_window, parse_date_key,
)
from .errors import PastDateError
from .metrics import EVENT_MOVES, EVENTS_CREATED, EXPANSION_TIME
from .models import EVENTS, Event, RecurrenceRule, events_from_rows
from .moves import (
    duplicate_event, ensure_not_past, move_event, move_to_next_week,
    move_to_tomorrow, retime_event,
)
from .recurrence import expand, rule_fields, validate_rule
from .store import RecordStore

logger = logging.getLogger(__name__)


def create_event(store: RecordStore,
                 title: str,
                 day: CivilDate,
                 time_of_day: str,
                 rule: Optional[RecurrenceRule] = None,
                 description: Optional[str] = None,
                 folder: Optional[str] = None,
                 end_time: Optional[str] = None,
                 all_day: bool = False,
                 now: Optional[Instant] = None,
                 tz: str = TZ) -> Tuple[Event, List[Event]]:
    """
    Store a new event and, for a recurring rule, its whole series.

    The parent and its children are written in one atomic block: if the
    expansion fails nothing is stored.

    Returns:
        (parent, children) as stored, children in date order.
    """
    if not title or not title.strip():
        raise ValueError("Event title is required")
    rule = validate_rule(rule or RecurrenceRule())
    ensure_not_past(day, now, tz)

    draft = Event(
        title=title.strip(),
        description=description,
        folder=folder,
        scheduled_for=combine_local(day, "12:00" if all_day else time_of_day, tz),
        end_time=end_time,
        all_day=all_day,
        **rule_fields(rule),
    )

    with store.atomic():
        parent = Event.from_row(store.insert(EVENTS, draft.to_row())[0])
        parent.end_time = end_time
        with EXPANSION_TIME.time():
            drafts = expand(parent, rule, tz)
        rows = store.insert(EVENTS, [c.to_row() for c in drafts]) if drafts else []
    children = events_from_rows(rows)

    EVENTS_CREATED.labels(kind="single" if rule.kind == "none" else "parent").inc()
    if children:
        EVENTS_CREATED.labels(kind="child").inc(len(children))
    logger.info("Created event %s %r on %s with %d occurrence(s) generated",
                parent.id, parent.title, parse_date_key(day), len(children))
    return parent, children


def get_event(store: RecordStore, event_id: int) -> Event:
    return Event.from_row(store.get(EVENTS, event_id))


def _utc_span(first: date, last: date, tz: str) -> Tuple[str, str]:
    # stored instants are UTC ISO strings, so they order lexically
    low = combine_local(first, "00:00", tz)
    high = combine_local(last + timedelta(days=1), "00:00", tz)
    return low.isoformat(), high.isoformat()


def _events_between(store: RecordStore, first: date, last: date, tz: str) -> List[Event]:
    rows = store.list(EVENTS, ranges={"scheduled_for": _utc_span(first, last, tz)})
    events = [e for e in events_from_rows(rows) if first <= e.local_date(tz) <= last]
    return sorted(events, key=lambda e: e.scheduled_for)


def events_in_week(store: RecordStore, reference, tz: str = TZ) -> List[Event]:
    """Events whose local date falls in the Monday..Sunday week of `reference`."""
    week = compute_week_window(reference, tz)
    return _events_between(store, week.start, week.end, tz)


def events_on_day(store: RecordStore, day: CivilDate, tz: str = TZ) -> List[Event]:
    target = parse_date_key(day)
    return _events_between(store, target, target, tz)


def series(store: RecordStore, parent_id: int) -> List[Event]:
    """A recurring parent followed by its children in date order."""
    parent = get_event(store, parent_id)
    children = events_from_rows(store.list(EVENTS, {"recurrence_parent_id": parent_id}))
    return [parent] + sorted(children, key=lambda e: e.scheduled_for)


def edit_event(store: RecordStore,
               event_id: int,
               title: Optional[str] = None,
               description: Optional[str] = None,
               folder: Optional[str] = None,
               time_of_day: Optional[str] = None,
               tz: str = TZ) -> Event:
    """Full edit of one row. The recurrence series is never re-expanded."""
    event = get_event(store, event_id)
    patch = {}
    if title is not None:
        if not title.strip():
            raise ValueError("Event title is required")
        patch["title"] = title.strip()
    if description is not None:
        patch["description"] = description
    if folder is not None:
        patch["folder"] = folder
    if time_of_day is not None:
        patch["scheduled_for"] = retime_event(event, time_of_day, tz).scheduled_for.isoformat()
    if not patch:
        return event
    updated = Event.from_row(store.update(EVENTS, event_id, patch))
    logger.info("Edited event %s (%s)", event_id, ", ".join(sorted(patch)))
    return updated


def _reschedule(store: RecordStore, event_id: int, mover: Callable[[Event], Event], label: str) -> Event:
    event = get_event(store, event_id)
    try:
        moved = mover(event)
    except PastDateError as ex:
        EVENT_MOVES.labels(outcome="rejected").inc()
        logger.warning("Refused to move event %s (%s): %s", event_id, label, ex)
        raise
    updated = Event.from_row(
        store.update(EVENTS, event_id, {"scheduled_for": moved.scheduled_for.isoformat()})
    )
    EVENT_MOVES.labels(outcome="moved").inc()
    logger.info("Moved event %s (%s) from %s to %s",
                event_id, label, event.scheduled_for.isoformat(), updated.scheduled_for.isoformat())
    return updated


def reschedule(store: RecordStore, event_id: int, target: CivilDate,
               now: Optional[Instant] = None, tz: str = TZ) -> Event:
    """Move to a picked date (also used for drag and drop onto a calendar cell)."""
    return _reschedule(store, event_id, lambda e: move_event(e, target, now, tz), f"to {parse_date_key(target)}")


def reschedule_tomorrow(store: RecordStore, event_id: int,
                        now: Optional[Instant] = None, tz: str = TZ) -> Event:
    return _reschedule(
        store, event_id,
        lambda e: move_to_tomorrow(e, now, tz),
        "tomorrow",
    )


def reschedule_next_week(store: RecordStore, event_id: int,
                         now: Optional[Instant] = None, tz: str = TZ) -> Event:
    return _reschedule(
        store, event_id,
        lambda e: move_to_next_week(e, now, tz),
        "next week",
    )


def copy_event(store: RecordStore, event_id: int, target: Optional[CivilDate] = None,
               now: Optional[Instant] = None, tz: str = TZ) -> Event:
    source = get_event(store, event_id)
    draft = duplicate_event(source, target, now, tz)
    stored = Event.from_row(store.insert(EVENTS, draft.to_row())[0])
    EVENTS_CREATED.labels(kind="duplicate").inc()
    logger.info("Duplicated event %s as %s on %s", event_id, stored.id, stored.local_date(tz))
    return stored


def remove_event(store: RecordStore, event_id: int) -> List[int]:
    """
    Delete an event. Deleting a recurring parent deletes its children in the
    same atomic block; deleting a child removes only that occurrence.

    Returns the ids that were deleted.
    """
    event = get_event(store, event_id)
    removed = [event_id]
    with store.atomic():
        if event.recurrence_parent_id is None:
            for row in store.list(EVENTS, {"recurrence_parent_id": event_id}):
                store.delete(EVENTS, row["id"])
                removed.append(row["id"])
        store.delete(EVENTS, event_id)
    logger.info("Deleted event %s and %d child occurrence(s)", event_id, len(removed) - 1)
    return removed
