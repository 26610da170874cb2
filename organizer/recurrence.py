# organizer/recurrence.py
import logging
from dataclasses import replace
from datetime import date, timedelta
from typing import List, Optional

from .dates import (
    TZ, WEEKDAYS, combine_local, compute_week_window, date_key, local_date,
    local_time_of_day, parse_date_key, parse_instant, weekday_index,
)
from .errors import InvalidInstantError, RecurrenceError, ValidationError
from .models import END_TYPES, RECURRENCE_KINDS, Event, RecurrenceRule

logger = logging.getLogger(__name__)

STEP_DAYS = {"weekly": 7, "every4weeks": 28}


def validate_rule(rule: RecurrenceRule) -> RecurrenceRule:
    """Return a normalized copy of `rule` or raise RecurrenceError."""
    if rule.kind not in RECURRENCE_KINDS:
        raise RecurrenceError(f"Unknown recurrence kind: {rule.kind!r}")
    if rule.kind == "none":
        return rule
    if rule.end_type not in END_TYPES:
        raise RecurrenceError(f"Unknown end type: {rule.end_type!r}")
    if not isinstance(rule.interval, int) or rule.interval < 1:
        raise RecurrenceError(f"Interval must be a positive integer, got {rule.interval!r}")

    try:
        indexes = sorted({weekday_index(d) for d in rule.days})
    except ValidationError as ex:
        raise RecurrenceError(str(ex)) from ex
    days = tuple(WEEKDAYS[i] for i in indexes)
    end_date = _parse_end_date(rule.end_date)
    if rule.kind == "weekly" and not days:
        # generates nothing, so the termination is irrelevant
        return replace(rule, days=(), end_date=end_date)

    count = rule.count
    if rule.end_type == "date":
        if end_date is None:
            raise RecurrenceError("An end date is required when the series ends by date")
    else:
        if not isinstance(count, int) or isinstance(count, bool) or count < 1:
            raise RecurrenceError(f"Occurrence count must be a positive integer, got {count!r}")

    return replace(rule, days=days, end_date=end_date, count=count)


def _parse_end_date(value) -> Optional[date]:
    if value is None:
        return None
    try:
        return parse_date_key(value)
    except ValidationError as ex:
        raise RecurrenceError(str(ex)) from ex


def stop_date(parent_date: date, rule: RecurrenceRule) -> date:
    """
    Last civil date the generator may visit.

    For count-bounded rules this is only a cap on the loop; the occurrence
    counter decides where the series actually ends.
    """
    if rule.end_type == "date":
        return rule.end_date
    step = STEP_DAYS[rule.kind] * rule.interval
    return parent_date + timedelta(days=rule.count * step)


def _weekly_dates(parent_date: date, rule: RecurrenceRule, last: date, limit: Optional[int]) -> List[date]:
    offsets = [weekday_index(d) for d in rule.days]
    step = timedelta(days=7 * rule.interval)
    week_start = compute_week_window(parent_date).start
    out: List[date] = []
    while week_start <= last:
        for offset in offsets:
            day = week_start + timedelta(days=offset)
            # the parent already occupies its own date
            if day <= parent_date or day > last:
                continue
            if limit is not None and len(out) >= limit:
                return out
            out.append(day)
        if limit is not None and len(out) >= limit:
            break
        week_start += step
    return out


def _every4weeks_dates(parent_date: date, rule: RecurrenceRule, last: date, limit: Optional[int]) -> List[date]:
    step = timedelta(days=28 * rule.interval)
    out: List[date] = []
    day = parent_date + step
    while day <= last:
        if limit is not None and len(out) >= limit:
            break
        out.append(day)
        day += step
    return out


def occurrence_dates(parent_date: date, rule: RecurrenceRule) -> List[date]:
    """Civil dates of the children (the parent's own date excluded), ascending."""
    rule = validate_rule(rule)
    if rule.kind == "none":
        return []
    if rule.kind == "weekly" and not rule.days:
        return []
    last = stop_date(parent_date, rule)
    limit = rule.count - 1 if rule.end_type == "count" else None
    if rule.kind == "weekly":
        return _weekly_dates(parent_date, rule, last, limit)
    return _every4weeks_dates(parent_date, rule, last, limit)


def expand(parent: Event, rule: RecurrenceRule, tz: str = TZ) -> List[Event]:
    """
    Build the child events for a freshly created recurring parent.

    Pure: the parent's own date is the only origin, no clock is read. Either
    every child is valid or RecurrenceError is raised; a partial batch is
    never returned.
    """
    rule = validate_rule(rule)
    if rule.kind == "none":
        return []
    if parent.id is None:
        raise RecurrenceError("Parent event must be stored before its series is expanded")
    try:
        parent_date = local_date(parent.scheduled_for, tz)
        time_of_day = local_time_of_day(parent.scheduled_for, tz)
    except InvalidInstantError as ex:
        raise RecurrenceError(f"Parent event has no valid instant: {ex}") from ex

    dates = occurrence_dates(parent_date, rule)
    children = [
        replace(
            parent,
            id=None,
            scheduled_for=combine_local(day, time_of_day, tz),
            recurrence_parent_id=parent.id,
            created_at=None,
            **rule_fields(rule),
        )
        for day in dates
    ]
    _check_batch(children)
    logger.debug("Expanded %s rule for event %s into %d children", rule.kind, parent.id, len(children))
    return children


def _check_batch(children: List[Event]) -> None:
    for child in children:
        try:
            parse_instant(child.scheduled_for)
        except InvalidInstantError as ex:
            raise RecurrenceError(f"Generated occurrence has an invalid instant: {ex}") from ex


def rule_fields(rule: RecurrenceRule) -> dict:
    """Event columns that carry a copy of `rule`."""
    return {
        "recurrence_type": rule.kind,
        "recurrence_interval": rule.interval,
        "recurrence_end_date": date_key(rule.end_date) if rule.end_type == "date" and rule.end_date else None,
        "recurrence_count": rule.count if rule.end_type == "count" else None,
        "recurrence_days": tuple(rule.days) if rule.kind == "weekly" else (),
    }


def rule_from_event(event: Event) -> RecurrenceRule:
    if event.recurrence_type == "none":
        return RecurrenceRule()
    if event.recurrence_count is not None:
        return RecurrenceRule(
            kind=event.recurrence_type, days=tuple(event.recurrence_days), end_type="count",
            count=int(event.recurrence_count), interval=event.recurrence_interval,
        )
    end = parse_date_key(event.recurrence_end_date) if event.recurrence_end_date else None
    return RecurrenceRule(
        kind=event.recurrence_type, days=tuple(event.recurrence_days), end_type="date",
        end_date=end, interval=event.recurrence_interval,
    )


def describe_rule(rule: RecurrenceRule) -> str:
    if rule.kind == "none":
        return "Does not repeat"
    if rule.kind == "weekly":
        every = "Weekly" if rule.interval == 1 else f"Every {rule.interval} weeks"
        days = ", ".join(WEEKDAYS[weekday_index(d)][:3].title() for d in rule.days) or "no days"
        head = f"{every} on {days}"
    else:
        head = "Every 4 weeks" if rule.interval == 1 else f"Every {4 * rule.interval} weeks"
    if rule.end_type == "count" and rule.count:
        return f"{head}, {rule.count} times"
    if rule.end_date:
        return f"{head} until {parse_date_key(rule.end_date).isoformat()}"
    return head
