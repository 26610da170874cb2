# organizer/dates.py
"""
Civil-date helpers for the organizer calendar.

Every instant is stored in UTC; everything a person sees (the date of an
event, the week it belongs to, whether it is in the past) is computed by
projecting that instant into one fixed civil timezone. All conversions go
through pandas and the IANA tz database, never fixed hour offsets.

DST policy for wall-clock times that do not map to exactly one instant:
  - fall-back repeated hour -> standard time (ambiguous=False)
  - spring-forward gap      -> first instant after the gap (shift_forward)
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple, Union

import pandas as pd

from .config import DEFAULT_TZ
from .errors import InvalidInstantError, ValidationError

TZ = DEFAULT_TZ

WEEKDAYS: Tuple[str, ...] = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

Instant = Union[str, datetime, pd.Timestamp]
CivilDate = Union[str, date]


@dataclass(frozen=True)
class WeekWindow:
    days: Tuple[date, ...]   # Monday..Sunday
    week_key: str            # Monday as YYYY-MM-DD

    @property
    def start(self) -> date:
        return self.days[0]

    @property
    def end(self) -> date:
        return self.days[-1]

    def contains(self, day: CivilDate) -> bool:
        return self.start <= parse_date_key(day) <= self.end

    def day_keys(self) -> List[str]:
        return [d.isoformat() for d in self.days]


# ---------------------------------------------------------------------------
# parsing

def parse_instant(value: Instant) -> pd.Timestamp:
    """Parse a stored instant into a UTC Timestamp. Naive values are read as UTC."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidInstantError("Instant is empty")
    try:
        ts = pd.Timestamp(value)
    except (ValueError, TypeError, OverflowError) as ex:
        raise InvalidInstantError(f"Malformed instant: {value!r}") from ex
    if pd.isna(ts):
        raise InvalidInstantError(f"Malformed instant: {value!r}")
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


def parse_date_key(value: CivilDate) -> date:
    """Accept a date, a datetime (its date part) or a YYYY-MM-DD string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and _DATE_KEY_RE.match(value.strip()):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as ex:
            raise ValidationError(f"Invalid date: {value!r}") from ex
    raise ValidationError(f"Expected a YYYY-MM-DD date, got {value!r}")


def parse_time_of_day(value: Union[str, time]) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if isinstance(value, str):
        parts = value.strip().split(":")
        if len(parts) in (2, 3) and all(p.isdigit() for p in parts):
            hh, mm = int(parts[0]), int(parts[1])
            if 0 <= hh <= 23 and 0 <= mm <= 59:
                return time(hh, mm)
    raise ValidationError(f"Expected an HH:MM time, got {value!r}")


def date_key(value: CivilDate) -> str:
    return parse_date_key(value).isoformat()


# ---------------------------------------------------------------------------
# projection

def now_utc() -> pd.Timestamp:
    return pd.Timestamp.now(tz="UTC")


def to_local(instant: Instant, tz: str = TZ) -> pd.Timestamp:
    return parse_instant(instant).tz_convert(tz)


def local_date(instant: Instant, tz: str = TZ) -> date:
    return to_local(instant, tz).date()


def local_time_of_day(instant: Instant, tz: str = TZ) -> str:
    return to_local(instant, tz).strftime("%H:%M")


def combine_local(day: CivilDate, time_of_day: Union[str, time], tz: str = TZ) -> pd.Timestamp:
    """
    Interpret (civil date, wall-clock time) in `tz` and return the UTC instant.

    The UTC offset is derived for `day` itself, so the same wall-clock time on
    either side of a DST transition maps to different offsets.
    """
    naive = pd.Timestamp(datetime.combine(parse_date_key(day), parse_time_of_day(time_of_day)))
    local = naive.tz_localize(tz, ambiguous=False, nonexistent="shift_forward")
    return local.tz_convert("UTC")


def add_days(day: CivilDate, days: int) -> date:
    # civil arithmetic: no DST skew
    return parse_date_key(day) + timedelta(days=days)


def weekday_label(day: CivilDate) -> str:
    return WEEKDAYS[parse_date_key(day).weekday()]


def weekday_index(label: str) -> int:
    """Map 'monday'/'Mon'/'MO'-style labels to 0..6 (Monday=0)."""
    key = str(label).strip().lower()
    for idx, name in enumerate(WEEKDAYS):
        if key == name or (len(key) >= 2 and name.startswith(key)):
            return idx
    raise ValidationError(f"Unknown weekday: {label!r}")


# ---------------------------------------------------------------------------
# weeks and "today"

def _civil_reference(reference: Union[Instant, date], tz: str) -> date:
    if isinstance(reference, date) and not isinstance(reference, datetime):
        return reference
    if isinstance(reference, str) and _DATE_KEY_RE.match(reference.strip()):
        return parse_date_key(reference)
    return local_date(reference, tz)


def compute_week_window(reference: Union[Instant, date], tz: str = TZ) -> WeekWindow:
    """
    Return the Monday..Sunday civil week containing `reference`.

    `reference` may be an instant (projected into `tz`) or a civil date.
    """
    day = _civil_reference(reference, tz)
    # Python weekday() is already "days since Monday" (Sunday -> 6)
    monday = day - timedelta(days=day.weekday())
    days = tuple(monday + timedelta(days=i) for i in range(7))
    return WeekWindow(days=days, week_key=monday.isoformat())


def week_key(reference: Union[Instant, date], tz: str = TZ) -> str:
    return compute_week_window(reference, tz).week_key


def today(now: Optional[Instant] = None, tz: str = TZ) -> date:
    return local_date(now if now is not None else now_utc(), tz)


def today_key(now: Optional[Instant] = None, tz: str = TZ) -> str:
    return today(now, tz).isoformat()


def is_past_day(day: CivilDate, now: Optional[Instant] = None, tz: str = TZ) -> bool:
    # zero-padded keys compare correctly as strings
    return date_key(day) < today_key(now, tz)


def is_past_event(event, now: Optional[Instant] = None, tz: str = TZ, cutoff: str = "12:00") -> bool:
    """
    True once local "now" passes the event's end time, else its start time.

    All-day events (no time of day) stay current until `cutoff` on their date.
    """
    now_local = to_local(now if now is not None else now_utc(), tz)
    event_day = local_date(event.scheduled_for, tz)
    if getattr(event, "end_time", None):
        boundary = event.end_time
    elif not getattr(event, "all_day", False):
        boundary = local_time_of_day(event.scheduled_for, tz)
    else:
        boundary = cutoff
    limit = pd.Timestamp(datetime.combine(event_day, parse_time_of_day(boundary)))
    return now_local.tz_localize(None) > limit
