import pandas as pd

from organizer.dates import combine_local
from organizer.models import Event

NY = "America/New_York"


def ny(text: str) -> pd.Timestamp:
    """Wall-clock time in New York, e.g. ny('2024-06-10 12:00')."""
    return pd.Timestamp(text).tz_localize(NY)


def make_event(day: str, time_of_day: str = "09:00", **kw) -> Event:
    kw.setdefault("title", "Practice")
    return Event(scheduled_for=combine_local(day, time_of_day, NY), **kw)
