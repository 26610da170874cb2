# main.py
import pandas as pd

from organizer.config import configure_logging
from organizer.dates import compute_week_window
from organizer.errors import PastDateError
from organizer.models import RecurrenceRule
from organizer.organizer import create_event, events_in_week, reschedule, reschedule_next_week, series
from organizer.store import InMemoryRecordStore


def events_frame(events, tz):
    return pd.DataFrame([{
        "id": e.id,
        "title": e.title,
        "date": e.local_date(tz),
        "time": e.local_time(tz),
        "utc": e.scheduled_for,
        "parent": e.recurrence_parent_id,
    } for e in events], columns=["id", "title", "date", "time", "utc", "parent"])


def main():
    TZ = "America/New_York"
    configure_logging("INFO")

    # Fixed "now" so the demo is reproducible
    now = pd.Timestamp("2024-06-03 08:00").tz_localize(TZ)
    store = InMemoryRecordStore()

    parent, children = create_event(
        store,
        title="Practice",
        day="2024-06-03",
        time_of_day="18:00",
        rule=RecurrenceRule(kind="weekly", days=("monday", "wednesday"), end_type="count", count=6),
        folder="Kids Sports",
        now=now,
        tz=TZ,
    )

    print("=== Series ===")
    print(events_frame(series(store, parent.id), TZ))

    week = compute_week_window(now, TZ)
    print(f"\n=== Week of {week.week_key} ===")
    print(events_frame(events_in_week(store, now, TZ), TZ))

    moved = reschedule_next_week(store, children[0].id, now=now, tz=TZ)
    print(f"\nMoved {moved.title} #{moved.id} to {moved.local_date(TZ)} {moved.local_time(TZ)}")

    try:
        reschedule(store, parent.id, "2024-06-01", now=now, tz=TZ)
    except PastDateError as ex:
        print(f"Refused: {ex}")


if __name__ == "__main__":
    main()
