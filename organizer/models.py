# organizer/models.py
from dataclasses import asdict, dataclass, fields
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .dates import TZ, local_date, local_time_of_day, parse_instant

RECURRENCE_KINDS = ("none", "weekly", "every4weeks")
END_TYPES = ("date", "count")
PRIORITIES = ("none", "low", "medium", "high")

# Record-store collections
EVENTS = "posts"
TASKS = "tasks"
FOLDERS = "folders"
NOTES = "weekly_notes"
SETTINGS = "dashboard_settings"


class _Row:
    """Plain dataclass <-> store row conversion for the flat CRUD records."""

    def to_row(self) -> Dict[str, Any]:
        row = asdict(self)
        if row.get("id") is None:
            row.pop("id", None)
        return row

    @classmethod
    def from_row(cls, row: Dict[str, Any]):
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in row.items() if k in names})


@dataclass
class RecurrenceRule:
    kind: str = "none"                        # none | weekly | every4weeks
    days: Tuple[str, ...] = ()                # weekday labels, weekly only
    end_type: str = "date"                    # date | count
    end_date: Optional[date] = None           # inclusive
    count: Optional[int] = None               # total occurrences incl. the parent
    interval: int = 1


@dataclass
class Event:
    title: str
    scheduled_for: pd.Timestamp               # authoritative UTC instant
    description: Optional[str] = None
    folder: Optional[str] = None
    id: Optional[int] = None
    end_time: Optional[str] = None            # civil HH:MM, not persisted
    all_day: bool = False
    recurrence_type: str = "none"
    recurrence_interval: int = 1
    recurrence_end_date: Optional[str] = None
    recurrence_count: Optional[int] = None
    recurrence_days: Tuple[str, ...] = ()
    recurrence_parent_id: Optional[int] = None
    created_at: Optional[str] = None

    def local_date(self, tz: str = TZ) -> date:
        return local_date(self.scheduled_for, tz)

    def local_time(self, tz: str = TZ) -> str:
        return local_time_of_day(self.scheduled_for, tz)

    @property
    def is_recurring_parent(self) -> bool:
        return self.recurrence_type != "none" and self.recurrence_parent_id is None

    @property
    def is_recurring_child(self) -> bool:
        return self.recurrence_parent_id is not None

    def to_row(self) -> Dict[str, Any]:
        row = {
            "title": self.title,
            "description": self.description,
            "folder": self.folder,
            "scheduled_for": parse_instant(self.scheduled_for).isoformat(),
            "all_day": bool(self.all_day),
            "recurrence_type": self.recurrence_type,
            "recurrence_interval": self.recurrence_interval,
            "recurrence_end_date": self.recurrence_end_date,
            "recurrence_count": self.recurrence_count,
            "recurrence_days": list(self.recurrence_days),
            "recurrence_parent_id": self.recurrence_parent_id,
            "created_at": self.created_at,
        }
        if self.id is not None:
            row["id"] = self.id
        return row

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Event":
        return cls(
            id=row.get("id"),
            title=row.get("title") or "",
            description=row.get("description", row.get("content")),
            folder=row.get("folder"),
            scheduled_for=parse_instant(row.get("scheduled_for")),
            all_day=bool(row.get("all_day", False)),
            recurrence_type=row.get("recurrence_type") or "none",
            recurrence_interval=int(row.get("recurrence_interval") or 1),
            recurrence_end_date=row.get("recurrence_end_date"),
            recurrence_count=row.get("recurrence_count"),
            recurrence_days=tuple(row.get("recurrence_days") or ()),
            recurrence_parent_id=row.get("recurrence_parent_id"),
            created_at=row.get("created_at"),
        )


@dataclass
class Task(_Row):
    title: str
    board: str = ""
    day_of_week: str = "overflow"             # monday..sunday | overflow
    week_start: Optional[str] = None          # week key
    id: Optional[int] = None
    description: Optional[str] = None
    folder: Optional[str] = None
    priority: str = "none"
    completed: bool = False
    notes: Optional[str] = None
    sort_order: int = 0
    created_at: Optional[str] = None


@dataclass
class Folder(_Row):
    name: str
    color: str = "#476EAE"
    id: Optional[int] = None
    description: Optional[str] = None
    sort_order: int = 0


@dataclass
class WeeklyNote(_Row):
    content: str
    author: str
    week_start: str
    id: Optional[int] = None
    seen: bool = False
    created_at: Optional[str] = None


@dataclass
class DashboardSettings(_Row):
    id: int = 1
    vision_statement: str = (
        "Living with purpose, intention, love, and calm. Building wealth, deep "
        "connections, and time freedom while raising boys into confident, disciplined men."
    )
    header_words: str = "FAMILY · WEALTH · LOVE · CONNECTION · HEALTH · PEACE · HAPPINESS"
    profile_image_url: Optional[str] = None


def events_from_rows(rows: List[Dict[str, Any]]) -> List[Event]:
    return [Event.from_row(r) for r in rows]
