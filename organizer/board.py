# organizer/board.py
"""
Weekly task boards, weekly notes, folders and the dashboard settings row.

Tasks are placed on a board by (week key, weekday label). Anything whose
weekday label is missing or unknown is shown in the "overflow" cell.
"""
import logging
import re
from collections import OrderedDict
from datetime import date
from typing import Dict, Iterable, List, Optional

from .dates import TZ, WEEKDAYS, Instant, compute_week_window, today
from .models import FOLDERS, NOTES, PRIORITIES, SETTINGS, TASKS, DashboardSettings, Folder, Task, WeeklyNote
from .store import RecordStore

logger = logging.getLogger(__name__)

DAYS = WEEKDAYS + ("overflow",)
DAY_LABELS: Dict[str, str] = {d: d[:3].title() for d in WEEKDAYS}
DAY_LABELS["overflow"] = "Overflow"


def group_tasks_by_day(tasks: Iterable[Task],
                       board: Optional[str] = None,
                       hide_completed: bool = False,
                       folder: Optional[str] = None) -> "OrderedDict[str, List[Task]]":
    cells: "OrderedDict[str, List[Task]]" = OrderedDict((d, []) for d in DAYS)
    for task in tasks:
        if board is not None and task.board != board:
            continue
        if folder is not None and task.folder != folder:
            continue
        if hide_completed and task.completed:
            continue
        day = task.day_of_week if task.day_of_week in cells else "overflow"
        cells[day].append(task)
    for day in cells:
        cells[day].sort(key=lambda t: (t.sort_order, t.id or 0))
    return cells


def day_cell_date(reference, day: str, tz: str = TZ) -> Optional[date]:
    """Civil date of a weekday cell in the week of `reference`; None for overflow."""
    if day not in WEEKDAYS:
        return None
    return compute_week_window(reference, tz).days[WEEKDAYS.index(day)]


def tasks_for_week(store: RecordStore, reference, tz: str = TZ) -> List[Task]:
    key = compute_week_window(reference, tz).week_key
    return [Task.from_row(r) for r in store.list(TASKS, {"week_start": key}, order_by="sort_order")]


def add_task(store: RecordStore,
             title: str,
             board: str,
             day: str,
             reference=None,
             priority: str = "none",
             now: Optional[Instant] = None,
             tz: str = TZ) -> Task:
    """Add a task to a board cell of the week containing `reference` (default: this week)."""
    if not title or not title.strip():
        raise ValueError("Task title is required")
    if day not in DAYS:
        raise ValueError(f"Unknown board day: {day!r}")
    if priority not in PRIORITIES:
        raise ValueError(f"Unknown priority: {priority!r}")
    if reference is None:
        reference = today(now, tz)
    task = Task(
        title=title.strip(),
        board=board,
        day_of_week=day,
        week_start=compute_week_window(reference, tz).week_key,
        priority=priority,
    )
    stored = Task.from_row(store.insert(TASKS, task.to_row())[0])
    logger.info("Added task %s to %s/%s for week %s", stored.id, board, day, stored.week_start)
    return stored


def toggle_complete(store: RecordStore, task_id: int) -> Task:
    task = Task.from_row(store.get(TASKS, task_id))
    return Task.from_row(store.update(TASKS, task_id, {"completed": not task.completed}))


EDITABLE_TASK_FIELDS = ("title", "description", "priority", "notes", "day_of_week", "folder", "board", "sort_order")


def edit_task(store: RecordStore, task_id: int, **patch) -> Task:
    """Update a task's editable fields; unknown fields and invalid values raise ValueError."""
    unknown = sorted(set(patch) - set(EDITABLE_TASK_FIELDS))
    if unknown:
        raise ValueError(f"Cannot edit task field(s): {', '.join(unknown)}")
    if "title" in patch:
        if not patch["title"] or not patch["title"].strip():
            raise ValueError("Task title is required")
        patch["title"] = patch["title"].strip()
    if "day_of_week" in patch and patch["day_of_week"] not in DAYS:
        raise ValueError(f"Unknown board day: {patch['day_of_week']!r}")
    if "priority" in patch and patch["priority"] not in PRIORITIES:
        raise ValueError(f"Unknown priority: {patch['priority']!r}")
    updated = Task.from_row(store.update(TASKS, task_id, patch))
    logger.info("Edited task %s (%s)", task_id, ", ".join(sorted(patch)))
    return updated


def delete_task(store: RecordStore, task_id: int) -> None:
    store.delete(TASKS, task_id)
    logger.info("Deleted task %s", task_id)


def notes_for_week(store: RecordStore, reference, tz: str = TZ) -> List[WeeklyNote]:
    key = compute_week_window(reference, tz).week_key
    return [WeeklyNote.from_row(r) for r in store.list(NOTES, {"week_start": key}, order_by="created_at")]


def add_note(store: RecordStore, content: str, author: str, reference, tz: str = TZ) -> WeeklyNote:
    if not content or not content.strip():
        raise ValueError("Note content is required")
    note = WeeklyNote(content=content.strip(), author=author,
                      week_start=compute_week_window(reference, tz).week_key)
    return WeeklyNote.from_row(store.insert(NOTES, note.to_row())[0])


def mark_notes_seen(store: RecordStore, reference, author: Optional[str] = None, tz: str = TZ) -> int:
    """Mark the week's unseen notes as seen, optionally only those by `author`."""
    changed = 0
    with store.atomic():
        for note in notes_for_week(store, reference, tz):
            if note.seen or (author is not None and note.author != author):
                continue
            store.update(NOTES, note.id, {"seen": True})
            changed += 1
    return changed


def folder_slug(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


def list_folders(store: RecordStore) -> List[Folder]:
    return [Folder.from_row(r) for r in store.list(FOLDERS, order_by="sort_order")]


def find_folder_by_slug(store: RecordStore, slug: str) -> Optional[Folder]:
    for folder in list_folders(store):
        if folder_slug(folder.name) == slug:
            return folder
    return None


def load_dashboard_settings(store: RecordStore) -> DashboardSettings:
    row = store.first(SETTINGS, {"id": 1})
    if row is None:
        row = store.insert(SETTINGS, DashboardSettings().to_row())[0]
        logger.info("Created default dashboard settings")
    return DashboardSettings.from_row(row)
