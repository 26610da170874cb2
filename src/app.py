import streamlit as st
import pandas as pd
from datetime import datetime, timedelta

from streamlit_calendar import calendar

from organizer.board import (
    DAY_LABELS, DAYS, add_task, delete_task, edit_task, group_tasks_by_day, list_folders,
    load_dashboard_settings, tasks_for_week, toggle_complete,
)
from organizer.config import configure_logging, load_settings
from organizer.dates import compute_week_window, is_past_event, parse_date_key, today
from organizer.errors import OrganizerError
from organizer.metrics import start_metrics_server
from organizer.models import PRIORITIES, RecurrenceRule
from organizer.organizer import (
    copy_event, create_event, events_in_week, remove_event, reschedule,
    reschedule_next_week, reschedule_tomorrow,
)
from organizer.recurrence import describe_rule, rule_from_event
from organizer.store import SqliteRecordStore


# Session State Setup
if "settings" not in st.session_state:
    st.session_state.settings = load_settings()
    configure_logging(st.session_state.settings.log_level)
SETTINGS = st.session_state.settings
TZ = SETTINGS.tz


@st.cache_resource
def get_store(db_path: str) -> SqliteRecordStore:
    return SqliteRecordStore(db_path)


STORE = get_store(SETTINGS.db_path)

# Metrics endpoint only once per process
start_metrics_server(SETTINGS.metrics_port)

if "week_ref" not in st.session_state:
    st.session_state.week_ref = today(tz=TZ)

if "handled_change" not in st.session_state:
    st.session_state.handled_change = None

if "editing_task" not in st.session_state:
    st.session_state.editing_task = None


def run_action(action, success: str) -> None:
    """Run a store mutation; refusals are shown, not raised."""
    try:
        action()
    except (OrganizerError, ValueError) as ex:
        st.error(str(ex))
    else:
        st.success(success)
        st.rerun()


# Sidebar: Inputs
dash = load_dashboard_settings(STORE)
st.sidebar.title("Life Command Center")
st.sidebar.caption(dash.header_words)

st.sidebar.subheader("Week")
picked = st.sidebar.date_input("Week of", value=st.session_state.week_ref)
st.session_state.week_ref = picked
WEEK = compute_week_window(picked, TZ)
st.sidebar.write(f"{WEEK.start:%a %b %d} – {WEEK.end:%a %b %d}")

# Add Event
st.sidebar.subheader("Add Event")
with st.sidebar.form("event_form"):
    ev_title = st.text_input("Title")
    ev_desc = st.text_area("Description", "")
    ev_folder = st.text_input("Folder", "")
    ev_date = st.date_input("Date", value=today(tz=TZ))
    ev_time = st.time_input("Time", value=datetime.strptime("09:00", "%H:%M").time())
    ev_kind = st.selectbox("Repeat", ["none", "weekly", "every4weeks"],
                           format_func=lambda k: {"none": "Does not repeat", "weekly": "Weekly",
                                                  "every4weeks": "Every 4 weeks"}[k])
    ev_days = st.multiselect("On days (weekly)", list(DAYS[:7]), format_func=lambda d: DAY_LABELS[d])
    ev_end_type = st.radio("Ends", ["date", "count"], horizontal=True)
    ev_end_date = st.date_input("End date", value=WEEK.end + timedelta(days=28))
    ev_count = st.number_input("Occurrences", min_value=1, max_value=104, value=4)
    add_event = st.form_submit_button("Add Event")
    if add_event:
        rule = RecurrenceRule(
            kind=ev_kind,
            days=tuple(ev_days),
            end_type=ev_end_type,
            end_date=ev_end_date if ev_end_type == "date" else None,
            count=int(ev_count) if ev_end_type == "count" else None,
        )
        run_action(
            lambda: create_event(STORE, ev_title, ev_date, ev_time.strftime("%H:%M"), rule,
                                 description=ev_desc or None, folder=ev_folder or None, tz=TZ),
            "Event added.",
        )


# Main: Calendar
st.title("Family Calendar")
st.caption(dash.vision_statement)

week_events = events_in_week(STORE, WEEK.start, TZ)
now = pd.Timestamp.now(tz="UTC")


def event_color(ev) -> str:
    if is_past_event(ev, now, TZ, SETTINGS.default_cutoff):
        return "#7f7f7f"   # grey
    if ev.recurrence_type != "none":
        return "#1f77b4"   # blue
    return "#2ca02c"       # green


cal_events = [{
    "title": ev.title,
    # naive wall-clock time, so the browser shows New York time as-is
    "start": ev.scheduled_for.tz_convert(TZ).tz_localize(None).isoformat(),
    "id": str(ev.id),
    "color": event_color(ev),
} for ev in week_events]

cal_options = {
    "initialView": "timeGridWeek",
    "initialDate": WEEK.start.isoformat(),
    "slotMinTime": "06:00:00",
    "slotMaxTime": "23:00:00",
    "allDaySlot": False,
    "nowIndicator": True,
    "editable": True,
    "firstDay": 1,  # Monday
}

state = calendar(events=cal_events, options=cal_options, callbacks=["eventChange"], key="calendar")

# Drag and drop onto another day
change = (state or {}).get("eventChange")
if change and change != st.session_state.handled_change:
    st.session_state.handled_change = change
    dropped = change.get("event", {})
    run_action(
        lambda: reschedule(STORE, int(dropped["id"]), parse_date_key(dropped["start"][:10]), tz=TZ),
        "Event moved.",
    )


# Event actions
st.markdown("### This week's events")
if not week_events:
    st.info("No events this week. Add one from the sidebar.")
for ev in week_events:
    with st.expander(f'{ev.local_date(TZ):%a %m/%d} {ev.local_time(TZ)}  {ev.title}'):
        if ev.description:
            st.write(ev.description)
        if ev.folder:
            st.caption(f"Folder: {ev.folder}")
        if ev.recurrence_type != "none":
            st.caption(describe_rule(rule_from_event(ev)))
        c1, c2, c3, c4, c5 = st.columns(5)
        if c1.button("Tomorrow", key=f"tmr{ev.id}"):
            run_action(lambda: reschedule_tomorrow(STORE, ev.id, tz=TZ), "Moved to tomorrow.")
        if c2.button("Next week", key=f"nxt{ev.id}"):
            run_action(lambda: reschedule_next_week(STORE, ev.id, tz=TZ), "Moved to next week.")
        target = c3.date_input("Move to", value=ev.local_date(TZ), key=f"date{ev.id}")
        if c3.button("Move", key=f"mv{ev.id}"):
            run_action(lambda: reschedule(STORE, ev.id, target, tz=TZ), f"Moved to {target}.")
        if c4.button("Duplicate", key=f"dup{ev.id}"):
            run_action(lambda: copy_event(STORE, ev.id, target, tz=TZ), "Event duplicated.")
        if c5.button("Delete", key=f"del{ev.id}"):
            run_action(lambda: remove_event(STORE, ev.id), "Event deleted.")


# Task boards
st.markdown("---")
st.markdown("## Boards")
folder_names = [f.name for f in list_folders(STORE)]
active_folder = st.selectbox("Folder", ["All folders"] + folder_names)
active_folder = None if active_folder == "All folders" else active_folder
week_tasks = tasks_for_week(STORE, WEEK.start, TZ)
for col, board in zip(st.columns(len(SETTINGS.boards)), SETTINGS.boards):
    with col:
        st.markdown(f"### {board.title()}")
        hide = st.checkbox("Hide completed", key=f"hide{board}")
        cells = group_tasks_by_day(week_tasks, board=board, hide_completed=hide, folder=active_folder)
        for day, tasks in cells.items():
            with st.expander(f"{DAY_LABELS[day]} ({len(tasks)})"):
                for task in tasks:
                    t1, t2, t3 = st.columns([6, 1, 1])
                    done = t1.checkbox(task.title, value=task.completed, key=f"task{task.id}")
                    if done != task.completed:
                        toggle_complete(STORE, task.id)
                        st.rerun()
                    if t2.button("Edit", key=f"edit{task.id}"):
                        st.session_state.editing_task = task.id
                    if t3.button("Delete", key=f"deltask{task.id}"):
                        run_action(lambda: delete_task(STORE, task.id), "Task deleted.")

                    if st.session_state.editing_task == task.id:
                        with st.form(f"taskform{task.id}"):
                            new_title = st.text_input("Title", value=task.title)
                            new_day = st.selectbox("Day", DAYS, index=DAYS.index(task.day_of_week)
                                                   if task.day_of_week in DAYS else len(DAYS) - 1,
                                                   format_func=lambda d: DAY_LABELS[d])
                            new_priority = st.selectbox("Priority", PRIORITIES,
                                                        index=PRIORITIES.index(task.priority)
                                                        if task.priority in PRIORITIES else 0)
                            folder_options = [""] + folder_names
                            new_folder = st.selectbox("Folder", folder_options,
                                                      index=folder_options.index(task.folder)
                                                      if task.folder in folder_options else 0)
                            new_notes = st.text_area("Notes", value=task.notes or "")
                            if st.form_submit_button("Save"):
                                st.session_state.editing_task = None
                                run_action(lambda: edit_task(
                                    STORE, task.id, title=new_title, day_of_week=new_day,
                                    priority=new_priority, folder=new_folder or None,
                                    notes=new_notes or None,
                                ), "Task saved.")

                title = st.text_input("Add item...", key=f"new{board}{day}", label_visibility="collapsed",
                                      placeholder="+ Add item...")
                if st.button("Add", key=f"add{board}{day}") and title:
                    run_action(lambda: add_task(STORE, title, board, day, WEEK.start, tz=TZ), "Task added.")
