# organizer/store.py
"""
Record store: named collections of dict rows with integer ids.

RecordStore is the only persistence seam the organizer talks to. Two
implementations ship here: an in-memory store for tests and demos, and a
SQLite store (one JSON document per row) for the dashboard.
"""
import copy
import json
import logging
import re
import sqlite3
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Union

import pandas as pd

from .errors import RecordNotFoundError, ValidationError

logger = logging.getLogger(__name__)

Row = Dict[str, Any]
Filters = Optional[Mapping[str, Any]]
Ranges = Optional[Mapping[str, Tuple[Any, Any]]]   # column -> half-open [low, high)

_SAFE_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_identifier(name: str) -> str:
    if not isinstance(name, str) or not _SAFE_IDENTIFIER_RE.match(name):
        raise ValidationError(f"Invalid identifier: {name!r}")
    return name


@dataclass(frozen=True)
class ChangeEvent:
    collection: str
    action: str      # insert | update | delete
    row: Row


Listener = Callable[[ChangeEvent], None]


class RecordStore(ABC):
    """
    CRUD over named collections plus change subscriptions.

    Writes made inside `atomic()` commit together or not at all; change
    notifications for them fire only after the commit.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._depth = 0
        self._pending: List[ChangeEvent] = []

    # -------------------- abstract storage --------------------
    @abstractmethod
    def list(self, collection: str, filters: Filters = None, order_by: Optional[str] = None,
             ranges: Ranges = None) -> List[Row]:
        """Equality `filters` plus half-open `ranges`; rows missing a ranged column are excluded."""
        ...

    @abstractmethod
    def get(self, collection: str, record_id: int) -> Row:
        ...

    @abstractmethod
    def _insert_one(self, collection: str, row: Row) -> Row:
        ...

    @abstractmethod
    def update(self, collection: str, record_id: int, patch: Mapping[str, Any]) -> Row:
        ...

    @abstractmethod
    def delete(self, collection: str, record_id: int) -> None:
        ...

    @abstractmethod
    def _begin(self) -> None:
        ...

    @abstractmethod
    def _commit(self) -> None:
        ...

    @abstractmethod
    def _rollback(self) -> None:
        ...

    # -------------------- shared behaviour --------------------
    def insert(self, collection: str, rows: Union[Row, List[Row]]) -> List[Row]:
        """Insert one row or a batch. A batch is inserted atomically."""
        validate_identifier(collection)
        batch = [rows] if isinstance(rows, Mapping) else list(rows)
        for row in batch:
            if not isinstance(row, Mapping):
                raise ValidationError(f"{collection}: rows must be mappings, got {type(row).__name__}")
        with self.atomic():
            inserted = [self._insert_one(collection, _stamp(row)) for row in batch]
        logger.debug("%s: inserted %d row(s)", collection, len(inserted))
        return inserted

    def first(self, collection: str, filters: Filters = None) -> Optional[Row]:
        rows = self.list(collection, filters)
        return rows[0] if rows else None

    def subscribe(self, collection: str, on_change: Listener) -> Callable[[], None]:
        """Register `on_change` for a collection; returns an unsubscribe callable."""
        validate_identifier(collection)
        with self._lock:
            self._listeners[collection].append(on_change)

        def unsubscribe() -> None:
            with self._lock:
                if on_change in self._listeners[collection]:
                    self._listeners[collection].remove(on_change)

        return unsubscribe

    @contextmanager
    def atomic(self) -> Iterator["RecordStore"]:
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self._begin()
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if outermost:
                    self._rollback()
                    dropped, self._pending = self._pending, []
                    logger.debug("Rolled back transaction, dropped %d change(s)", len(dropped))
                raise
            self._depth -= 1
            if outermost:
                self._commit()
                pending, self._pending = self._pending, []
                for change in pending:
                    self._dispatch(change)

    def _emit(self, collection: str, action: str, row: Row) -> None:
        change = ChangeEvent(collection, action, copy.deepcopy(row))
        if self._depth:
            self._pending.append(change)
        else:
            self._dispatch(change)

    def _dispatch(self, change: ChangeEvent) -> None:
        for listener in list(self._listeners.get(change.collection, ())):
            try:
                listener(change)
            except Exception:
                # a broken subscriber must not undo a committed write
                logger.exception("Change listener failed for %s/%s", change.collection, change.action)


def _stamp(row: Mapping[str, Any]) -> Row:
    out = dict(row)
    if not out.get("created_at"):
        out["created_at"] = pd.Timestamp.now(tz="UTC").isoformat()
    return out


def _sort_key(column: str):
    def key(row: Row):
        value = row.get(column)
        return (value is not None, value if value is not None else 0)
    return key


def _split_order(order_by: Optional[str]):
    if not order_by:
        return "id", False
    desc = order_by.startswith("-")
    return validate_identifier(order_by.lstrip("-")), desc


def _in_range(value, low, high) -> bool:
    return value is not None and low <= value < high


class InMemoryRecordStore(RecordStore):
    def __init__(self) -> None:
        super().__init__()
        self._tables: Dict[str, Dict[int, Row]] = defaultdict(dict)
        self._next_id: Dict[str, int] = defaultdict(lambda: 1)
        self._snapshot = None

    def list(self, collection: str, filters: Filters = None, order_by: Optional[str] = None,
             ranges: Ranges = None) -> List[Row]:
        validate_identifier(collection)
        for key in list(filters or {}) + list(ranges or {}):
            validate_identifier(key)
        column, desc = _split_order(order_by)
        with self._lock:
            rows = [
                copy.deepcopy(r) for r in self._tables[collection].values()
                if all(r.get(k) == v for k, v in (filters or {}).items())
                and all(_in_range(r.get(k), lo, hi) for k, (lo, hi) in (ranges or {}).items())
            ]
        rows.sort(key=_sort_key(column), reverse=desc)
        return rows

    def get(self, collection: str, record_id: int) -> Row:
        validate_identifier(collection)
        with self._lock:
            row = self._tables[collection].get(record_id)
            if row is None:
                raise RecordNotFoundError(collection, record_id)
            return copy.deepcopy(row)

    def _insert_one(self, collection: str, row: Row) -> Row:
        table = self._tables[collection]
        record_id = row.get("id")
        if record_id is None:
            record_id = self._next_id[collection]
        elif record_id in table:
            raise ValidationError(f"{collection}: duplicate id {record_id!r}")
        self._next_id[collection] = max(self._next_id[collection], int(record_id) + 1)
        stored = copy.deepcopy(row)
        stored["id"] = record_id
        table[record_id] = stored
        self._emit(collection, "insert", stored)
        return copy.deepcopy(stored)

    def update(self, collection: str, record_id: int, patch: Mapping[str, Any]) -> Row:
        validate_identifier(collection)
        with self._lock:
            table = self._tables[collection]
            if record_id not in table:
                raise RecordNotFoundError(collection, record_id)
            changes = {k: copy.deepcopy(v) for k, v in patch.items() if k != "id"}
            table[record_id].update(changes)
            self._emit(collection, "update", table[record_id])
            logger.debug("%s: updated id=%s (%s)", collection, record_id, ", ".join(sorted(changes)))
            return copy.deepcopy(table[record_id])

    def delete(self, collection: str, record_id: int) -> None:
        validate_identifier(collection)
        with self._lock:
            row = self._tables[collection].pop(record_id, None)
            if row is None:
                raise RecordNotFoundError(collection, record_id)
            self._emit(collection, "delete", row)
            logger.debug("%s: deleted id=%s", collection, record_id)

    def _begin(self) -> None:
        self._snapshot = (copy.deepcopy(self._tables), dict(self._next_id))

    def _commit(self) -> None:
        self._snapshot = None

    def _rollback(self) -> None:
        tables, next_id = self._snapshot
        self._tables = defaultdict(dict, tables)
        self._next_id = defaultdict(lambda: 1, next_id)
        self._snapshot = None


class SqliteRecordStore(RecordStore):
    """
    One table per collection, each row a JSON document keyed by an integer id.

    A single connection is shared behind the store lock; statements outside
    `atomic()` autocommit.
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        super().__init__()
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
        self._known: set = set()
        logger.info("SqliteRecordStore ready, DB path: %s", db_path)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _table(self, collection: str) -> str:
        validate_identifier(collection)
        if collection not in self._known:
            self._conn.execute(
                f'CREATE TABLE IF NOT EXISTS "{collection}" '
                "(id INTEGER PRIMARY KEY AUTOINCREMENT, data TEXT NOT NULL)"
            )
            self._known.add(collection)
        return f'"{collection}"'

    @staticmethod
    def _to_row(record_id: int, data: str) -> Row:
        row = json.loads(data)
        row["id"] = record_id
        return row

    def list(self, collection: str, filters: Filters = None, order_by: Optional[str] = None,
             ranges: Ranges = None) -> List[Row]:
        column, desc = _split_order(order_by)
        clauses, params = [], []
        for key, value in (filters or {}).items():
            if key == "id":
                clauses.append("id IS ?")
            else:
                clauses.append("json_extract(data, ?) IS ?")
                params.append(f"$.{validate_identifier(key)}")
            params.append(value)
        for key, (low, high) in (ranges or {}).items():
            if key == "id":
                clauses.append("id >= ? AND id < ?")
                params.extend([low, high])
            else:
                path = f"$.{validate_identifier(key)}"
                clauses.append("json_extract(data, ?) >= ? AND json_extract(data, ?) < ?")
                params.extend([path, low, path, high])
        with self._lock:
            sql = f"SELECT id, data FROM {self._table(collection)}"
            if clauses:
                sql += " WHERE " + " AND ".join(clauses)
            rows = [self._to_row(i, d) for i, d in self._conn.execute(sql, params).fetchall()]
        rows.sort(key=_sort_key(column), reverse=desc)
        return rows

    def get(self, collection: str, record_id: int) -> Row:
        with self._lock:
            found = self._conn.execute(
                f"SELECT id, data FROM {self._table(collection)} WHERE id = ?", [record_id]
            ).fetchone()
        if found is None:
            raise RecordNotFoundError(collection, record_id)
        return self._to_row(*found)

    def _insert_one(self, collection: str, row: Row) -> Row:
        data = {k: v for k, v in row.items() if k != "id"}
        try:
            cur = self._conn.execute(
                f"INSERT INTO {self._table(collection)} (id, data) VALUES (?, ?)",
                [row.get("id"), json.dumps(data)],
            )
        except sqlite3.IntegrityError as ex:
            raise ValidationError(f"{collection}: duplicate id {row.get('id')!r}") from ex
        stored = self._to_row(cur.lastrowid, json.dumps(data))
        self._emit(collection, "insert", stored)
        return stored

    def update(self, collection: str, record_id: int, patch: Mapping[str, Any]) -> Row:
        with self.atomic():
            row = self.get(collection, record_id)
            row.update({k: v for k, v in patch.items() if k != "id"})
            data = {k: v for k, v in row.items() if k != "id"}
            self._conn.execute(
                f"UPDATE {self._table(collection)} SET data = ? WHERE id = ?",
                [json.dumps(data), record_id],
            )
            self._emit(collection, "update", row)
        logger.debug("%s: updated id=%s", collection, record_id)
        return row

    def delete(self, collection: str, record_id: int) -> None:
        with self.atomic():
            row = self.get(collection, record_id)
            self._conn.execute(f"DELETE FROM {self._table(collection)} WHERE id = ?", [record_id])
            self._emit(collection, "delete", row)
        logger.debug("%s: deleted id=%s", collection, record_id)

    def _begin(self) -> None:
        self._conn.execute("BEGIN")

    def _commit(self) -> None:
        self._conn.execute("COMMIT")

    def _rollback(self) -> None:
        self._conn.execute("ROLLBACK")
        # CREATE TABLE is transactional too
        self._known.clear()
