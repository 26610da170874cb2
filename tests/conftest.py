"""
Test configuration: repo root on sys.path, shared stores and a fixed clock.

Nothing under tests/ reads the wall clock; every "now" is passed in.
"""

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from organizer.store import InMemoryRecordStore, SqliteRecordStore  # noqa: E402
from tests.helpers import ny  # noqa: E402


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def sqlite_store(tmp_path):
    s = SqliteRecordStore(str(tmp_path / "organizer.db"))
    yield s
    s.close()


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryRecordStore()
        return
    s = SqliteRecordStore(str(tmp_path / "organizer.db"))
    yield s
    s.close()


@pytest.fixture
def now():
    """Monday 2024-06-10, noon in New York."""
    return ny("2024-06-10 12:00")
