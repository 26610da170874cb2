"""
Tests for environment-driven settings.
"""

import pytest

from organizer.config import DEFAULT_DB_PATH, DEFAULT_TZ, load_settings


def test_defaults():
    settings = load_settings({})
    assert settings.tz == DEFAULT_TZ == "America/New_York"
    assert settings.db_path == DEFAULT_DB_PATH
    assert settings.metrics_port == 0
    assert settings.log_level == "INFO"
    assert settings.boards == ("jaclyn", "river")


def test_overrides():
    settings = load_settings({
        "ORGANIZER_TZ": "Europe/London",
        "ORGANIZER_DB_PATH": "/tmp/family.db",
        "ORGANIZER_METRICS_PORT": "9102",
        "ORGANIZER_LOG_LEVEL": "debug",
        "ORGANIZER_BOARDS": "Mom, Dad ,,kids",
    })
    assert settings.tz == "Europe/London"
    assert settings.db_path == "/tmp/family.db"
    assert settings.metrics_port == 9102
    assert settings.log_level == "DEBUG"
    assert settings.boards == ("mom", "dad", "kids")


def test_blank_values_keep_defaults():
    settings = load_settings({"ORGANIZER_TZ": "  ", "ORGANIZER_METRICS_PORT": ""})
    assert settings.tz == DEFAULT_TZ
    assert settings.metrics_port == 0


@pytest.mark.parametrize("env", [
    {"ORGANIZER_TZ": "Mars/Olympus_Mons"},
    {"ORGANIZER_METRICS_PORT": "http"},
    {"ORGANIZER_METRICS_PORT": "70000"},
    {"ORGANIZER_LOG_LEVEL": "chatty"},
    {"ORGANIZER_BOARDS": " , ,"},
])
def test_malformed_values(env):
    with pytest.raises(ValueError):
        load_settings(env)
