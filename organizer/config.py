# organizer/config.py
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple

import pandas as pd

DEFAULT_TZ = "America/New_York"
DEFAULT_DB_PATH = str(Path(__file__).resolve().parent.parent / "data" / "organizer.db")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Settings:
    tz: str = DEFAULT_TZ
    db_path: str = DEFAULT_DB_PATH
    metrics_port: int = 0             # 0 disables the prometheus endpoint
    log_level: str = "INFO"
    default_cutoff: str = "12:00"     # past/future boundary for events without a time
    boards: Tuple[str, ...] = ("jaclyn", "river")


def _validate_tz(name: str) -> str:
    try:
        pd.Timestamp("2000-01-01").tz_localize(name)
    except Exception as ex:
        raise ValueError(f"Invalid timezone identifier: {name!r}") from ex
    return name


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from ORGANIZER_* environment variables.

    Unset variables keep their defaults; malformed values raise ValueError.
    """
    env = os.environ if environ is None else environ
    settings = Settings()

    tz = env.get("ORGANIZER_TZ", "").strip()
    if tz:
        settings.tz = _validate_tz(tz)

    db_path = env.get("ORGANIZER_DB_PATH", "").strip()
    if db_path:
        settings.db_path = db_path

    port = env.get("ORGANIZER_METRICS_PORT", "").strip()
    if port:
        try:
            settings.metrics_port = int(port)
        except ValueError as ex:
            raise ValueError(f"ORGANIZER_METRICS_PORT must be an integer, got {port!r}") from ex
        if not 0 <= settings.metrics_port <= 65535:
            raise ValueError(f"ORGANIZER_METRICS_PORT out of range: {settings.metrics_port}")

    level = env.get("ORGANIZER_LOG_LEVEL", "").strip().upper()
    if level:
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {level!r}")
        settings.log_level = level

    boards = env.get("ORGANIZER_BOARDS", "").strip()
    if boards:
        names = tuple(b.strip().lower() for b in boards.split(",") if b.strip())
        if not names:
            raise ValueError("ORGANIZER_BOARDS must name at least one board")
        settings.boards = names

    return settings


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
