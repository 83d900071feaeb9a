"""Where the tracker keeps its database, settings and logs.

Data, config and logs live in the platform's per-user directories. Setting
``DEV_TIME_TRACKER_HOME`` puts all three under one directory instead, which is
how a portable install or a throwaway test profile is run.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from platformdirs import PlatformDirs


APP_NAME = "DevTimeTracker"
APP_AUTHOR = "DevTimeTracker"
HOME_ENV_VAR = "DEV_TIME_TRACKER_HOME"

DB_FILENAME = "usage.sqlite3"
CONFIG_FILENAME = "config.json"
LOG_FILENAME = "tracker.log"


def _platform_dirs() -> PlatformDirs:
    return PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)


def _home_override() -> Optional[Path]:
    value = os.environ.get(HOME_ENV_VAR, "").strip()
    return Path(value).expanduser() if value else None


def _ensure(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the directory holding the usage database."""
    home = _home_override()
    return _ensure(home if home else Path(_platform_dirs().user_data_path))


def get_config_dir() -> Path:
    home = _home_override()
    return _ensure(home if home else Path(_platform_dirs().user_config_path))


def get_log_dir() -> Path:
    home = _home_override()
    return _ensure(home / "logs" if home else Path(_platform_dirs().user_log_path))


def get_db_path() -> Path:
    return get_data_dir() / DB_FILENAME


def get_config_path() -> Path:
    return get_config_dir() / CONFIG_FILENAME


def get_log_path() -> Path:
    return get_log_dir() / LOG_FILENAME
