from __future__ import annotations

import os
from pathlib import Path

APP_ENV_HOME = "SENTINEL_HOME"
APP_ENV_DB = "SENTINEL_DB"


def app_home() -> Path:
    """
    User-writable home for Activity Sentinel.
    Override with SENTINEL_HOME.
    """
    if os.environ.get(APP_ENV_HOME):
        return Path(os.environ[APP_ENV_HOME]).expanduser().resolve()
    return (Path.home() / ".activity_sentinel").resolve()


def data_dir() -> Path:
    d = app_home() / "data"
    d.mkdir(parents=True, exist_ok=True)
    return d


def db_path() -> Path:
    """
    Canonical DB path.

    Resolution order:
    1. SENTINEL_DB env var (explicit override)
    2. ~/.activity_sentinel/data/sentinel.db (default)
    """
    if os.environ.get(APP_ENV_DB):
        return Path(os.environ[APP_ENV_DB]).expanduser().resolve()
    return data_dir() / "sentinel.db"
