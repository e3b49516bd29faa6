"""
Structured logging for the daemon.

Every formatter stamps the active cycle id (see context.CycleContext), so the
lines of one detect + sweep pass can be grepped together. The id lives in a
contextvar of the scheduler thread; lines logged by the alert worker thread
carry no cycle id.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from .context import get_cycle_id

# Attributes every LogRecord carries; anything else arrived through extra=
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}

# Third-party loggers that are noisy at INFO
_QUIET_LOGGERS = ("httpx", "httpcore")


def _timestamp(record: logging.LogRecord) -> str:
    created = datetime.fromtimestamp(record.created, tz=timezone.utc)
    return created.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line:

        {"timestamp": "2026-01-05T09:00:00.000Z", "level": "WARNING",
         "logger": "sentinel.alerts", "thread": "alert-publisher",
         "message": "SECURITY ALERT: escalated ...", "cycle_id": "cyc-3-1a2b3c4d",
         "alert": {...}}
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        cycle_id = get_cycle_id()
        if cycle_id:
            payload["cycle_id"] = cycle_id
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        payload.update(
            (key, value) for key, value in vars(record).items() if key not in _STANDARD_ATTRS
        )
        return json.dumps(payload, default=str)


class HumanFormatter(logging.Formatter):
    """Single-line format for a terminal."""

    def format(self, record: logging.LogRecord) -> str:
        when = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        cycle_id = get_cycle_id()
        prefix = f"[{cycle_id}] " if cycle_id else ""
        line = f"{when} [{record.levelname}] {record.name}: {prefix}{record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(level: str = "INFO", json_format: bool | None = None) -> None:
    """
    Replace root handlers with a single stderr handler.

    json_format=None picks JSON when stderr is not a terminal (service
    managers, containers) and the human format otherwise.
    """
    if json_format is None:
        json_format = not sys.stderr.isatty()

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_format else HumanFormatter())
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def configure_log_rotation(
    log_file: str | Path | None = None,
    max_bytes: int = 50 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """Also write JSON lines to a rotating *log_file*. No-op when unset."""
    if not log_file:
        return

    path = Path(log_file).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count)
    except OSError as e:
        logging.getLogger(__name__).error(f"Could not open log file {path}: {e}")
        return

    file_handler.setFormatter(JSONFormatter())
    logging.getLogger().addHandler(file_handler)
