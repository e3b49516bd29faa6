"""
Declarative schema for the monitoring store.

Every table and index the engine touches is declared here. db.ensure_schema()
reads these declarations and converges a database to match them.

activity_logs and users belong to the host application; they are declared so
the engine can run standalone against a single SQLite file.
"""

from collections import OrderedDict

from sentinel.models import ActivityKind

# Bump when you change this file
SCHEMA_VERSION = 1

_KIND_VALUES = ", ".join(f"'{k.value}'" for k in ActivityKind)

TABLES: dict[str, dict] = OrderedDict()

TABLES["users"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("username", "TEXT NOT NULL"),
        ("role", "TEXT"),
        ("created_at", "TEXT NOT NULL DEFAULT (datetime('now'))"),
    ],
}

TABLES["activity_logs"] = {
    "columns": [
        ("id", "INTEGER PRIMARY KEY AUTOINCREMENT"),
        ("account_id", "TEXT NOT NULL"),
        ("activity_kind", f"TEXT NOT NULL CHECK (activity_kind IN ({_KIND_VALUES}))"),
        ("occurred_at", "TEXT NOT NULL"),
        ("metadata", "TEXT"),
    ],
    "indexes": [
        ("idx_activity_logs_occurred_at", ["occurred_at"]),
        ("idx_activity_logs_account_time", ["account_id", "occurred_at"]),
    ],
}

TABLES["watchlist"] = {
    "columns": [
        ("account_id", "TEXT PRIMARY KEY"),
        ("reason", "TEXT NOT NULL"),
        ("cumulative_action_count", "INTEGER NOT NULL DEFAULT 0"),
        ("escalated", "INTEGER NOT NULL DEFAULT 0"),
        ("first_detected_at", "TEXT NOT NULL"),
        ("last_updated_at", "TEXT NOT NULL"),
    ],
    "indexes": [
        ("idx_watchlist_escalated", ["escalated"]),
    ],
}
