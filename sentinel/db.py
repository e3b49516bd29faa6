"""
Centralized Database Access for the monitoring engine.

Single source of truth for:
- DB path resolution
- Connection factory with bounded query time
- Schema convergence against sentinel.schema

All store classes open connections through get_connection(). No direct
sqlite3.connect() elsewhere. SQLite OperationalError (locked, busy, timed out,
unable to open) is translated into TransientStoreError here, at the boundary.
"""

import logging
import re
import sqlite3
import threading
import time
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from sentinel import paths, safe_sql, schema
from sentinel.errors import TransientStoreError

logger = logging.getLogger(__name__)

DEFAULT_QUERY_TIMEOUT = 5.0

# SQLite VM instructions between deadline checks
_PROGRESS_STEPS = 1000

# Clauses valid in CREATE TABLE but not in ALTER TABLE ADD COLUMN
_STRIP_PATTERNS = [
    re.compile(r"\bPRIMARY\s+KEY\b", re.IGNORECASE),
    re.compile(r"\bAUTOINCREMENT\b", re.IGNORECASE),
    re.compile(r"\bCHECK\s*\(.*\)", re.IGNORECASE),
    re.compile(r"\bDEFAULT\s*\(.*\)", re.IGNORECASE),
]


# ============================================================
# DB PATH RESOLUTION
# ============================================================


def get_db_path() -> Path:
    """
    Get the canonical DB path.

    Resolution order:
    1. SENTINEL_DB env var (explicit override)
    2. ~/.activity_sentinel/data/sentinel.db (default via paths.db_path())
    """
    return paths.db_path()


# ============================================================
# CONNECTION FACTORY
# ============================================================


def _install_deadline(conn: sqlite3.Connection, timeout_seconds: float) -> None:
    """Abort any statement still running after *timeout_seconds*."""
    deadline = time.monotonic() + timeout_seconds

    def _check() -> int:
        return 1 if time.monotonic() > deadline else 0

    conn.set_progress_handler(_check, _PROGRESS_STEPS)


@contextmanager
def get_connection(
    db_path: str | Path | None = None,
    timeout_seconds: float = DEFAULT_QUERY_TIMEOUT,
) -> Generator[sqlite3.Connection, None, None]:
    """
    Get a database connection with proper setup.

    The connection commits on clean exit and rolls back on any error.
    Lock waits and statement execution are both bounded by *timeout_seconds*.

    Usage:
        with get_connection(path) as conn:
            conn.execute(...)
    """
    path = Path(db_path) if db_path else get_db_path()
    conn = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(path), timeout=timeout_seconds)
        conn.row_factory = sqlite3.Row
        _install_deadline(conn, timeout_seconds)
        yield conn
        conn.commit()
    except sqlite3.OperationalError as e:
        if conn is not None:
            conn.rollback()
        raise TransientStoreError(f"Store unavailable ({path.name}): {e}") from e
    except Exception:
        if conn is not None:
            conn.rollback()
        raise
    finally:
        if conn is not None:
            conn.close()


# ============================================================
# SCHEMA CONVERGENCE
# ============================================================


def make_alter_safe(col_ddl: str) -> str:
    """
    Rewrite a CREATE TABLE column definition for ALTER TABLE ADD COLUMN.

    SQLite refuses PRIMARY KEY, AUTOINCREMENT, CHECK and expression defaults
    there, and NOT NULL needs a constant DEFAULT.
    """
    safe = col_ddl
    for pattern in _STRIP_PATTERNS:
        safe = pattern.sub("", safe)
    safe = re.sub(r"\s{2,}", " ", safe).strip()

    has_not_null = re.search(r"\bNOT\s+NULL\b", safe, re.IGNORECASE)
    has_default = re.search(r"\bDEFAULT\b", safe, re.IGNORECASE)
    if has_not_null and not has_default:
        safe += " DEFAULT ''"
    return safe


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Get current schema version from PRAGMA user_version."""
    return conn.execute("PRAGMA user_version").fetchone()[0]


def get_table_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    """Get existing column names for a table."""
    rows = conn.execute(f"PRAGMA table_info([{safe_sql.validate(table)}])").fetchall()
    return {row[1] for row in rows}


def converge(conn: sqlite3.Connection) -> dict:
    """
    Converge a database to match schema.TABLES.

    Creates missing tables, adds missing columns, creates missing indexes and
    sets PRAGMA user_version. Safe to run repeatedly.
    """
    results = {"tables_created": [], "columns_added": [], "indexes_created": []}
    existing = {
        row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    }

    for table_name, table_def in schema.TABLES.items():
        if table_name not in existing:
            conn.execute(safe_sql.create_table(table_name, table_def["columns"]))
            results["tables_created"].append(table_name)
        else:
            present = get_table_columns(conn, table_name)
            for col_name, col_ddl in table_def["columns"]:
                if col_name in present:
                    continue
                ddl = make_alter_safe(col_ddl)
                conn.execute(
                    f"ALTER TABLE {safe_sql.validate(table_name)} ADD COLUMN {col_name} {ddl}"
                )
                results["columns_added"].append(f"{table_name}.{col_name}")

        for index_name, columns in table_def.get("indexes", []):
            conn.execute(safe_sql.create_index(index_name, table_name, columns))
            results["indexes_created"].append(index_name)

    conn.execute(safe_sql.pragma_user_version_set(schema.SCHEMA_VERSION))
    return results


_converged: set[str] = set()
_converge_lock = threading.Lock()


def ensure_schema(db_path: str | Path | None = None) -> None:
    """Run schema convergence once per database path per process."""
    path = str(Path(db_path) if db_path else get_db_path())
    with _converge_lock:
        if path in _converged:
            return
        with get_connection(path) as conn:
            before = get_schema_version(conn)
            results = converge(conn)
        if results["tables_created"]:
            logger.info("Tables created: %s", results["tables_created"])
        if results["columns_added"]:
            logger.info("Columns added: %s", results["columns_added"])
        logger.info(
            "Schema converged at %s (version %s -> %s)", path, before, schema.SCHEMA_VERSION
        )
        _converged.add(path)
