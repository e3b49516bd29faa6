"""
Centralized SQL construction with validated identifiers.

Table and column names are validated against _SAFE_IDENTIFIER_RE before
interpolation. Values are always passed as parameterized ? and never
interpolated. SQLite does not accept ? for identifiers, so every f-string
below interpolates a validated identifier only.
"""

# ruff: noqa: S608

from __future__ import annotations

import re

_SAFE_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def validate(name: str) -> str:
    """Validate that *name* is a safe SQL identifier.

    Returns the name unchanged if valid; raises ValueError otherwise.
    """
    if not _SAFE_IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def pragma_user_version_set(version: int) -> str:
    """PRAGMA user_version = N with int validation."""
    if not isinstance(version, int) or version < 0:
        raise ValueError(f"Invalid schema version: {version!r}")
    return f"PRAGMA user_version = {version}"


def create_table(table: str, columns: list[tuple[str, str]]) -> str:
    """Build CREATE TABLE IF NOT EXISTS from (name, ddl) column pairs."""
    body = ",\n".join(f"    {validate(name)} {ddl}" for name, ddl in columns)
    return f"CREATE TABLE IF NOT EXISTS {validate(table)} (\n{body}\n)"


def create_index(name: str, table: str, columns: list[str]) -> str:
    cols = ", ".join(validate(c) for c in columns)
    return f"CREATE INDEX IF NOT EXISTS {validate(name)} ON {validate(table)}({cols})"


# ────────────────────────────────────────────────────────────
# DML: SELECT, INSERT, UPDATE, DELETE, COUNT
# ────────────────────────────────────────────────────────────


def select(
    table: str,
    columns: str = "*",
    where: str | None = None,
    order_by: str | None = None,
    suffix: str = "",
) -> str:
    """Build SELECT with validated table name.

    *columns* is a raw column expression (e.g. ``"*"`` or ``"id, name"``).
    *where* is a raw WHERE clause without the keyword and must use ``?``
    for all values.
    """
    sql = f"SELECT {columns} FROM {validate(table)}"
    if where:
        sql += f" WHERE {where}"
    if order_by:
        sql += f" ORDER BY {order_by}"
    if suffix:
        sql += f" {suffix}"
    return sql


def select_count(table: str, where: str | None = None) -> str:
    """Build SELECT COUNT(*) with validated table name."""
    sql = f"SELECT COUNT(*) as c FROM {validate(table)}"
    if where:
        sql += f" WHERE {where}"
    return sql


def insert(table: str, columns: list[str], or_clause: str = "") -> str:
    """Build INSERT [OR IGNORE|OR REPLACE] with validated table+column names."""
    if or_clause not in ("", "IGNORE", "REPLACE"):
        raise ValueError(f"Invalid conflict clause: {or_clause!r}")
    validate(table)
    for col in columns:
        validate(col)
    verb = f"INSERT OR {or_clause}" if or_clause else "INSERT"
    cols = ",".join(columns)
    placeholders = ",".join(["?" for _ in columns])
    return f"{verb} INTO {table} ({cols}) VALUES ({placeholders})"


def update(table: str, set_columns: list[str], where: str = "id = ?") -> str:
    """Build UPDATE SET with validated table+column names."""
    validate(table)
    for col in set_columns:
        validate(col)
    sets = ",".join(f"{col} = ?" for col in set_columns)
    return f"UPDATE {table} SET {sets} WHERE {where}"


def delete(table: str, where: str = "id = ?") -> str:
    """Build DELETE with validated table name."""
    return f"DELETE FROM {validate(table)} WHERE {where}"
