"""
Watchlist Registry - persistent per-account monitoring state.

Every write that depends on the current record is a read-modify-write on the
freshest row inside one IMMEDIATE transaction, so operator actions (reset,
remove) that land between two engine writes are never overwritten blindly.

State machine for one entry:

    (absent) --create--> watching --escalate--> escalated
                            ^                      |
                            +-------- reset -------+
    any state --remove--> (absent)

Only create and escalate happen automatically. reset and remove are operator
actions.
"""

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from sentinel import db, safe_sql
from sentinel.models import WatchlistEntry, format_ts, parse_ts, utc_now

logger = logging.getLogger(__name__)

TABLE = "watchlist"
COLUMNS = [
    "account_id",
    "reason",
    "cumulative_action_count",
    "escalated",
    "first_detected_at",
    "last_updated_at",
]

Mutation = Callable[[WatchlistEntry], WatchlistEntry]


def _row_to_entry(row) -> WatchlistEntry:
    return WatchlistEntry(
        account_id=row["account_id"],
        reason=row["reason"],
        cumulative_action_count=row["cumulative_action_count"],
        escalated=bool(row["escalated"]),
        first_detected_at=parse_ts(row["first_detected_at"]),
        last_updated_at=parse_ts(row["last_updated_at"]),
    )


def _entry_values(entry: WatchlistEntry) -> list:
    return [
        entry.account_id,
        entry.reason,
        entry.cumulative_action_count,
        1 if entry.escalated else 0,
        format_ts(entry.first_detected_at),
        format_ts(entry.last_updated_at),
    ]


class WatchlistRegistry:
    """SQLite-backed watchlist with atomic single-record read-modify-write."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        timeout_seconds: float = db.DEFAULT_QUERY_TIMEOUT,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db_path = str(db_path or db.get_db_path())
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        db.ensure_schema(self.db_path)

    def _conn(self):
        return db.get_connection(self.db_path, self.timeout_seconds)

    @staticmethod
    def _fetch(conn, account_id: str) -> WatchlistEntry | None:
        row = conn.execute(safe_sql.select(TABLE, where="account_id = ?"), [account_id]).fetchone()
        return _row_to_entry(row) if row else None

    @staticmethod
    def _write(conn, entry: WatchlistEntry) -> None:
        values = _entry_values(entry)[1:] + [entry.account_id]
        conn.execute(safe_sql.update(TABLE, COLUMNS[1:], where="account_id = ?"), values)

    # ==================== Reads ====================

    def exists(self, account_id: str) -> bool:
        with self._conn() as conn:
            row = conn.execute(
                safe_sql.select_count(TABLE, where="account_id = ?"), [account_id]
            ).fetchone()
        return row["c"] > 0

    def get(self, account_id: str) -> WatchlistEntry | None:
        with self._conn() as conn:
            return self._fetch(conn, account_id)

    def list_all(self) -> list[WatchlistEntry]:
        """All entries, most recently detected first."""
        sql = safe_sql.select(TABLE, order_by="first_detected_at DESC, account_id ASC")
        with self._conn() as conn:
            rows = conn.execute(sql).fetchall()
        return [_row_to_entry(row) for row in rows]

    def stats(self) -> dict:
        with self._conn() as conn:
            total = conn.execute(safe_sql.select_count(TABLE)).fetchone()["c"]
            escalated = conn.execute(
                safe_sql.select_count(TABLE, where="escalated = 1")
            ).fetchone()["c"]
        return {"watchlisted": total, "escalated": escalated}

    # ==================== Writes ====================

    def create(self, entry: WatchlistEntry) -> bool:
        """Insert *entry* only if the account is not already listed. Returns True if inserted."""
        with self._conn() as conn:
            cursor = conn.execute(
                safe_sql.insert(TABLE, COLUMNS, or_clause="IGNORE"), _entry_values(entry)
            )
            created = cursor.rowcount == 1
        if created:
            logger.info("Watchlist entry created for account %s", entry.account_id)
        return created

    def upsert(self, entry: WatchlistEntry) -> WatchlistEntry:
        """
        Insert *entry*, or refresh the reason of an existing row.

        An existing row keeps its own first_detected_at, cumulative count and
        escalation flag, so a stale copy can never undo an escalation or an
        operator reset. Counting and escalation go through modify().
        """
        with self._conn() as conn:
            conn.execute("BEGIN IMMEDIATE")
            current = self._fetch(conn, entry.account_id)
            if current is None:
                conn.execute(safe_sql.insert(TABLE, COLUMNS), _entry_values(entry))
                return entry
            stored = replace(current, reason=entry.reason, last_updated_at=self._clock())
            self._write(conn, stored)
            return stored

    def modify(
        self, account_id: str, mutate: Mutation
    ) -> tuple[WatchlistEntry, WatchlistEntry] | None:
        """
        Atomically apply *mutate* to the freshest row.

        Returns (before, after), or None when the account is not listed
        (e.g. removed by an operator since it was last read).
        """
        with self._conn() as conn:
            conn.execute("BEGIN IMMEDIATE")
            before = self._fetch(conn, account_id)
            if before is None:
                return None
            after = mutate(before)
            if after.account_id != account_id:
                raise ValueError("mutation must not change account_id")
            after = replace(
                after,
                first_detected_at=before.first_detected_at,
                last_updated_at=self._clock(),
            )
            self._write(conn, after)
        return before, after

    # ==================== Operator actions ====================

    def reset(self, account_id: str) -> WatchlistEntry | None:
        """Clear escalation and the cumulative count. Returns the new entry or None."""
        result = self.modify(
            account_id,
            lambda e: replace(e, escalated=False, cumulative_action_count=0),
        )
        if result is None:
            return None
        logger.info("Watchlist entry for account %s reset by operator", account_id)
        return result[1]

    def remove(self, account_id: str) -> bool:
        with self._conn() as conn:
            cursor = conn.execute(safe_sql.delete(TABLE, where="account_id = ?"), [account_id])
            removed = cursor.rowcount > 0
        if removed:
            logger.info("Watchlist entry for account %s removed by operator", account_id)
        return removed
