"""
Activity Log Store - windowed reads over the host's append-only activity log.

The engine only ever asks one question of the log: per-account counts over a
trailing window. Records are written by the host application concurrently;
no snapshot isolation is assumed, so aggregates are approximate signals.
"""

import json
import logging
from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Protocol

from sentinel import db, safe_sql
from sentinel.models import ActivityKind, ActivityRecord, WindowAggregate, format_ts, utc_now

logger = logging.getLogger(__name__)

TABLE = "activity_logs"


class ActivityLogStore(Protocol):
    """What the Detector and Sweeper need from the activity log."""

    def counts_by_account_since(self, window: timedelta) -> dict[str, WindowAggregate]:
        """Aggregate records with occurred_at in [now - window, now], keyed by account."""
        ...


class SQLiteActivityLog:
    """SQLite-backed activity log."""

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

    def _bounds(self, window: timedelta) -> tuple[str, str]:
        now = self._clock()
        return format_ts(now - window), format_ts(now)

    # ==================== Writes ====================

    def record(self, record: ActivityRecord) -> None:
        """Append one record."""
        self.record_many([record])

    def record_many(self, records: Iterable[ActivityRecord]) -> int:
        """Append records. Returns count written."""
        sql = safe_sql.insert(TABLE, ["account_id", "activity_kind", "occurred_at", "metadata"])
        rows = [
            (
                r.account_id,
                ActivityKind.parse(r.activity_kind).value,
                format_ts(r.occurred_at),
                json.dumps(r.metadata) if r.metadata is not None else None,
            )
            for r in records
        ]
        if not rows:
            return 0
        with self._conn() as conn:
            conn.executemany(sql, rows)
        return len(rows)

    # ==================== Windowed reads ====================

    def counts_by_account_since(self, window: timedelta) -> dict[str, WindowAggregate]:
        start, end = self._bounds(window)
        sql = safe_sql.select(
            TABLE,
            columns="account_id, activity_kind, COUNT(*) AS n",
            where="occurred_at >= ? AND occurred_at <= ?",
            suffix="GROUP BY account_id, activity_kind",
        )
        with self._conn() as conn:
            rows = conn.execute(sql, [start, end]).fetchall()

        totals: dict[str, int] = defaultdict(int)
        kinds: dict[str, set[ActivityKind]] = defaultdict(set)
        for row in rows:
            totals[row["account_id"]] += row["n"]
            kinds[row["account_id"]].add(ActivityKind(row["activity_kind"]))

        return {
            account_id: WindowAggregate(
                account_id=account_id,
                total_count=total,
                kinds_present=frozenset(kinds[account_id]),
            )
            for account_id, total in totals.items()
        }

    def kind_breakdown_since(
        self, window: timedelta, min_count: int, limit: int = 5
    ) -> list[dict]:
        """Most common activity kinds among accounts with at least *min_count* records."""
        start, end = self._bounds(window)
        sql = """
            WITH suspicious AS (
                SELECT account_id FROM activity_logs
                WHERE occurred_at >= ? AND occurred_at <= ?
                GROUP BY account_id
                HAVING COUNT(*) >= ?
            )
            SELECT activity_kind, COUNT(*) AS count
            FROM activity_logs
            WHERE occurred_at >= ? AND occurred_at <= ?
              AND account_id IN (SELECT account_id FROM suspicious)
            GROUP BY activity_kind
            ORDER BY count DESC, activity_kind ASC
            LIMIT ?
        """
        with self._conn() as conn:
            rows = conn.execute(sql, [start, end, min_count, start, end, limit]).fetchall()
        return [dict(row) for row in rows]
