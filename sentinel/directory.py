"""
User Directory - resolves account ids to human-readable labels.

Used only to build alert/reason text and to skip accounts the host no longer
knows about. A missing account raises UnresolvedAccount; callers skip that
account and carry on with the cycle.
"""

import logging
from pathlib import Path
from typing import Protocol

from sentinel import db, safe_sql
from sentinel.errors import UnresolvedAccount
from sentinel.models import AccountInfo
from sentinel.observability.metrics import accounts_skipped

logger = logging.getLogger(__name__)

TABLE = "users"


class UserDirectory(Protocol):
    def lookup(self, account_id: str) -> AccountInfo:
        """Return account info or raise UnresolvedAccount."""
        ...


class SQLiteUserDirectory:
    """Reads the host's users table."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        timeout_seconds: float = db.DEFAULT_QUERY_TIMEOUT,
    ):
        self.db_path = str(db_path or db.get_db_path())
        self.timeout_seconds = timeout_seconds
        db.ensure_schema(self.db_path)

    def lookup(self, account_id: str) -> AccountInfo:
        sql = safe_sql.select(TABLE, columns="id, username, role", where="id = ?")
        with db.get_connection(self.db_path, self.timeout_seconds) as conn:
            row = conn.execute(sql, [account_id]).fetchone()
        if row is None:
            raise UnresolvedAccount(account_id)
        return AccountInfo(account_id=row["id"], label=row["username"], role=row["role"])

    def add(self, account_id: str, label: str, role: str | None = None) -> AccountInfo:
        """Register or rename an account. Host tooling normally owns this table."""
        sql = safe_sql.insert(TABLE, ["id", "username", "role"], or_clause="REPLACE")
        with db.get_connection(self.db_path, self.timeout_seconds) as conn:
            conn.execute(sql, [account_id, label, role])
        return AccountInfo(account_id=account_id, label=label, role=role)


def resolve_or_skip(directory: UserDirectory, account_id: str) -> AccountInfo | None:
    """Look up an account; log, count and return None when it cannot be resolved."""
    try:
        return directory.lookup(account_id)
    except UnresolvedAccount:
        logger.warning("Account %s not found in user directory, skipping", account_id)
        accounts_skipped.inc()
        return None
