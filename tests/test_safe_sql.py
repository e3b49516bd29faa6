"""Tests for identifier-validated SQL construction."""

import pytest

from sentinel import safe_sql


class TestValidate:
    @pytest.mark.parametrize("name", ["watchlist", "_tmp", "activity_logs2"])
    def test_accepts_identifiers(self, name):
        assert safe_sql.validate(name) == name

    @pytest.mark.parametrize("name", ["", "1abc", "users; DROP TABLE users", "a-b", "a b"])
    def test_rejects_everything_else(self, name):
        with pytest.raises(ValueError):
            safe_sql.validate(name)


class TestBuilders:
    def test_select_with_group_suffix(self):
        sql = safe_sql.select(
            "activity_logs",
            columns="account_id, COUNT(*) AS n",
            where="occurred_at >= ?",
            suffix="GROUP BY account_id",
        )
        assert sql == (
            "SELECT account_id, COUNT(*) AS n FROM activity_logs "
            "WHERE occurred_at >= ? GROUP BY account_id"
        )

    def test_insert_or_ignore(self):
        assert safe_sql.insert("watchlist", ["account_id", "reason"], or_clause="IGNORE") == (
            "INSERT OR IGNORE INTO watchlist (account_id,reason) VALUES (?,?)"
        )

    def test_insert_rejects_unknown_conflict_clause(self):
        with pytest.raises(ValueError):
            safe_sql.insert("watchlist", ["account_id"], or_clause="ABORT; --")

    def test_update(self):
        assert safe_sql.update("watchlist", ["reason", "escalated"], where="account_id = ?") == (
            "UPDATE watchlist SET reason = ?,escalated = ? WHERE account_id = ?"
        )

    def test_user_version_must_be_int(self):
        assert safe_sql.pragma_user_version_set(3) == "PRAGMA user_version = 3"
        with pytest.raises(ValueError):
            safe_sql.pragma_user_version_set("3; DROP")
