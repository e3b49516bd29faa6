"""
Tests for the daemon CLI entry point.

Covers:
- Operator commands against a temp database (list, reset, remove, status)
- run-once end to end
- Exit codes for configuration errors and missing entries
"""

import json
import logging

import pytest

from sentinel.alerts import FanoutAlertPublisher, LoggingAlertPublisher
from sentinel.config import MonitorConfig
from sentinel.daemon import SentinelDaemon, main


@pytest.fixture(autouse=True)
def restore_logging():
    """main() reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def db_arg(tmp_path):
    return ["--db", str(tmp_path / "cli.db")]


def _run(db_arg, *args):
    return main([*db_arg, *args])


def _seed_suspicious(db_arg, account_id="7"):
    assert _run(db_arg, "add-account", account_id, "yolanda", "--role", "admin") == 0
    assert _run(db_arg, "record", account_id, "delete", "--count", "6") == 0
    assert _run(db_arg, "record", account_id, "view", "--count", "6") == 0


class TestCommands:
    def test_run_once_lists_suspicious_account(self, db_arg, capsys):
        _seed_suspicious(db_arg)

        assert _run(db_arg, "run-once") == 0
        capsys.readouterr()
        assert _run(db_arg, "list") == 0

        [entry] = json.loads(capsys.readouterr().out)
        assert entry["account_id"] == "7"
        assert entry["cumulative_action_count"] == 12
        assert entry["escalated"] is False
        assert "by yolanda (role: admin)" in entry["reason"]

    def test_status(self, db_arg, capsys):
        _seed_suspicious(db_arg)
        _run(db_arg, "run-once")
        capsys.readouterr()

        assert _run(db_arg, "status") == 0

        status = json.loads(capsys.readouterr().out)
        assert status["watchlisted"] == 1
        assert status["escalated"] == 0
        assert {k["activity_kind"] for k in status["top_kinds_24h"]} == {"delete", "view"}

    def test_reset_and_remove(self, db_arg, capsys):
        _seed_suspicious(db_arg)
        _run(db_arg, "run-once")
        capsys.readouterr()

        assert _run(db_arg, "reset", "7") == 0
        reset = json.loads(capsys.readouterr().out)
        assert reset["cumulative_action_count"] == 0

        assert _run(db_arg, "remove", "7") == 0
        assert _run(db_arg, "remove", "7") == 1
        assert _run(db_arg, "reset", "7") == 1

    def test_unknown_account_is_not_listed(self, db_arg, capsys):
        _run(db_arg, "record", "ghost", "delete", "--count", "20")
        assert _run(db_arg, "run-once") == 0
        capsys.readouterr()

        _run(db_arg, "list")
        assert json.loads(capsys.readouterr().out) == []

    def test_log_file_gets_json(self, db_arg, tmp_path):
        log_file = tmp_path / "logs" / "sentinel.log"
        assert _run(db_arg, "--log-file", str(log_file), "run-once") == 0

        lines = log_file.read_text().splitlines()
        assert lines
        assert all("level" in json.loads(line) for line in lines)


class TestExitCodes:
    def test_invalid_env_config(self, db_arg, monkeypatch):
        monkeypatch.setenv("SENTINEL_COUNT_THRESHOLD", "0")
        assert _run(db_arg, "status") == 2

    def test_missing_config_file(self, db_arg, tmp_path):
        assert _run(db_arg, "--config", str(tmp_path / "nope.yaml"), "status") == 2

    def test_unopenable_store(self, tmp_path):
        # A directory cannot be opened as a database file
        assert main(["--db", str(tmp_path), "status"]) == 1

    def test_config_file_is_applied(self, db_arg, tmp_path, capsys):
        config = tmp_path / "sentinel.yaml"
        config.write_text("monitor:\n  count_threshold: 50\n")
        _seed_suspicious(db_arg)

        assert _run(db_arg, "--config", str(config), "run-once") == 0
        capsys.readouterr()
        _run(db_arg, "list")
        assert json.loads(capsys.readouterr().out) == []


class TestWiring:
    def test_webhook_adds_queued_publisher(self, tmp_path):
        config = MonitorConfig(alert_webhook_url="https://example.com/hook")
        daemon = SentinelDaemon(config, db_path=tmp_path / "wired.db")
        try:
            assert isinstance(daemon.publisher, FanoutAlertPublisher)
        finally:
            daemon.shutdown()

    def test_default_is_log_only(self, tmp_path):
        daemon = SentinelDaemon(MonitorConfig(), db_path=tmp_path / "wired.db")
        assert isinstance(daemon.publisher, LoggingAlertPublisher)
