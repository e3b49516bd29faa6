"""
Activity Sentinel Daemon - standalone background monitor.

Usage:
    python -m sentinel start                    # Run the scheduler (foreground)
    python -m sentinel run-once                 # Run one cycle and exit
    python -m sentinel status                   # Watchlist stats
    python -m sentinel list                     # Watchlist entries as JSON
    python -m sentinel reset <account_id>       # Operator: clear escalation
    python -m sentinel remove <account_id>      # Operator: drop from watchlist
    python -m sentinel record <account_id> <kind> [--count N]
    python -m sentinel add-account <account_id> <label> [--role ROLE]

Exit codes: 0 ok, 1 operation failed, 2 configuration error.
"""

import argparse
import json
import signal
import sys
from datetime import timedelta

from sentinel import paths
from sentinel.activity import SQLiteActivityLog
from sentinel.alerts import (
    AlertPublisher,
    FanoutAlertPublisher,
    LoggingAlertPublisher,
    QueuedAlertPublisher,
    WebhookAlertSink,
)
from sentinel.config import MonitorConfig, load_config
from sentinel.cycle import build_cycle
from sentinel.directory import SQLiteUserDirectory
from sentinel.errors import ConfigurationError, SentinelError
from sentinel.models import ActivityKind, ActivityRecord, utc_now
from sentinel.observability import (
    REGISTRY,
    configure_log_rotation,
    configure_logging,
    get_logger,
)
from sentinel.scheduler import MonitorScheduler
from sentinel.watchlist import WatchlistRegistry

logger = get_logger("sentinel.daemon")

# Window used by `status` for the most-common-kinds breakdown
STATUS_WINDOW = timedelta(hours=24)


class SentinelDaemon:
    """Owns the stores, publisher and scheduler for one process."""

    def __init__(self, config: MonitorConfig, db_path: str | None = None):
        self.config = config
        self.db_path = str(db_path or paths.db_path())
        timeout = config.query_timeout_seconds

        self.activity_log = SQLiteActivityLog(self.db_path, timeout_seconds=timeout)
        self.registry = WatchlistRegistry(self.db_path, timeout_seconds=timeout)
        self.directory = SQLiteUserDirectory(self.db_path, timeout_seconds=timeout)
        self._queued: QueuedAlertPublisher | None = None
        self.publisher = self._build_publisher()

        self.cycle = build_cycle(
            config, self.activity_log, self.registry, self.directory, self.publisher
        )
        self.scheduler = MonitorScheduler(
            self.cycle.run,
            interval_seconds=config.interval_seconds,
            backoff_seconds=config.backoff_seconds,
        )

    def _build_publisher(self) -> AlertPublisher:
        log_publisher = LoggingAlertPublisher()
        if not self.config.alert_webhook_url:
            return log_publisher
        self._queued = QueuedAlertPublisher(WebhookAlertSink(self.config.alert_webhook_url))
        return FanoutAlertPublisher([log_publisher, self._queued])

    def run(self) -> None:
        """Run until SIGTERM/SIGINT."""
        logger.info("=" * 50)
        logger.info("Activity Sentinel starting")
        logger.info(f"DB: {self.db_path}")
        logger.info(f"Config: {json.dumps(self.config.to_dict())}")
        logger.info("=" * 50)

        signal.signal(signal.SIGTERM, self._handle_signal)
        signal.signal(signal.SIGINT, self._handle_signal)

        self.scheduler.start()
        try:
            while self.scheduler.is_alive():
                self.scheduler.join(timeout=1.0)
        finally:
            self.shutdown()

    def run_once(self) -> bool:
        result = self.scheduler.run_once()
        self.shutdown()
        return result.overall_success

    def _handle_signal(self, signum, frame):
        sig_name = signal.Signals(signum).name
        logger.info(f"Received {sig_name}, shutting down after the current cycle...")
        self.scheduler.stop(wait=False)

    def shutdown(self) -> None:
        if self._queued is not None:
            self._queued.close()
        logger.info(f"Metrics: {json.dumps(REGISTRY.to_dict())}")
        logger.info("Activity Sentinel stopped")

    def status(self) -> dict:
        return {
            **self.registry.stats(),
            "top_kinds_24h": self.activity_log.kind_breakdown_since(
                STATUS_WINDOW, min_count=self.config.count_threshold
            ),
        }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sentinel", description="Activity Sentinel daemon")
    parser.add_argument("--config", help="YAML config file (default: $SENTINEL_HOME/config)")
    parser.add_argument("--db", help="SQLite database path (default: $SENTINEL_DB)")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--json-logs", action="store_true", default=None)
    parser.add_argument("--log-file", help="Also write JSON logs to this rotating file")

    sub = parser.add_subparsers(dest="action", required=True)
    sub.add_parser("start", help="Run the monitor until interrupted")
    sub.add_parser("run-once", help="Run one detect + sweep cycle")
    sub.add_parser("status", help="Watchlist statistics")
    sub.add_parser("list", help="List watchlist entries")

    reset = sub.add_parser("reset", help="Clear escalation and cumulative count")
    reset.add_argument("account_id")

    remove = sub.add_parser("remove", help="Remove an account from the watchlist")
    remove.add_argument("account_id")

    record = sub.add_parser("record", help="Append activity records")
    record.add_argument("account_id")
    record.add_argument("kind", choices=[k.value for k in ActivityKind])
    record.add_argument("--count", type=int, default=1)

    add_account = sub.add_parser("add-account", help="Register an account in the user directory")
    add_account.add_argument("account_id")
    add_account.add_argument("label")
    add_account.add_argument("--role")
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = _build_parser().parse_args(argv)

    configure_logging(level=args.log_level, json_format=args.json_logs)
    configure_log_rotation(args.log_file)

    try:
        config = load_config(args.config)
        daemon = SentinelDaemon(config, db_path=args.db)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except SentinelError as e:
        logger.error(f"Startup failed: {e}")
        return 1

    try:
        if args.action == "start":
            daemon.run()
        elif args.action == "run-once":
            return 0 if daemon.run_once() else 1
        elif args.action == "status":
            print(json.dumps(daemon.status(), indent=2))
        elif args.action == "list":
            entries = [e.to_dict() for e in daemon.registry.list_all()]
            print(json.dumps(entries, indent=2))
        elif args.action == "reset":
            entry = daemon.registry.reset(args.account_id)
            if entry is None:
                logger.error(f"Account {args.account_id} is not on the watchlist")
                return 1
            print(json.dumps(entry.to_dict(), indent=2))
        elif args.action == "remove":
            if not daemon.registry.remove(args.account_id):
                logger.error(f"Account {args.account_id} is not on the watchlist")
                return 1
        elif args.action == "record":
            now = utc_now()
            kind = ActivityKind.parse(args.kind)
            written = daemon.activity_log.record_many(
                ActivityRecord(args.account_id, kind, now) for _ in range(args.count)
            )
            logger.info(f"Recorded {written} {kind.value} events for account {args.account_id}")
        elif args.action == "add-account":
            daemon.directory.add(args.account_id, args.label, role=args.role)
    except SentinelError as e:
        logger.error(f"{args.action} failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
