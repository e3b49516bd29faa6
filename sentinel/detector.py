"""
Detector - promotes newly suspicious accounts onto the watchlist.

Per cycle:
1. One windowed query for per-account activity counts.
2. Accounts at or over the count threshold qualify.
3. A qualifying account not yet listed is scored; at or over the score
   threshold it gets a new entry and an entry_created alert.
4. A qualifying account already listed has its window count added to the
   cumulative count and its reason refreshed. No alert.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from sentinel.activity import ActivityLogStore
from sentinel.alerts import Alert, AlertPublisher, AlertType, publish_safely
from sentinel.config import MonitorConfig
from sentinel.directory import UserDirectory, resolve_or_skip
from sentinel.models import AccountInfo, WatchlistEntry, WindowAggregate, utc_now
from sentinel.observability.metrics import entries_created
from sentinel.scoring import SuspicionScorer
from sentinel.watchlist import WatchlistRegistry

logger = logging.getLogger(__name__)


def describe_window(window: timedelta) -> str:
    """'15 minutes', '1 hour', '90 seconds'."""
    seconds = int(window.total_seconds())
    if seconds and seconds % 3600 == 0:
        n, unit = seconds // 3600, "hour"
    elif seconds and seconds % 60 == 0:
        n, unit = seconds // 60, "minute"
    else:
        n, unit = seconds, "second"
    return f"{n} {unit}{'' if n == 1 else 's'}"


def build_reason(aggregate: WindowAggregate, window: timedelta, account: AccountInfo) -> str:
    kinds = ", ".join(sorted(k.value for k in aggregate.kinds_present))
    reason = (
        f"High activity rate: {aggregate.total_count} actions ({kinds}) "
        f"in {describe_window(window)} by {account.label}"
    )
    if account.role:
        reason += f" (role: {account.role})"
    return reason


@dataclass
class DetectionReport:
    """What one detector pass did. The sweeper uses it to avoid double counting."""

    qualifying: int = 0
    created: list[str] = field(default_factory=list)
    accumulated: list[str] = field(default_factory=list)
    below_score: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "qualifying": self.qualifying,
            "created": list(self.created),
            "accumulated": list(self.accumulated),
            "below_score": list(self.below_score),
            "skipped": list(self.skipped),
        }


class Detector:
    """Finds qualifying accounts, scores them, creates or accumulates watchlist entries."""

    def __init__(
        self,
        activity_log: ActivityLogStore,
        registry: WatchlistRegistry,
        directory: UserDirectory,
        publisher: AlertPublisher,
        config: MonitorConfig,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.activity_log = activity_log
        self.registry = registry
        self.directory = directory
        self.publisher = publisher
        self.config = config
        self.scorer = SuspicionScorer(
            config.count_threshold, config.known_kinds, config.high_risk_kinds
        )
        self._clock = clock

    def run(self) -> DetectionReport:
        report = DetectionReport()
        aggregates = self.activity_log.counts_by_account_since(self.config.window)
        qualifying = sorted(
            (a for a in aggregates.values() if a.total_count >= self.config.count_threshold),
            key=lambda a: a.account_id,
        )
        report.qualifying = len(qualifying)

        if not qualifying:
            logger.info("No suspicious activity detected in this interval")
            return report

        logger.info(f"Detected {len(qualifying)} accounts over the activity threshold")

        for aggregate in qualifying:
            account = resolve_or_skip(self.directory, aggregate.account_id)
            if account is None:
                report.skipped.append(aggregate.account_id)
                continue

            if self.registry.exists(aggregate.account_id):
                self._accumulate(aggregate, account, report)
            else:
                self._consider(aggregate, account, report)

        return report

    def _consider(
        self, aggregate: WindowAggregate, account: AccountInfo, report: DetectionReport
    ) -> None:
        suspicion = self.scorer(aggregate)
        if suspicion < self.config.score_threshold:
            logger.debug(
                f"Account {account.account_id} scored {suspicion:.3f}, "
                f"below {self.config.score_threshold}"
            )
            report.below_score.append(account.account_id)
            return

        now = self._clock()
        reason = build_reason(aggregate, self.config.window, account)
        entry = WatchlistEntry(
            account_id=account.account_id,
            reason=reason,
            cumulative_action_count=aggregate.total_count,
            escalated=False,
            first_detected_at=now,
            last_updated_at=now,
        )
        if not self.registry.create(entry):
            # Listed between exists() and create()
            self._accumulate(aggregate, account, report)
            return

        report.created.append(account.account_id)
        entries_created.inc()
        logger.info(
            f"Added account {account.label} ({account.account_id}) to watchlist "
            f"(score {suspicion:.3f})"
        )
        publish_safely(
            self.publisher,
            Alert(
                type=AlertType.ENTRY_CREATED,
                account_id=account.account_id,
                account_label=account.label,
                metrics={
                    "score": round(suspicion, 4),
                    "activity_count": aggregate.total_count,
                    "distinct_kinds": aggregate.distinct_kind_count,
                    "kinds": sorted(k.value for k in aggregate.kinds_present),
                    "reason": reason,
                },
                emitted_at=now,
            ),
        )

    def _accumulate(
        self, aggregate: WindowAggregate, account: AccountInfo, report: DetectionReport
    ) -> None:
        reason = build_reason(aggregate, self.config.window, account)
        result = self.registry.modify(
            account.account_id,
            lambda e: replace(
                e,
                reason=reason,
                cumulative_action_count=e.cumulative_action_count + aggregate.total_count,
            ),
        )
        if result is None:
            logger.info(f"Account {account.account_id} left the watchlist mid-cycle, skipping")
            return
        report.accumulated.append(account.account_id)
        logger.info(
            f"Updated watchlisted account {account.label} ({account.account_id}): "
            f"cumulative {result[1].cumulative_action_count}"
        )
