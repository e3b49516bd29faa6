"""
Escalation Sweeper - re-evaluates every watchlisted account each cycle.

For each entry, with count = the account's activity over the window:
- count >= threshold, not escalated -> escalate, accumulate, escalated alert
- count >= threshold, escalated     -> accumulate
- count <  threshold                -> accumulate, escalation untouched

Escalation is one-way here. Only an operator reset clears it, after which a
later over-threshold window escalates again. The decision is made inside the
registry's read-modify-write so it always sees a reset that landed mid-cycle.

Entries the detector created this cycle are left alone until the next cycle.
Entries the detector already accumulated this cycle are checked for
escalation without being counted a second time.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime

from sentinel.activity import ActivityLogStore
from sentinel.alerts import Alert, AlertPublisher, AlertType, publish_safely
from sentinel.config import MonitorConfig
from sentinel.detector import DetectionReport
from sentinel.directory import UserDirectory, resolve_or_skip
from sentinel.models import WatchlistEntry, WindowAggregate, utc_now
from sentinel.observability.metrics import escalations
from sentinel.watchlist import WatchlistRegistry

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    swept: int = 0
    escalated: list[str] = field(default_factory=list)
    accumulated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "swept": self.swept,
            "escalated": list(self.escalated),
            "accumulated": list(self.accumulated),
            "skipped": list(self.skipped),
        }


class EscalationSweeper:
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
        self._clock = clock

    def run(self, detection: DetectionReport | None = None) -> SweepReport:
        report = SweepReport()
        entries = self.registry.list_all()
        if not entries:
            return report

        just_created = set(detection.created) if detection else set()
        already_counted = set(detection.accumulated) if detection else set()
        aggregates = self.activity_log.counts_by_account_since(self.config.window)

        logger.info(f"Updating status for {len(entries)} watchlisted accounts")

        for entry in entries:
            if entry.account_id in just_created:
                continue
            report.swept += 1

            account = resolve_or_skip(self.directory, entry.account_id)
            if account is None:
                report.skipped.append(entry.account_id)
                continue

            window_count = aggregates.get(
                entry.account_id, WindowAggregate.empty(entry.account_id)
            ).total_count
            increment = 0 if entry.account_id in already_counted else window_count
            over_threshold = window_count >= self.config.count_threshold

            if increment == 0 and not over_threshold:
                continue

            result = self.registry.modify(
                entry.account_id, _sweep_mutation(increment, over_threshold)
            )
            if result is None:
                logger.info(f"Account {entry.account_id} left the watchlist mid-cycle, skipping")
                continue

            before, after = result
            if increment:
                report.accumulated.append(entry.account_id)
            if after.escalated and not before.escalated:
                report.escalated.append(entry.account_id)
                escalations.inc()
                logger.warning(
                    f"Account {account.label} ({entry.account_id}) exceeded threshold "
                    f"again: {window_count} actions in window"
                )
                publish_safely(
                    self.publisher,
                    Alert(
                        type=AlertType.ESCALATED,
                        account_id=entry.account_id,
                        account_label=account.label,
                        metrics={
                            "window_count": window_count,
                            "cumulative_action_count": after.cumulative_action_count,
                            "reason": after.reason,
                        },
                        emitted_at=self._clock(),
                    ),
                )

        return report


def _sweep_mutation(
    increment: int, over_threshold: bool
) -> Callable[[WatchlistEntry], WatchlistEntry]:
    def mutate(current: WatchlistEntry) -> WatchlistEntry:
        return replace(
            current,
            cumulative_action_count=current.cumulative_action_count + increment,
            escalated=current.escalated or over_threshold,
        )

    return mutate
