"""In-memory collaborators for Detector / Sweeper / cycle tests."""

import threading
from collections import defaultdict
from datetime import datetime, timedelta, timezone

from sentinel.alerts import Alert, AlertType
from sentinel.errors import TransientStoreError, UnresolvedAccount
from sentinel.models import AccountInfo, ActivityKind, ActivityRecord, WindowAggregate

EPOCH = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = EPOCH):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class InMemoryActivityLog:
    """Activity log over a plain list, windowed against a FakeClock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.records: list[ActivityRecord] = []
        self.queries = 0

    def add(self, account_id: str, kind: ActivityKind, count: int = 1, **ago) -> None:
        at = self.clock() - timedelta(**ago) if ago else self.clock()
        self.records.extend(ActivityRecord(account_id, kind, at) for _ in range(count))

    def counts_by_account_since(self, window: timedelta) -> dict[str, WindowAggregate]:
        self.queries += 1
        now = self.clock()
        start = now - window
        totals: dict[str, int] = defaultdict(int)
        kinds: dict[str, set] = defaultdict(set)
        for r in self.records:
            if start <= r.occurred_at <= now:
                totals[r.account_id] += 1
                kinds[r.account_id].add(r.activity_kind)
        return {
            a: WindowAggregate(a, total, frozenset(kinds[a])) for a, total in totals.items()
        }


class FailingActivityLog:
    """Activity log whose queries always time out."""

    def __init__(self, message: str = "query timed out"):
        self.message = message
        self.queries = 0

    def counts_by_account_since(self, window: timedelta) -> dict[str, WindowAggregate]:
        self.queries += 1
        raise TransientStoreError(self.message)


class FakeDirectory:
    def __init__(self, accounts: dict[str, tuple[str, str | None]]):
        self.accounts = dict(accounts)
        self.lookups: list[str] = []

    def lookup(self, account_id: str) -> AccountInfo:
        self.lookups.append(account_id)
        if account_id not in self.accounts:
            raise UnresolvedAccount(account_id)
        label, role = self.accounts[account_id]
        return AccountInfo(account_id, label, role)


class RecordingPublisher:
    def __init__(self):
        self.alerts: list[Alert] = []
        self._lock = threading.Lock()

    def publish(self, alert: Alert) -> None:
        with self._lock:
            self.alerts.append(alert)

    def of_type(self, alert_type: AlertType) -> list[Alert]:
        return [a for a in self.alerts if a.type == alert_type]


class FlakyRegistry:
    """Wraps a WatchlistRegistry and fails modify() after *fail_after* successful calls."""

    def __init__(self, inner, fail_after: int):
        self.inner = inner
        self.fail_after = fail_after
        self.modify_calls = 0

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def modify(self, account_id, mutate):
        self.modify_calls += 1
        if self.modify_calls > self.fail_after:
            raise TransientStoreError("database is locked")
        return self.inner.modify(account_id, mutate)
