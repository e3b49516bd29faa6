"""
Core value types for the monitoring engine.

ActivityRecord and WindowAggregate describe what the activity log holds.
WatchlistEntry is the persistent per-account monitoring state.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ActivityKind(str, Enum):
    """Closed set of activity kinds the scorer understands."""

    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VIEW = "view"
    UPDATE = "update"
    DELETE = "delete"
    TRANSACTION = "transaction"

    @classmethod
    def parse(cls, value: "str | ActivityKind") -> "ActivityKind":
        """Parse a kind name, raising ValueError for anything outside the enum."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(
                f"Unknown activity kind {value!r} (expected one of: {valid})"
            ) from None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_ts(value: datetime) -> str:
    """Fixed-width ISO timestamp so stored values compare lexicographically."""
    return to_utc(value).isoformat(timespec="microseconds")


def parse_ts(value: str) -> datetime:
    return to_utc(datetime.fromisoformat(value))


@dataclass(frozen=True)
class ActivityRecord:
    """One immutable activity log record. metadata is opaque to the engine."""

    account_id: str
    activity_kind: ActivityKind
    occurred_at: datetime
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class WindowAggregate:
    """Per-account activity statistics over a trailing window."""

    account_id: str
    total_count: int
    kinds_present: frozenset[ActivityKind] = field(default_factory=frozenset)

    @property
    def distinct_kind_count(self) -> int:
        return len(self.kinds_present)

    @classmethod
    def empty(cls, account_id: str) -> "WindowAggregate":
        return cls(account_id=account_id, total_count=0)


@dataclass(frozen=True)
class AccountInfo:
    """User directory lookup result."""

    account_id: str
    label: str
    role: str | None = None


@dataclass(frozen=True)
class WatchlistEntry:
    """
    Persistent monitoring state for one account.

    cumulative_action_count only grows under automatic processing; escalated
    only moves false -> true. Both are reset solely by operator action.
    """

    account_id: str
    reason: str
    cumulative_action_count: int
    escalated: bool
    first_detected_at: datetime
    last_updated_at: datetime

    def to_dict(self) -> dict:
        return {
            "account_id": self.account_id,
            "reason": self.reason,
            "cumulative_action_count": self.cumulative_action_count,
            "escalated": self.escalated,
            "first_detected_at": format_ts(self.first_detected_at),
            "last_updated_at": format_ts(self.last_updated_at),
        }
