"""
In-process metrics for the monitoring engine.

Counters, gauges and a windowed timing histogram. Nothing is exported over
the network: the daemon logs REGISTRY.to_dict() on shutdown and
scheduler.health() embeds the same snapshot.
"""

import threading
from collections import deque
from dataclasses import dataclass, field

# Observations kept per histogram
HISTOGRAM_WINDOW = 1000


@dataclass
class _Metric:
    name: str
    description: str = ""
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    kind = "metric"

    def snapshot(self) -> dict:
        raise NotImplementedError


@dataclass
class Counter(_Metric):
    """Monotonic count of events."""

    _value: int = 0
    kind = "counter"

    def inc(self, amount: int = 1) -> None:
        if amount < 0:
            raise ValueError(f"counter {self.name} cannot decrease")
        with self._lock:
            self._value += amount

    @property
    def value(self) -> int:
        return self._value

    def snapshot(self) -> dict:
        return {"type": self.kind, "value": self.value}


@dataclass
class Gauge(_Metric):
    """Last reported level."""

    _value: float = 0.0
    kind = "gauge"

    def set(self, value: float) -> None:
        with self._lock:
            self._value = value

    @property
    def value(self) -> float:
        return self._value

    def snapshot(self) -> dict:
        return {"type": self.kind, "value": self.value}


@dataclass
class Histogram(_Metric):
    """Durations over the last HISTOGRAM_WINDOW observations."""

    _values: deque = field(default_factory=lambda: deque(maxlen=HISTOGRAM_WINDOW))
    kind = "histogram"

    def observe(self, value: float) -> None:
        with self._lock:
            self._values.append(value)

    def _copy(self) -> list[float]:
        with self._lock:
            return list(self._values)

    @property
    def count(self) -> int:
        return len(self._copy())

    @property
    def sum(self) -> float:
        return float(sum(self._copy()))

    @property
    def avg(self) -> float:
        values = self._copy()
        return sum(values) / len(values) if values else 0.0

    @property
    def max(self) -> float:
        return max(self._copy(), default=0.0)

    def snapshot(self) -> dict:
        values = self._copy()
        total = float(sum(values))
        return {
            "type": self.kind,
            "count": len(values),
            "sum": total,
            "avg": total / len(values) if values else 0.0,
            "max": max(values, default=0.0),
        }


class MetricsRegistry:
    """Named metrics, created on first use."""

    def __init__(self) -> None:
        self._metrics: dict[str, _Metric] = {}
        self._lock = threading.Lock()

    def _get(self, cls: type, name: str, description: str):
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = self._metrics[name] = cls(name, description)
            elif not isinstance(metric, cls):
                raise TypeError(f"metric {name} is a {metric.kind}, not a {cls.kind}")
            return metric

    def counter(self, name: str, description: str = "") -> Counter:
        return self._get(Counter, name, description)

    def gauge(self, name: str, description: str = "") -> Gauge:
        return self._get(Gauge, name, description)

    def histogram(self, name: str, description: str = "") -> Histogram:
        return self._get(Histogram, name, description)

    def to_dict(self) -> dict[str, dict]:
        with self._lock:
            metrics = list(self._metrics.values())
        return {m.name: m.snapshot() for m in metrics}


REGISTRY = MetricsRegistry()

cycles_run = REGISTRY.counter("monitor_cycles_total", "Monitoring cycles started")
cycle_failures = REGISTRY.counter("monitor_cycle_failures_total", "Monitoring cycles aborted")
cycle_duration = REGISTRY.histogram("monitor_cycle_duration_seconds", "Cycle wall time")
entries_created = REGISTRY.counter("watchlist_entries_created_total", "Watchlist entries created")
escalations = REGISTRY.counter("watchlist_escalations_total", "Watchlist entries escalated")
accounts_skipped = REGISTRY.counter("accounts_skipped_total", "Accounts skipped as unresolved")
alerts_published = REGISTRY.counter("alerts_published_total", "Alerts handed to a sink")
alerts_dropped = REGISTRY.counter("alerts_dropped_total", "Alerts dropped on failure or overflow")
scheduler_health = REGISTRY.gauge(
    "monitor_scheduler_health", "1 healthy, 0.5 degraded, 0 unhealthy"
)
