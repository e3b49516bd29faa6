"""
Monitor Scheduler - drives monitoring cycles on a fixed cadence.

State machine:

    STOPPED --start()--> RUNNING --stop()--> STOPPED

start() and stop() are idempotent. While RUNNING a single worker thread runs
one cycle, then waits `interval` (or `backoff` after a failed cycle) before
the next. Cycles never overlap: the worker runs them back to back, and a cycle
lock also serializes run_once() calls made from outside the worker.

stop() cancels the pending wait immediately but never interrupts a cycle in
flight; stop(wait=True) returns once that cycle has finished.
"""

import enum
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sentinel.cycle_result import CycleResult
from sentinel.models import utc_now
from sentinel.observability.metrics import REGISTRY, scheduler_health

logger = logging.getLogger(__name__)

CycleRunner = Callable[[int], CycleResult]


class SchedulerState(str, enum.Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class SchedulerHealth(str, enum.Enum):
    """Health derived from consecutive cycle failures."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class SchedulerStats:
    """Runtime state for the scheduler."""

    last_run: datetime | None = None
    last_success: datetime | None = None
    last_error: str | None = None
    consecutive_failures: int = 0
    total_runs: int = 0
    total_failures: int = 0
    health_status: SchedulerHealth = SchedulerHealth.HEALTHY


class MonitorScheduler:
    """Runs a cycle every `interval_seconds`, backing off to `backoff_seconds` after failures."""

    def __init__(
        self,
        run_cycle: CycleRunner,
        interval_seconds: float = 60.0,
        backoff_seconds: float = 10.0,
        name: str = "sentinel-scheduler",
    ):
        self.run_cycle = run_cycle
        self.interval_seconds = interval_seconds
        self.backoff_seconds = backoff_seconds
        self.name = name
        self.stats = SchedulerStats()
        self.last_result: CycleResult | None = None
        self.next_delay: float | None = None

        self._state = SchedulerState.STOPPED
        self._state_lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._cycle_number = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    # ==================== Lifecycle ====================

    def start(self) -> bool:
        """Start the worker. Returns False if already running."""
        with self._state_lock:
            if self._state is SchedulerState.RUNNING:
                logger.warning("Monitor scheduler is already running")
                return False
            # Fresh event per run: a worker still finishing a previous run keeps its own
            self._stop_event = threading.Event()
            self._state = SchedulerState.RUNNING
            self._thread = threading.Thread(
                target=self._loop, args=(self._stop_event,), name=self.name, daemon=True
            )
            self._thread.start()

        logger.info(
            f"Monitor scheduler started (interval {self.interval_seconds}s, "
            f"backoff {self.backoff_seconds}s)"
        )
        return True

    def stop(self, wait: bool = True, timeout: float | None = None) -> bool:
        """
        Stop scheduling further cycles. Returns False if not running.

        A cycle in flight completes; with wait=True this call blocks until it has.
        """
        with self._state_lock:
            if self._state is SchedulerState.STOPPED:
                logger.warning("Monitor scheduler is not running")
                return False
            self._state = SchedulerState.STOPPED
            self._stop_event.set()
            thread = self._thread

        logger.info("Stopping monitor scheduler")
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        return True

    def join(self, timeout: float | None = None) -> None:
        """Wait for the worker thread to exit."""
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            result = self.run_once()
            delay = self.delay_after(result)
            self.next_delay = delay
            if not result.overall_success:
                logger.info(f"Retrying in {delay}s after failed cycle")
            if stop_event.wait(delay):
                break
        logger.info("Monitor scheduler loop exited")

    # ==================== Cycles ====================

    def delay_after(self, result: CycleResult) -> float:
        """Seconds until the next tick."""
        return self.interval_seconds if result.overall_success else self.backoff_seconds

    def run_once(self) -> CycleResult:
        """Run one cycle now, serialized against any other cycle."""
        with self._cycle_lock:
            self._cycle_number += 1
            cycle_number = self._cycle_number
            started = utc_now()
            self.stats.last_run = started
            self.stats.total_runs += 1

            try:
                result = self.run_cycle(cycle_number)
            except Exception as e:
                logger.exception(f"Cycle {cycle_number} raised")
                result = CycleResult.crashed(cycle_number, started, e)

            self._record(result)
            return result

    def _record(self, result: CycleResult) -> None:
        self.last_result = result
        if result.overall_success:
            self.stats.last_success = result.completed_at
            self.stats.last_error = None
            self.stats.consecutive_failures = 0
        else:
            self.stats.last_error = result.error
            self.stats.total_failures += 1
            self.stats.consecutive_failures += 1
        self._update_health()

    def _update_health(self) -> None:
        old_status = self.stats.health_status
        failures = self.stats.consecutive_failures
        if failures == 0:
            self.stats.health_status = SchedulerHealth.HEALTHY
        elif failures < 3:
            self.stats.health_status = SchedulerHealth.DEGRADED
        else:
            self.stats.health_status = SchedulerHealth.UNHEALTHY

        if old_status != self.stats.health_status:
            logger.warning(
                f"Scheduler health changed: {old_status.value} -> "
                f"{self.stats.health_status.value} ({failures} consecutive failures)"
            )

        scheduler_health.set(
            {"healthy": 1, "degraded": 0.5, "unhealthy": 0}[self.stats.health_status.value]
        )

    def health(self) -> dict:
        s = self.stats
        return {
            "state": self._state.value,
            "health": s.health_status.value,
            "consecutive_failures": s.consecutive_failures,
            "total_failures": s.total_failures,
            "total_runs": s.total_runs,
            "last_error": s.last_error,
            "last_run": s.last_run.isoformat() if s.last_run else None,
            "last_success": s.last_success.isoformat() if s.last_success else None,
            "next_delay": self.next_delay,
            "last_cycle": self.last_result.to_dict() if self.last_result else None,
            "metrics": REGISTRY.to_dict(),
        }
