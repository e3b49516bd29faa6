"""
One monitoring cycle: Detector, then Sweeper.

A failure in either phase aborts the rest of the cycle and is reported in the
CycleResult; it never propagates out of run(). Every log line emitted during
the cycle carries the cycle id.
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sentinel.activity import ActivityLogStore
from sentinel.alerts import AlertPublisher
from sentinel.config import MonitorConfig
from sentinel.cycle_result import CycleResult, PhaseResult
from sentinel.detector import Detector
from sentinel.directory import UserDirectory
from sentinel.errors import TransientStoreError
from sentinel.models import utc_now
from sentinel.observability.context import CycleContext
from sentinel.observability.metrics import cycle_duration, cycle_failures, cycles_run
from sentinel.sweeper import EscalationSweeper
from sentinel.watchlist import WatchlistRegistry

logger = logging.getLogger(__name__)


class MonitorCycle:
    """Runs Detector then Sweeper as one unit of work."""

    def __init__(self, detector: Detector, sweeper: EscalationSweeper):
        self.detector = detector
        self.sweeper = sweeper

    def run(self, cycle_number: int) -> CycleResult:
        started = utc_now()
        phases: list[PhaseResult] = []
        cycles_run.inc()

        with CycleContext(cycle_number) as ctx:
            logger.info(f"Running suspicious activity detection (cycle {cycle_number})")

            detection = self._run_phase("detect", self.detector.run, phases)
            if phases[-1].success:
                self._run_phase("sweep", lambda: self.sweeper.run(detection), phases)

            result = CycleResult.from_phases(cycle_number, started, phases, ctx.cycle_id)
            cycle_duration.observe(result.duration_seconds)
            if not result.overall_success:
                cycle_failures.inc()
                logger.warning(
                    f"Cycle {cycle_number} aborted in {result.failed_phases[0]} "
                    f"after {result.duration_seconds:.2f}s"
                )
            else:
                logger.info(f"Cycle {cycle_number} completed in {result.duration_seconds:.2f}s")

        return result

    @staticmethod
    def _run_phase(name: str, func: Callable[[], Any], phases: list[PhaseResult]) -> Any:
        start = time.perf_counter()
        try:
            value = func()
        except TransientStoreError as e:
            phases.append(
                PhaseResult(name, False, error=str(e), duration_seconds=time.perf_counter() - start)
            )
            logger.error(f"{name} failed, store unavailable: {e}")
            return None
        except Exception as e:
            phases.append(
                PhaseResult(
                    name,
                    False,
                    error=f"{type(e).__name__}: {e}"[:500],
                    duration_seconds=time.perf_counter() - start,
                )
            )
            logger.exception(f"{name} failed unexpectedly")
            return None

        data = value.to_dict() if hasattr(value, "to_dict") else {}
        phases.append(
            PhaseResult(name, True, duration_seconds=time.perf_counter() - start, data=data)
        )
        return value


def build_cycle(
    config: MonitorConfig,
    activity_log: ActivityLogStore,
    registry: WatchlistRegistry,
    directory: UserDirectory,
    publisher: AlertPublisher,
    clock: Callable[[], datetime] = utc_now,
) -> MonitorCycle:
    """Wire a Detector and Sweeper over the same collaborators."""
    detector = Detector(activity_log, registry, directory, publisher, config, clock=clock)
    sweeper = EscalationSweeper(activity_log, registry, directory, publisher, config, clock=clock)
    return MonitorCycle(detector, sweeper)
