"""
Observability module: structured logging, cycle IDs, metrics.

Usage:
    from sentinel.observability import get_logger, CycleContext, REGISTRY

    logger = get_logger(__name__)

    with CycleContext(cycle_number=1):
        logger.info("Detector starting")

    REGISTRY.counter("monitor_cycles_total").inc()
"""

from .context import CycleContext, get_cycle_id, set_cycle_id
from .logging import JSONFormatter, configure_log_rotation, configure_logging, get_logger
from .metrics import REGISTRY, Counter, Gauge, Histogram

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "configure_log_rotation",
    "JSONFormatter",
    # Context
    "CycleContext",
    "get_cycle_id",
    "set_cycle_id",
    # Metrics
    "REGISTRY",
    "Counter",
    "Gauge",
    "Histogram",
]
