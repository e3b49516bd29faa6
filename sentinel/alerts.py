"""
Alert Publisher - best-effort delivery of watchlist state transitions.

publish() never raises into the caller and never blocks a monitoring cycle on
a slow sink. There is no delivery guarantee: alerts that cannot be handed off
or delivered are logged and dropped.

Publishers:
- LoggingAlertPublisher: one SECURITY ALERT log line per alert
- QueuedAlertPublisher: bounded queue drained by a worker thread into a sink
- FanoutAlertPublisher: several publishers, failures isolated per publisher

Sinks (plain callables taking an Alert):
- WebhookAlertSink: POSTs the alert JSON with httpx
"""

import logging
import queue
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

import httpx

from sentinel.errors import PublishError
from sentinel.models import format_ts, utc_now
from sentinel.observability.metrics import alerts_dropped, alerts_published

logger = logging.getLogger(__name__)


class AlertType(str, Enum):
    ENTRY_CREATED = "entry_created"
    ESCALATED = "escalated"


@dataclass(frozen=True)
class Alert:
    """A watchlist state transition. Fire-and-forget, never persisted."""

    type: AlertType
    account_id: str
    account_label: str
    metrics: dict[str, Any] = field(default_factory=dict)
    emitted_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "account_id": self.account_id,
            "account_label": self.account_label,
            "metrics": dict(self.metrics),
            "emitted_at": format_ts(self.emitted_at),
        }


class AlertPublisher(Protocol):
    def publish(self, alert: Alert) -> None:
        """Hand off an alert. Must not raise."""
        ...


AlertSink = Callable[[Alert], None]


def publish_safely(publisher: AlertPublisher, alert: Alert) -> None:
    """Publish through any publisher without letting a failure reach the caller."""
    try:
        publisher.publish(alert)
    except Exception as e:
        alerts_dropped.inc()
        logger.warning(f"Alert publisher failed for {alert.type.value}/{alert.account_id}: {e}")


class LoggingAlertPublisher:
    """Writes each alert to the log."""

    def __init__(self, level: int = logging.WARNING):
        self.level = level

    def publish(self, alert: Alert) -> None:
        logger.log(
            self.level,
            "SECURITY ALERT: %s for account %s (%s)",
            alert.type.value,
            alert.account_label,
            alert.account_id,
            extra={"alert": alert.to_dict()},
        )
        alerts_published.inc()


class FanoutAlertPublisher:
    """Publishes to every wrapped publisher; one failing never affects the others."""

    def __init__(self, publishers: Iterable[AlertPublisher]):
        self.publishers = list(publishers)

    def publish(self, alert: Alert) -> None:
        for publisher in self.publishers:
            publish_safely(publisher, alert)


_STOP = object()


class QueuedAlertPublisher:
    """
    Non-blocking hand-off to a sink running on its own worker thread.

    publish() only does a put_nowait; a full queue drops the alert. Sink
    exceptions are logged and dropped on the worker thread.
    """

    def __init__(self, sink: AlertSink, maxsize: int = 1000, name: str = "alert-publisher"):
        self.sink = sink
        self.name = name
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._closed = False

    def start(self) -> None:
        with self._lock:
            self._start_locked()

    def _start_locked(self) -> None:
        if self._thread is not None or self._closed:
            return
        self._thread = threading.Thread(target=self._drain, name=self.name, daemon=True)
        self._thread.start()

    def publish(self, alert: Alert) -> None:
        try:
            # close() flips _closed under the same lock, so no alert lands behind _STOP
            with self._lock:
                closed = self._closed
                if not closed:
                    self._start_locked()
                    self._queue.put_nowait(alert)
            if closed:
                alerts_dropped.inc()
                logger.warning(f"{self.name} closed, dropping {alert.type.value} alert")
        except queue.Full:
            alerts_dropped.inc()
            logger.warning(
                f"{self.name} queue full, dropping {alert.type.value} alert "
                f"for account {alert.account_id}"
            )
        except Exception as e:
            alerts_dropped.inc()
            logger.warning(f"{self.name} hand-off failed: {e}")

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self.sink(item)
                alerts_published.inc()
            except Exception as e:
                alerts_dropped.inc()
                logger.warning(f"{self.name} delivery failed for account {item.account_id}: {e}")
            finally:
                self._queue.task_done()

    def close(self, timeout: float = 5.0) -> None:
        """Stop accepting alerts, deliver what is queued, stop the worker."""
        with self._lock:
            self._closed = True
            thread = self._thread
        if thread is None:
            return
        try:
            self._queue.put(_STOP, timeout=timeout)
        except queue.Full:
            logger.warning(f"{self.name} could not stop cleanly, queue still full")
            return
        thread.join(timeout)


class WebhookAlertSink:
    """Delivers alerts as JSON POSTs to a webhook (e.g. a live dashboard relay)."""

    def __init__(self, webhook_url: str, timeout: float = 10.0, dry_run: bool = False):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.dry_run = dry_run

    def __call__(self, alert: Alert) -> None:
        payload = {"type": "security_alert", "alert": alert.to_dict()}

        if self.dry_run:
            logger.info("DRY RUN - alert webhook payload: %s", payload)
            return

        try:
            response = httpx.post(self.webhook_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PublishError(f"Alert webhook HTTP error: {e}") from e
        except httpx.RequestError as e:
            raise PublishError(f"Alert webhook request error: {e}") from e
