"""Operation observers: where the client reports latency and outcomes.

Every client operation ends in exactly one call to either on_success or
on_failure. Attributes always include ``latency_ms``; most include
``bucket``, ``key`` and ``request_id`` (the service's x-oss-request-id).
"""

import logging
from typing import Any, Protocol

from ossclient import metrics

logger = logging.getLogger(__name__)

# Operations whose ``size`` attribute counts bytes sent vs. received.
_UPLOAD_OPERATIONS = frozenset({"put_object", "upload_part"})
_DOWNLOAD_OPERATIONS = frozenset({"get_object"})


class Observer(Protocol):
    """Receives one callback per completed client operation."""

    def on_success(self, operation: str, attributes: dict[str, Any]) -> None:
        ...

    def on_failure(self, operation: str, attributes: dict[str, Any], error: Exception) -> None:
        ...


class LoggingObserver:
    """Logs each outcome as a structured record (extras carry attributes)."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def on_success(self, operation: str, attributes: dict[str, Any]) -> None:
        self._log.info(
            "OSS %s succeeded", operation, extra={"operation": operation, **attributes}
        )

    def on_failure(self, operation: str, attributes: dict[str, Any], error: Exception) -> None:
        self._log.error(
            "OSS %s failed",
            operation,
            extra={
                "operation": operation,
                "status": getattr(error, "http_status", None) or None,
                "error": str(error),
                **attributes,
            },
        )


class MetricsObserver:
    """Feeds the Prometheus collectors in ossclient.metrics."""

    def __init__(self) -> None:
        metrics.init_metrics()

    def _record(self, operation: str, status: str, attributes: dict[str, Any]) -> None:
        metrics.operations_total.labels(operation=operation, status=status).inc()
        latency_ms = attributes.get("latency_ms")
        if latency_ms is not None:
            metrics.operation_duration_seconds.labels(operation=operation).observe(
                latency_ms / 1000.0
            )

    def on_success(self, operation: str, attributes: dict[str, Any]) -> None:
        self._record(operation, "success", attributes)
        size = attributes.get("size")
        if size:
            if operation in _UPLOAD_OPERATIONS:
                metrics.bytes_sent_total.inc(size)
            elif operation in _DOWNLOAD_OPERATIONS:
                metrics.bytes_received_total.inc(size)

    def on_failure(self, operation: str, attributes: dict[str, Any], error: Exception) -> None:
        self._record(operation, "failure", attributes)


class CompositeObserver:
    """Fans each callback out to several observers, in order."""

    def __init__(self, *observers: Observer) -> None:
        self.observers = list(observers)

    def on_success(self, operation: str, attributes: dict[str, Any]) -> None:
        for observer in self.observers:
            observer.on_success(operation, attributes)

    def on_failure(self, operation: str, attributes: dict[str, Any], error: Exception) -> None:
        for observer in self.observers:
            observer.on_failure(operation, attributes, error)
