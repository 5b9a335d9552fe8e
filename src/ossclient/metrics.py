"""Prometheus metrics definitions for the OSS client.

All metrics use the ``ossclient_`` prefix for namespace isolation. They
are registered in the global prometheus_client registry the first time
init_metrics() runs; when metrics are disabled in config the module-level
references stay ``None`` and nothing is registered.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# Flag indicating whether metrics have been initialised via init_metrics().
_initialized: bool = False

# ---------------------------------------------------------------------------
# Operation outcome counter and latency  (labels: operation[, status])
# ---------------------------------------------------------------------------
operations_total: Counter | None = None
operation_duration_seconds: Histogram | None = None

# ---------------------------------------------------------------------------
# Byte counters
# ---------------------------------------------------------------------------
bytes_sent_total: Counter | None = None
bytes_received_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics.

    Safe to call more than once; only the first call registers collectors.
    """
    global _initialized
    global operations_total, operation_duration_seconds
    global bytes_sent_total, bytes_received_total

    if _initialized:
        return

    operations_total = Counter(
        "ossclient_operations_total",
        "Total OSS client operations by type and outcome",
        ["operation", "status"],
    )

    operation_duration_seconds = Histogram(
        "ossclient_operation_duration_seconds",
        "OSS client operation latency in seconds",
        ["operation"],
    )

    bytes_sent_total = Counter(
        "ossclient_bytes_sent_total",
        "Total bytes sent in request bodies",
    )

    bytes_received_total = Counter(
        "ossclient_bytes_received_total",
        "Total bytes received in object bodies",
    )

    _initialized = True
