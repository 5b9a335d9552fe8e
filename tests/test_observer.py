"""Tests for operation observers and Prometheus metrics.

prometheus_client registers collectors in a global registry, so metrics
are initialised once and tests compare before/after sample values.
"""

import logging

import pytest
from prometheus_client import REGISTRY

from ossclient import metrics
from ossclient.errors import ServiceError
from ossclient.observer import CompositeObserver, LoggingObserver, MetricsObserver


def _sample(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


@pytest.fixture
def metrics_observer():
    return MetricsObserver()


class TestLoggingObserver:
    """Tests for LoggingObserver."""

    def test_success_logged_at_info_with_extras(self, caplog):
        observer = LoggingObserver()
        with caplog.at_level(logging.INFO, logger="ossclient.observer"):
            observer.on_success("put_object", {"bucket": "b", "key": "k", "latency_ms": 1.5})

        record = caplog.records[-1]
        assert record.levelno == logging.INFO
        assert record.getMessage() == "OSS put_object succeeded"
        assert record.operation == "put_object"
        assert record.bucket == "b"
        assert record.latency_ms == 1.5

    def test_failure_logged_at_error_with_status(self, caplog):
        observer = LoggingObserver()
        error = ServiceError("Failed to get object", http_status=503)
        with caplog.at_level(logging.INFO, logger="ossclient.observer"):
            observer.on_failure("get_object", {"key": "k"}, error)

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.getMessage() == "OSS get_object failed"
        assert record.status == 503
        assert record.error == "Failed to get object"

    def test_custom_logger(self, caplog):
        log = logging.getLogger("custom.oss")
        with caplog.at_level(logging.INFO, logger="custom.oss"):
            LoggingObserver(log).on_success("head_object", {})
        assert caplog.records[-1].name == "custom.oss"


class TestMetricsObserver:
    """Tests for MetricsObserver."""

    def test_init_is_idempotent(self, metrics_observer):
        counter = metrics.operations_total
        MetricsObserver()
        assert metrics.operations_total is counter

    def test_success_counted(self, metrics_observer):
        labels = {"operation": "list_objects", "status": "success"}
        before = _sample("ossclient_operations_total", labels)
        metrics_observer.on_success("list_objects", {"latency_ms": 12.0})
        assert _sample("ossclient_operations_total", labels) == before + 1

    def test_failure_counted(self, metrics_observer):
        labels = {"operation": "delete_object", "status": "failure"}
        before = _sample("ossclient_operations_total", labels)
        metrics_observer.on_failure("delete_object", {"latency_ms": 3.0}, ServiceError("x"))
        assert _sample("ossclient_operations_total", labels) == before + 1

    def test_latency_observed_in_seconds(self, metrics_observer):
        labels = {"operation": "head_object"}
        count_before = _sample("ossclient_operation_duration_seconds_count", labels)
        sum_before = _sample("ossclient_operation_duration_seconds_sum", labels)
        metrics_observer.on_success("head_object", {"latency_ms": 250.0})
        assert _sample("ossclient_operation_duration_seconds_count", labels) == count_before + 1
        assert _sample("ossclient_operation_duration_seconds_sum", labels) == pytest.approx(
            sum_before + 0.25
        )

    def test_bytes_sent_and_received(self, metrics_observer):
        sent_before = _sample("ossclient_bytes_sent_total")
        received_before = _sample("ossclient_bytes_received_total")

        metrics_observer.on_success("put_object", {"size": 100})
        metrics_observer.on_success("upload_part", {"size": 50})
        metrics_observer.on_success("get_object", {"size": 7})
        metrics_observer.on_success("head_object", {"size": 1000})

        assert _sample("ossclient_bytes_sent_total") == sent_before + 150
        assert _sample("ossclient_bytes_received_total") == received_before + 7


class TestCompositeObserver:
    """Tests for CompositeObserver fan-out."""

    def test_fans_out_in_order(self):
        calls = []

        class Recorder:
            def __init__(self, name):
                self.name = name

            def on_success(self, operation, attributes):
                calls.append((self.name, "success", operation))

            def on_failure(self, operation, attributes, error):
                calls.append((self.name, "failure", operation))

        composite = CompositeObserver(Recorder("a"), Recorder("b"))
        composite.on_success("put_object", {})
        composite.on_failure("get_object", {}, ServiceError("x"))

        assert calls == [
            ("a", "success", "put_object"),
            ("b", "success", "put_object"),
            ("a", "failure", "get_object"),
            ("b", "failure", "get_object"),
        ]
