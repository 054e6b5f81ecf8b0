"""
Unit Tests - Logging and Metrics
"""

import io
import json

import pytest

from lufykms.observability.logging import (
    BufferHandler,
    ConsoleHandler,
    LogLevel,
    StructuredLogger,
    configure_logging,
    get_logger,
)
from lufykms.observability.metrics import Counter, Histogram, MetricsCollector, Timer


class TestStructuredLogger:
    """Tests for StructuredLogger."""

    def test_level_filtering(self):
        buffer = BufferHandler()
        logger = StructuredLogger(level=LogLevel.WARNING, handlers=[buffer])

        logger.info("ignored")
        logger.warning("kept")
        assert buffer.messages() == ["kept"]

    def test_structured_data_and_context(self):
        buffer = BufferHandler()
        logger = StructuredLogger(level=LogLevel.DEBUG, handlers=[buffer])

        with logger.context(operation="search"):
            logger.info("Search completed", results=3)
        logger.info("outside")

        inside, outside = buffer.records
        assert inside.data == {"results": 3}
        assert inside.context == {"operation": "search"}
        assert outside.context == {}

    def test_error_details(self):
        buffer = BufferHandler()
        logger = StructuredLogger(handlers=[buffer])

        try:
            raise ValueError("boom")
        except ValueError as e:
            logger.error("Failed", error=e)

        record = buffer.records[0]
        assert record.error == "boom"
        assert record.error_type == "ValueError"
        assert "ValueError" in record.stack_trace

    def test_json_console_output(self):
        stream = io.StringIO()
        logger = StructuredLogger(handlers=[ConsoleHandler(stream=stream)])

        logger.info("Document added", document_id="abc")

        payload = json.loads(stream.getvalue())
        assert payload["message"] == "Document added"
        assert payload["level"] == "INFO"
        assert payload["data"] == {"document_id": "abc"}

    def test_text_console_output(self):
        stream = io.StringIO()
        handler = ConsoleHandler(stream=stream, json_output=False)
        logger = StructuredLogger(name="lufykms.search", handlers=[handler])

        logger.warning("Skipping document")
        assert "WARNING" in stream.getvalue()
        assert "[lufykms.search] Skipping document" in stream.getvalue()

    def test_failing_handler_is_contained(self):
        class Exploding(BufferHandler):
            def handle(self, record):
                raise RuntimeError("sink down")

        buffer = BufferHandler()
        logger = StructuredLogger(handlers=[Exploding(), buffer])
        logger.info("still delivered")
        assert buffer.messages() == ["still delivered"]

    def test_child_shares_handlers(self):
        buffer = BufferHandler()
        parent = StructuredLogger(name="lufykms", level=LogLevel.DEBUG, handlers=[buffer])
        parent.child("lufykms.store").debug("hello")
        assert buffer.records[0].logger_name == "lufykms.store"

    def test_configure_logging(self):
        buffer = BufferHandler()
        try:
            configure_logging(level="debug", handlers=[buffer])
            get_logger("lufykms.test").debug("configured")
            assert buffer.messages() == ["configured"]
        finally:
            configure_logging(level=LogLevel.INFO)


class TestMetrics:
    """Tests for the metrics collector."""

    def test_default_metrics_registered(self):
        metrics = MetricsCollector()
        assert metrics.counter("embedding_requests_total") is not None
        assert metrics.counter("embedding_cache_events_total") is not None
        assert metrics.histogram("embedding_latency_seconds") is not None
        assert metrics.counter("search_requests_total") is not None
        assert metrics.histogram("search_latency_seconds") is not None
        assert metrics.gauge("documents_total") is not None
        assert metrics.counter("cache_invalidations_total") is not None

    def test_counter_labels(self):
        counter = Counter("events")
        counter.inc(result="hit")
        counter.inc(result="hit")
        counter.inc(result="miss")
        assert counter.get(result="hit") == 2
        assert counter.get(result="miss") == 1

    def test_histogram_buckets_are_cumulative_once(self):
        histogram = Histogram("latency", buckets=(0.1, 1.0, float("inf")))
        histogram.observe(0.05)
        histogram.observe(0.5)
        histogram.observe(5.0)

        buckets = {v.labels["le"]: v.value for v in histogram.collect() if "le" in v.labels}
        assert buckets == {"0.1": 1, "1.0": 2, "inf": 3}
        assert histogram.get_count() == 3
        assert histogram.get_sum() == pytest.approx(5.55)

    def test_timer(self):
        histogram = Histogram("op")
        with Timer(histogram, op="search"):
            pass
        assert histogram.get_count(op="search") == 1

    def test_prometheus_export(self):
        metrics = MetricsCollector()
        metrics.counter("search_requests_total").inc(cache="hit")

        output = metrics.to_prometheus()
        assert "# TYPE lufykms_search_requests_total counter" in output
        assert 'lufykms_search_requests_total{cache="hit"} 1.0' in output
