"""Tests for correlation IDs, JSON logging and metrics."""

import json
import logging
import sys

from pwsh_mcp.config import McpObservabilityConfig
from pwsh_mcp.observability import (
    JsonLogFormatter,
    MetricsCollector,
    ObservabilityContext,
    generate_correlation_id,
    setup_logging,
)


class TestCorrelationId:
    def test_format(self):
        cid = generate_correlation_id()
        assert len(cid) == 8
        int(cid, 16)

    def test_unique(self):
        ids = {generate_correlation_id() for _ in range(100)}
        assert len(ids) == 100


class TestJsonLogFormatter:
    def _record(self, **extra):
        record = logging.LogRecord(
            name="pwsh-mcp",
            level=logging.INFO,
            pathname="server.py",
            lineno=1,
            msg="call_tool done: %s",
            args=("get-process-list",),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_fields(self):
        data = json.loads(JsonLogFormatter().format(self._record()))
        assert data["level"] == "info"
        assert data["logger"] == "pwsh-mcp"
        assert data["msg"] == "call_tool done: get-process-list"
        assert data["ts"].endswith("Z")

    def test_extras_and_correlation_id(self):
        record = self._record(correlation_id="abc12345", tool="get-process-list", latency_ms=12.5)
        data = json.loads(JsonLogFormatter().format(record))
        assert data["cid"] == "abc12345"
        assert data["tool"] == "get-process-list"
        assert data["latency_ms"] == 12.5

    def test_correlation_id_can_be_suppressed(self):
        record = self._record(correlation_id="abc12345")
        data = json.loads(JsonLogFormatter(include_correlation_id=False).format(record))
        assert "cid" not in data


class TestMetricsCollector:
    def test_empty(self):
        stats = MetricsCollector().get_stats()
        assert stats["total_requests"] == 0
        assert stats["error_rate"] == 0
        assert stats["tools"] == {}

    def test_per_tool_stats(self):
        metrics = MetricsCollector()
        metrics.record_call("list-directory", 10.0, True)
        metrics.record_call("list-directory", 30.0, False)
        metrics.record_call("get-file-info", 5.0, True)

        stats = metrics.get_stats()
        assert stats["total_requests"] == 3
        assert stats["total_errors"] == 1
        assert stats["error_rate"] == round(1 / 3, 4)
        tool = stats["tools"]["list-directory"]
        assert tool == {"calls": 2, "errors": 1, "avg_ms": 20.0, "min_ms": 10.0, "max_ms": 30.0}


class TestObservabilityContext:
    def test_disabled_records_nothing(self):
        obs = ObservabilityContext(McpObservabilityConfig(enabled=False))
        obs.record("get-system-info", 1.0, True)
        assert obs.get_stats()["total_requests"] == 0

    def test_enabled_records(self):
        obs = ObservabilityContext(McpObservabilityConfig(enabled=True))
        obs.record("get-system-info", 1.0, True)
        assert obs.get_stats()["tools"]["get-system-info"]["calls"] == 1

    def test_correlation_id_always_available(self):
        obs = ObservabilityContext(McpObservabilityConfig(enabled=False))
        assert len(obs.correlation_id()) == 8


def test_setup_logging_writes_json_to_stderr():
    config = McpObservabilityConfig(enabled=True, log_format="json", log_level="debug")
    logger = setup_logging(config, "pwsh-mcp-test")

    assert logger.propagate is False
    assert logger.level == logging.DEBUG
    (handler,) = logger.handlers
    assert handler.stream is sys.stderr
    assert isinstance(handler.formatter, JsonLogFormatter)


def test_setup_logging_replaces_handlers():
    config = McpObservabilityConfig(log_format="text")
    setup_logging(config, "pwsh-mcp-test-2")
    logger = setup_logging(config, "pwsh-mcp-test-2")
    assert len(logger.handlers) == 1
    assert not isinstance(logger.handlers[0].formatter, JsonLogFormatter)
