"""Observability for the PowerShell MCP server.

Provides:
- Correlation IDs, one per tool call
- JSON structured logging (stderr only; stdout carries protocol frames)
- In-memory per-tool call statistics, logged as a session summary on shutdown
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
import sys
from threading import Lock
import time
import uuid
from typing import Any

from pwsh_mcp.config import McpObservabilityConfig

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def generate_correlation_id() -> str:
    """Short random ID tying together the log lines of one tool call."""
    return uuid.uuid4().hex[:8]


def _utc_stamp(created: float) -> str:
    stamp = datetime.fromtimestamp(created, tz=timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line; call context comes from `extra=` fields."""

    EXTRA_FIELDS = ("tool", "latency_ms", "status", "error", "state")

    def __init__(self, include_correlation_id: bool = True):
        super().__init__()
        self.include_correlation_id = include_correlation_id

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": _utc_stamp(record.created),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        cid = getattr(record, "correlation_id", None)
        if cid and self.include_correlation_id:
            payload["cid"] = cid
        payload.update(
            (name, getattr(record, name)) for name in self.EXTRA_FIELDS if hasattr(record, name)
        )
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


@dataclass
class ToolStats:
    calls: int = 0
    errors: int = 0
    total_ms: float = 0.0
    fastest_ms: float | None = None
    slowest_ms: float = 0.0

    def add(self, latency_ms: float, success: bool) -> None:
        self.calls += 1
        if not success:
            self.errors += 1
        self.total_ms += latency_ms
        if self.fastest_ms is None or latency_ms < self.fastest_ms:
            self.fastest_ms = latency_ms
        self.slowest_ms = max(self.slowest_ms, latency_ms)

    def snapshot(self) -> dict[str, Any]:
        return {
            "calls": self.calls,
            "errors": self.errors,
            "avg_ms": round(self.total_ms / self.calls, 2) if self.calls else 0.0,
            "min_ms": round(self.fastest_ms, 2) if self.fastest_ms is not None else 0,
            "max_ms": round(self.slowest_ms, 2),
        }


class MetricsCollector:
    """Per-tool call counts, failures and latencies for the life of the process."""

    def __init__(self):
        self._lock = Lock()
        self._by_tool: dict[str, ToolStats] = {}
        self._started = time.monotonic()

    def record_call(self, tool: str, latency_ms: float, success: bool) -> None:
        with self._lock:
            self._by_tool.setdefault(tool, ToolStats()).add(latency_ms, success)

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            tools = {name: stats.snapshot() for name, stats in self._by_tool.items()}
        requests = sum(t["calls"] for t in tools.values())
        errors = sum(t["errors"] for t in tools.values())
        return {
            "uptime_s": round(time.monotonic() - self._started, 1),
            "total_requests": requests,
            "total_errors": errors,
            "error_rate": round(errors / requests, 4) if requests else 0,
            "tools": tools,
        }


class ObservabilityContext:
    """Correlation IDs are always handed out; metrics only when enabled."""

    def __init__(self, config: McpObservabilityConfig):
        self.config = config
        self.metrics = MetricsCollector()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def correlation_id(self) -> str:
        return generate_correlation_id()

    def record(self, tool: str, latency_ms: float, success: bool) -> None:
        if self.enabled:
            self.metrics.record_call(tool, latency_ms, success)

    def get_stats(self) -> dict[str, Any]:
        return self.metrics.get_stats()


def setup_logging(config: McpObservabilityConfig, logger_name: str = "pwsh-mcp") -> logging.Logger:
    """Give logger_name a single stderr handler in the configured format."""
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    if config.log_format == "json":
        formatter: logging.Formatter = JsonLogFormatter(config.include_correlation_id)
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.setLevel(level)

    logger = logging.getLogger(logger_name)
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(level)
    # child loggers (pwsh-mcp.runner etc.) reach this handler; root must not
    logger.propagate = False
    return logger
