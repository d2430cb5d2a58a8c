"""Response normalizer: every tool outcome becomes the same CallToolResult envelope."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from mcp.types import CallToolResult, TextContent

# Envelope returned across the transport boundary
ToolResult = CallToolResult

ERROR_PREFIX = "Error executing command: "


@dataclass
class ExecutionResult:
    """Result of one interpreter run."""

    success: bool
    output: str = ""
    error_message: str | None = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )
    duration_ms: float = 0.0


def text_result(text: str) -> ToolResult:
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=False)


def error_result(message: str) -> ToolResult:
    return CallToolResult(content=[TextContent(type="text", text=message)], isError=True)


def normalize(result: ExecutionResult) -> ToolResult:
    """Map an ExecutionResult onto the response envelope."""
    if result.success:
        return text_result(result.output)
    return error_result(ERROR_PREFIX + (result.error_message or "unknown error"))


def normalize_exception(exc: BaseException) -> ToolResult:
    """Envelope for an exception that escaped a handler."""
    return error_result(ERROR_PREFIX + (str(exc) or type(exc).__name__))
