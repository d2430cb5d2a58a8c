#!/usr/bin/env python3
"""
PowerShell MCP Server - Model Context Protocol interface to a PowerShell interpreter.

Supports stdio transport for Claude Desktop integration.
Run with: python -m pwsh_mcp

Tools:
- PowerShell: execute-powershell, execute-powershell-script, create-powershell-script
- System: get-system-info, get-process-list, get-service-status, check-disk-space
- Files: list-directory, get-file-info, search-files
"""  # noqa: I001

from __future__ import annotations

import asyncio
from enum import Enum
import json
import logging
import sys
import time
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool

from pwsh_mcp import __version__
from pwsh_mcp.config import McpConfig, load_config
from pwsh_mcp.errors import UnknownToolError
from pwsh_mcp.normalize import ToolResult, error_result, normalize_exception
from pwsh_mcp.observability import TEXT_FORMAT, ObservabilityContext, setup_logging
from pwsh_mcp.runner import ProcessRunner
from pwsh_mcp.tools import build_registry

logger = logging.getLogger("pwsh-mcp")

INSTRUCTIONS = (
    "Tools run PowerShell commands on the host. Each call starts a fresh interpreter "
    "(no profile, no state carried between calls). Failed calls return isError=true "
    "with the interpreter's error text."
)


class SessionState(str, Enum):
    STARTING = "starting"
    CONNECTED = "connected"
    IDLE = "idle"
    HANDLING = "handling"
    TERMINATED = "terminated"


class PwshMcpServer:
    """PowerShell MCP Server implementation."""

    def __init__(self, config: McpConfig, runner: ProcessRunner | None = None):
        self.config = config
        self.runner = runner or ProcessRunner.from_config(config.interpreter)
        self.registry = build_registry(self.runner)
        self.obs = ObservabilityContext(config.observability)
        self.server = Server(config.server.name, version=__version__, instructions=INSTRUCTIONS)
        self.state = SessionState.STARTING
        self._in_flight = 0

        self._register_handlers()
        logger.info(
            f"PowerShell MCP Server initialized ({len(self.registry)} tools, "
            f"interpreter={self.runner.executable})"
        )

    @property
    def tools(self) -> list[Tool]:
        return self.registry.to_mcp_tools()

    def _set_state(self, state: SessionState) -> None:
        if state is self.state:
            return
        logger.debug(f"session {self.state.value} -> {state.value}", extra={"state": state.value})
        self.state = state

    def _register_handlers(self):
        """Register MCP protocol handlers."""

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            logger.debug("list_tools called")
            return self.tools

        # Arguments are checked by the registry's own validator
        @self.server.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: dict[str, Any] | None) -> ToolResult:
            return await self.handle_call(name, arguments)

    async def handle_call(self, name: str, arguments: dict[str, Any] | None) -> ToolResult:
        """Dispatch one tool call. Never raises; every outcome is an envelope."""
        ctx = {"correlation_id": self.obs.correlation_id(), "tool": name}
        started = time.monotonic()

        self._in_flight += 1
        self._set_state(SessionState.HANDLING)
        logger.info(f"call_tool: {name}", extra=ctx)
        try:
            result = await self.registry.dispatch(name, arguments or {})
        except UnknownToolError as e:
            logger.warning(str(e), extra=ctx)
            result = error_result(str(e))
        except Exception as e:
            logger.exception(f"Tool {name} failed: {e}", extra=ctx)
            result = normalize_exception(e)
        finally:
            self._in_flight -= 1
            if self._in_flight == 0 and self.state is SessionState.HANDLING:
                self._set_state(SessionState.IDLE)

        latency_ms = (time.monotonic() - started) * 1000
        self.obs.record(name, latency_ms=latency_ms, success=not result.isError)

        detail = None
        if result.isError and result.content:
            detail = getattr(result.content[0], "text", None)
        logger.info(
            f"call_tool done: {name}",
            extra={
                **ctx,
                "latency_ms": round(latency_ms, 2),
                "status": "error" if result.isError else "ok",
                "error": detail,
            },
        )
        return result

    async def run(self):
        """Run the server with stdio transport until stdin closes."""
        logger.info("Starting PowerShell MCP server (stdio transport)")
        try:
            async with stdio_server() as (read_stream, write_stream):
                self._set_state(SessionState.CONNECTED)
                self._set_state(SessionState.IDLE)
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            self._set_state(SessionState.TERMINATED)
            if self.obs.enabled:
                logger.info(f"Session summary: {json.dumps(self.obs.get_stats())}")
            logger.info("PowerShell MCP server stopped")


def configure_logging(config: McpConfig) -> logging.Logger:
    """Send all diagnostics to stderr; stdout is reserved for JSON-RPC."""
    global logger  # noqa: PLW0603
    if config.observability.enabled:
        logger = setup_logging(config.observability, "pwsh-mcp")
    else:
        log_level = getattr(logging, config.server.log_level.upper(), logging.INFO)
        logging.basicConfig(level=log_level, format=TEXT_FORMAT, stream=sys.stderr)
        logging.getLogger().setLevel(log_level)
        logger.setLevel(log_level)
    return logger


def run_server(config: McpConfig) -> None:
    """Build the server for config and block until the session ends."""
    configure_logging(config)

    logger.info(f"Config loaded: enabled={config.enabled}, server={config.server.name}")
    logger.info(
        f"Interpreter: executable={config.interpreter.executable}, "
        f"timeout={config.interpreter.timeout}s"
    )
    logger.info(
        f"Observability: enabled={config.observability.enabled}, "
        f"log_format={config.observability.log_format}"
    )

    if not config.enabled:
        logger.warning("MCP server disabled in config, exiting")
        sys.exit(0)

    server = PwshMcpServer(config)
    try:
        asyncio.run(server.run())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


def main():
    """Entry point for the PowerShell MCP server."""
    import argparse

    parser = argparse.ArgumentParser(description="PowerShell MCP Server")
    parser.add_argument(
        "--config",
        "-c",
        help="Path to pwsh-mcp.toml config file",
        default=None,
    )
    parser.add_argument(
        "--log-level",
        "-l",
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Override log level",
    )
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ValueError as e:
        parser.exit(2, f"Invalid configuration: {e}\n")
    if args.log_level:
        config.server.log_level = args.log_level
        config.observability.log_level = args.log_level

    run_server(config)


if __name__ == "__main__":
    main()
