"""Shared plumbing for interpreter-backed tools."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pwsh_mcp.normalize import ToolResult, normalize, normalize_exception

if TYPE_CHECKING:
    from pwsh_mcp.runner import ProcessRunner

logger = logging.getLogger("pwsh-mcp.tools")


async def run_command_tool(
    runner: ProcessRunner,
    command: str,
    *,
    working_directory: str | None = None,
) -> ToolResult:
    """Run command through the runner and normalize whatever happens."""
    try:
        result = await runner.run(command, working_directory=working_directory)
    except Exception as e:
        logger.exception("Process runner raised")
        return normalize_exception(e)
    return normalize(result)
