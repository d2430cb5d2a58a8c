"""Tool catalogue: PowerShell execution, system monitoring, file system."""

from __future__ import annotations

from pwsh_mcp.registry import ToolRegistry
from pwsh_mcp.runner import ProcessRunner
from pwsh_mcp.tools.files import register_file_tools
from pwsh_mcp.tools.powershell import register_powershell_tools
from pwsh_mcp.tools.system import register_system_tools

__all__ = [
    "build_registry",
    "register_file_tools",
    "register_powershell_tools",
    "register_system_tools",
]


def build_registry(runner: ProcessRunner) -> ToolRegistry:
    """Register every tool against runner and return the frozen registry."""
    registry = ToolRegistry()
    register_powershell_tools(registry, runner)
    register_system_tools(registry, runner)
    register_file_tools(registry, runner)
    return registry.freeze()
