"""
PowerShell execution tools.

- execute-powershell: run a command, optionally from a working directory
- execute-powershell-script: run a .ps1 file with positional parameters
- create-powershell-script: write a .ps1 file and optionally mark it runnable
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from pwsh_mcp.quoting import quote_literal
from pwsh_mcp.schema import ParamKind, ParamSpec
from pwsh_mcp.tools.base import run_command_tool

if TYPE_CHECKING:
    from pwsh_mcp.normalize import ToolResult
    from pwsh_mcp.registry import ToolRegistry
    from pwsh_mcp.runner import ProcessRunner

EXECUTE_PARAMS = (
    ParamSpec("command", ParamKind.STRING, "The PowerShell command to execute", required=True),
    ParamSpec(
        "workingDirectory",
        ParamKind.STRING,
        "Optional working directory for command execution",
    ),
)

EXECUTE_SCRIPT_PARAMS = (
    ParamSpec(
        "scriptPath",
        ParamKind.STRING,
        "Path to the PowerShell script file (.ps1)",
        required=True,
    ),
    ParamSpec(
        "parameters",
        ParamKind.STRING_ARRAY,
        "Optional parameters to pass to the script",
    ),
    ParamSpec(
        "workingDirectory",
        ParamKind.STRING,
        "Optional working directory for script execution",
    ),
)

CREATE_SCRIPT_PARAMS = (
    ParamSpec(
        "scriptPath",
        ParamKind.STRING,
        "Path where to create the PowerShell script (.ps1)",
        required=True,
    ),
    ParamSpec("content", ParamKind.STRING, "PowerShell script content", required=True),
    ParamSpec(
        "executable",
        ParamKind.BOOL,
        "Make the script executable (default: true)",
        default=True,
    ),
)


def build_script_command(script_path: str, parameters: Sequence[str] = ()) -> str:
    """Call operator invocation with every argument as its own literal."""
    parts = ["&", quote_literal(script_path)]
    parts.extend(quote_literal(p) for p in parameters)
    return " ".join(parts)


def build_create_script_command(script_path: str, content: str, executable: bool = True) -> str:
    path = quote_literal(script_path)
    lines = [f"Set-Content -LiteralPath {path} -Value {quote_literal(content)} -Encoding UTF8"]
    if executable:
        # $IsLinux/$IsMacOS are unset (falsy) on Windows PowerShell 5.1
        lines.append(
            f"if ($IsLinux -or $IsMacOS) {{ & chmod +x -- {path} }} "
            f"else {{ Unblock-File -LiteralPath {path} }}"
        )
    lines.append(f"Write-Output ('Script created successfully at: ' + {path})")
    return "\n".join(lines)


def register_powershell_tools(registry: ToolRegistry, runner: ProcessRunner) -> None:
    async def execute_powershell(args: dict[str, Any]) -> ToolResult:
        return await run_command_tool(
            runner, args["command"], working_directory=args.get("workingDirectory")
        )

    async def execute_powershell_script(args: dict[str, Any]) -> ToolResult:
        command = build_script_command(args["scriptPath"], args.get("parameters") or [])
        return await run_command_tool(
            runner, command, working_directory=args.get("workingDirectory")
        )

    async def create_powershell_script(args: dict[str, Any]) -> ToolResult:
        command = build_create_script_command(
            args["scriptPath"], args["content"], args["executable"]
        )
        return await run_command_tool(runner, command)

    registry.register(
        "execute-powershell",
        "Execute a PowerShell command with optional working directory",
        EXECUTE_PARAMS,
        execute_powershell,
    )
    registry.register(
        "execute-powershell-script",
        "Execute a PowerShell script file with optional parameters",
        EXECUTE_SCRIPT_PARAMS,
        execute_powershell_script,
    )
    registry.register(
        "create-powershell-script",
        "Create a new PowerShell script file with specified content",
        CREATE_SCRIPT_PARAMS,
        create_powershell_script,
    )
