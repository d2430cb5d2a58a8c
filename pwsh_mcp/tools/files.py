"""
File system tools.

- list-directory: directory contents, simple or detailed
- get-file-info: metadata for one file or directory
- search-files: wildcard search, optionally recursive
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pwsh_mcp.quoting import quote_literal
from pwsh_mcp.schema import ParamKind, ParamSpec
from pwsh_mcp.tools.base import run_command_tool

if TYPE_CHECKING:
    from pwsh_mcp.normalize import ToolResult
    from pwsh_mcp.registry import ToolRegistry
    from pwsh_mcp.runner import ProcessRunner

ITEM_TYPE_COLUMN = "@{Name='Type';Expression={if ($_.PSIsContainer) { 'Directory' } else { 'File' }}}"

LIST_DIRECTORY_PARAMS = (
    ParamSpec("path", ParamKind.STRING, "Directory path to list", required=True),
    ParamSpec(
        "detailed",
        ParamKind.BOOL,
        "Show detailed information (like ls -la)",
        default=False,
    ),
    ParamSpec(
        "filter",
        ParamKind.STRING,
        'Optional file filter pattern (e.g., "*.txt", "*.ps1")',
    ),
)

FILE_INFO_PARAMS = (
    ParamSpec("path", ParamKind.STRING, "Path to the file or directory", required=True),
)

SEARCH_FILES_PARAMS = (
    ParamSpec("searchPath", ParamKind.STRING, "Directory path to search in", required=True),
    ParamSpec(
        "pattern",
        ParamKind.STRING,
        "Search pattern (supports wildcards like *.txt, *config*)",
        required=True,
    ),
    ParamSpec(
        "recursive",
        ParamKind.BOOL,
        "Search recursively in subdirectories",
        default=True,
    ),
    ParamSpec(
        "limit",
        ParamKind.INT,
        "Maximum number of results to return",
        default=50,
    ),
)


def build_list_directory_command(
    path: str, detailed: bool = False, filter_pattern: str | None = None
) -> str:
    command = f"Get-ChildItem -LiteralPath {quote_literal(path)}"
    if filter_pattern:
        command += f" -Filter {quote_literal(filter_pattern)}"
    command += " -ErrorAction SilentlyContinue"
    if detailed:
        command += " | Select-Object Mode, LastWriteTime, Length, Name, FullName"
    else:
        command += f" | Select-Object Name, {ITEM_TYPE_COLUMN}, LastWriteTime"
    return command + " | ConvertTo-Json"


def build_file_info_command(path: str) -> str:
    target = quote_literal(path)
    return f"""\
$item = Get-Item -LiteralPath {target} -ErrorAction SilentlyContinue
if ($item) {{
  $size = 'N/A'
  if (-not $item.PSIsContainer) {{
    $size = "$([math]::Round($item.Length / 1KB, 2)) KB"
    if ($item.Length -gt 1GB) {{ $size = "$([math]::Round($item.Length / 1GB, 2)) GB" }}
    elseif ($item.Length -gt 1MB) {{ $size = "$([math]::Round($item.Length / 1MB, 2)) MB" }}
  }}
  [ordered]@{{
    'Name' = $item.Name
    'FullName' = $item.FullName
    'Type' = if ($item.PSIsContainer) {{ 'Directory' }} else {{ 'File' }}
    'Size' = $size
    'Created' = $item.CreationTime.ToString('o')
    'Modified' = $item.LastWriteTime.ToString('o')
    'Accessed' = $item.LastAccessTime.ToString('o')
    'Attributes' = $item.Attributes.ToString()
    'Extension' = if ($item.PSIsContainer) {{ 'N/A' }} else {{ $item.Extension }}
  }} | ConvertTo-Json
}} else {{
  Write-Error ('File or directory not found: ' + {target})
}}"""


def build_search_files_command(
    search_path: str, pattern: str, recursive: bool = True, limit: int = 50
) -> str:
    command = f"Get-ChildItem -LiteralPath {quote_literal(search_path)} -Filter {quote_literal(pattern)}"
    if recursive:
        command += " -Recurse"
    command += (
        f" -ErrorAction SilentlyContinue | Select-Object -First {max(1, int(limit))}"
        f" Name, FullName, {ITEM_TYPE_COLUMN}, LastWriteTime | ConvertTo-Json"
    )
    return command


def register_file_tools(registry: ToolRegistry, runner: ProcessRunner) -> None:
    async def list_directory(args: dict[str, Any]) -> ToolResult:
        command = build_list_directory_command(args["path"], args["detailed"], args.get("filter"))
        return await run_command_tool(runner, command)

    async def get_file_info(args: dict[str, Any]) -> ToolResult:
        return await run_command_tool(runner, build_file_info_command(args["path"]))

    async def search_files(args: dict[str, Any]) -> ToolResult:
        command = build_search_files_command(
            args["searchPath"], args["pattern"], args["recursive"], args["limit"]
        )
        return await run_command_tool(runner, command)

    registry.register(
        "list-directory",
        "List contents of a directory with detailed information",
        LIST_DIRECTORY_PARAMS,
        list_directory,
    )
    registry.register(
        "get-file-info",
        "Get detailed information about a file or directory",
        FILE_INFO_PARAMS,
        get_file_info,
    )
    registry.register(
        "search-files",
        "Search for files and directories matching a pattern",
        SEARCH_FILES_PARAMS,
        search_files,
    )
