"""
System information and monitoring tools.

- get-system-info: OS, CPU, memory, uptime
- get-process-list: processes sorted by CPU, memory or name
- get-service-status: services, optionally filtered by name and status
- check-disk-space: logical disk usage
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pwsh_mcp.quoting import quote_literal, quote_wildcard
from pwsh_mcp.schema import ParamKind, ParamSpec
from pwsh_mcp.tools.base import run_command_tool

if TYPE_CHECKING:
    from pwsh_mcp.normalize import ToolResult
    from pwsh_mcp.registry import ToolRegistry
    from pwsh_mcp.runner import ProcessRunner

# sortBy value -> Process property
SORT_PROPERTIES = {
    "CPU": "CPU",
    "Memory": "WorkingSet",
    "Name": "Name",
}

SERVICE_STATUSES = {
    "Running": "Running",
    "Stopped": "Stopped",
}

PROCESS_LIST_PARAMS = (
    ParamSpec("processName", ParamKind.STRING, "Optional process name filter"),
    ParamSpec(
        "sortBy",
        ParamKind.ENUM,
        "Sort processes by CPU, Memory, or Name",
        default="CPU",
        choices=tuple(SORT_PROPERTIES),
    ),
    ParamSpec(
        "limit",
        ParamKind.INT,
        "Maximum number of processes to return (default: 10)",
        default=10,
    ),
)

SERVICE_STATUS_PARAMS = (
    ParamSpec("serviceName", ParamKind.STRING, "Optional service name filter"),
    ParamSpec(
        "status",
        ParamKind.ENUM,
        "Filter by service status",
        default="All",
        choices=("Running", "Stopped", "All"),
    ),
)

DISK_SPACE_PARAMS = (
    ParamSpec(
        "drive",
        ParamKind.STRING,
        'Optional drive letter (e.g., "C:", "D:") to check specific drive',
    ),
)

SYSTEM_INFO_COMMAND = """\
$os = Get-CimInstance -ClassName Win32_OperatingSystem
$cpu = @(Get-CimInstance -ClassName Win32_Processor)
$cs = Get-CimInstance -ClassName Win32_ComputerSystem
[ordered]@{
  'Computer Name' = $env:COMPUTERNAME
  'OS Name' = $os.Caption
  'OS Version' = $os.Version
  'Build Number' = $os.BuildNumber
  'Total RAM (GB)' = [math]::Round($cs.TotalPhysicalMemory / 1GB, 2)
  'CPU Name' = ($cpu | Select-Object -First 1).Name
  'CPU Cores' = ($cpu | Measure-Object -Property NumberOfCores -Sum).Sum
  'CPU Logical Processors' = ($cpu | Measure-Object -Property NumberOfLogicalProcessors -Sum).Sum
  'System Uptime' = ((Get-Date) - $os.LastBootUpTime).ToString()
  'Last Boot Time' = $os.LastBootUpTime.ToString('o')
  'Current User' = $env:USERNAME
  'Computer Domain' = $cs.Domain
  'TimeZone' = (Get-TimeZone).Id
} | ConvertTo-Json -Depth 2"""


def build_process_list_command(
    process_name: str | None = None, sort_by: str = "CPU", limit: int = 10
) -> str:
    command = "Get-Process"
    if process_name:
        command += f" -Name {quote_wildcard(process_name)} -ErrorAction SilentlyContinue"
    command += (
        f" | Sort-Object {SORT_PROPERTIES[sort_by]} -Descending"
        f" | Select-Object -First {max(1, int(limit))} Name, Id, CPU,"
        " @{Name='Memory(MB)';Expression={[math]::Round($_.WorkingSet / 1MB, 2)}}, ProcessName"
        " | ConvertTo-Json"
    )
    return command


def build_service_status_command(service_name: str | None = None, status: str = "All") -> str:
    command = "Get-Service"
    if service_name:
        command += f" -Name {quote_wildcard(service_name)} -ErrorAction SilentlyContinue"
    if status != "All":
        command += f" | Where-Object {{ $_.Status -eq '{SERVICE_STATUSES[status]}' }}"
    command += " | Select-Object Name, Status, StartType, DisplayName | Sort-Object Name | ConvertTo-Json"
    return command


def build_disk_space_command(drive: str | None = None) -> str:
    command = "Get-CimInstance -ClassName Win32_LogicalDisk"
    if drive:
        command += f" | Where-Object {{ $_.DeviceID -eq {quote_literal(drive.upper())} }}"
    command += (
        " | Select-Object DeviceID,"
        " @{Name='Size(GB)';Expression={[math]::Round($_.Size / 1GB, 2)}},"
        " @{Name='FreeSpace(GB)';Expression={[math]::Round($_.FreeSpace / 1GB, 2)}},"
        " @{Name='UsedSpace(GB)';Expression={[math]::Round(($_.Size - $_.FreeSpace) / 1GB, 2)}},"
        " @{Name='PercentFree';Expression={if ($_.Size) { [math]::Round(($_.FreeSpace / $_.Size) * 100, 2) } else { 0 }}},"
        " FileSystem, VolumeName"
        " | ConvertTo-Json"
    )
    return command


def register_system_tools(registry: ToolRegistry, runner: ProcessRunner) -> None:
    async def get_system_info(args: dict[str, Any]) -> ToolResult:
        return await run_command_tool(runner, SYSTEM_INFO_COMMAND)

    async def get_process_list(args: dict[str, Any]) -> ToolResult:
        command = build_process_list_command(
            args.get("processName"), args["sortBy"], args["limit"]
        )
        return await run_command_tool(runner, command)

    async def get_service_status(args: dict[str, Any]) -> ToolResult:
        command = build_service_status_command(args.get("serviceName"), args["status"])
        return await run_command_tool(runner, command)

    async def check_disk_space(args: dict[str, Any]) -> ToolResult:
        return await run_command_tool(runner, build_disk_space_command(args.get("drive")))

    registry.register(
        "get-system-info",
        "Get comprehensive Windows system information including hardware, OS, and performance metrics",
        (),
        get_system_info,
    )
    registry.register(
        "get-process-list",
        "Get list of running processes with CPU and memory usage, optionally filtered by name",
        PROCESS_LIST_PARAMS,
        get_process_list,
    )
    registry.register(
        "get-service-status",
        "Get Windows service status, optionally filtered by service name or status",
        SERVICE_STATUS_PARAMS,
        get_service_status,
    )
    registry.register(
        "check-disk-space",
        "Check disk space usage for all drives or a specific drive",
        DISK_SPACE_PARAMS,
        check_disk_space,
    )
