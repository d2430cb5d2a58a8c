"""Interpreter health check: can we start it, and which version is it."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from pwsh_mcp.runner import ProcessRunner

logger = logging.getLogger("pwsh-mcp.health")

HEALTH_PROBE = "Write-Output 'PowerShell Health Check OK'"
VERSION_PROBE = "$PSVersionTable.PSVersion.ToString()"


@dataclass
class HealthReport:
    healthy: bool
    message: str
    version: str = "Unknown"
    executable: str = ""

    def to_dict(self) -> dict:
        return {
            "healthy": self.healthy,
            "message": self.message,
            "version": self.version,
            "executable": self.executable,
        }


async def check_interpreter(runner: ProcessRunner) -> HealthReport:
    """Run the probe commands, each in its own process."""
    probe = await runner.run(HEALTH_PROBE)
    if not probe.success:
        logger.warning(f"Interpreter health check failed: {probe.error_message}")
        return HealthReport(
            healthy=False,
            message=probe.error_message or "unknown error",
            executable=runner.executable,
        )

    version = await runner.run(VERSION_PROBE)
    return HealthReport(
        healthy=True,
        message=probe.output.strip(),
        version=version.output.strip() if version.success else "Unknown",
        executable=runner.executable,
    )
