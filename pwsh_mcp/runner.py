"""
Process runner for the PowerShell MCP server.

One interpreter process per call:
- Fixed flags (no profile, execution policy bypass, non-interactive, commands on stdin)
- Optional working directory set inside the same session
- Bounded timeout
- Disposal on every exit path (success, failure, timeout, cancellation)
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
import logging
import time
from typing import TYPE_CHECKING, Protocol

from pwsh_mcp.errors import (
    ProcessExecutionError,
    ProcessLaunchError,
    ProcessTimeoutError,
    PwshMcpError,
)
from pwsh_mcp.normalize import ExecutionResult
from pwsh_mcp.quoting import quote_literal

if TYPE_CHECKING:
    from pwsh_mcp.config import McpInterpreterConfig

logger = logging.getLogger("pwsh-mcp.runner")

FIXED_FLAGS: tuple[str, ...] = (
    "-NoProfile",
    "-ExecutionPolicy",
    "Bypass",
    "-NonInteractive",
    "-Command",
    "-",
)

NO_OUTPUT_PLACEHOLDER = "Command executed successfully with no output."

# Seconds to wait for a killed interpreter to be reaped
KILL_GRACE_SEC = 5.0

# First line of every session: UTF-8 stdout, no CLIXML progress records on stderr
PREAMBLE = (
    "[Console]::OutputEncoding = [System.Text.Encoding]::UTF8; "
    "$ProgressPreference = 'SilentlyContinue'"
)


class ProcessHandle(Protocol):
    """One live interpreter process."""

    exit_code: int | None
    error_output: str

    async def write(self, text: str) -> None: ...

    async def read_all(self) -> str: ...

    async def dispose(self) -> None: ...


class ProcessSpawner(Protocol):
    async def spawn(self, executable: str, flags: Sequence[str]) -> ProcessHandle: ...


def frame_step(text: str) -> str:
    """
    Encode one script step as a single stdin line.

    `-Command -` runs stdin line by line, which breaks multi-line statements
    and here-strings. Shipping the step base64-encoded and dot-sourcing it
    keeps the text intact and keeps session state (location, variables).
    A terminating error ends the session with exit code 1.
    """
    encoded = base64.b64encode(text.encode("utf-8")).decode("ascii")
    return (
        "try { . ([scriptblock]::Create([System.Text.Encoding]::UTF8.GetString("
        "[System.Convert]::FromBase64String('" + encoded + "')))) } "
        "catch { [Console]::Error.WriteLine($_.ToString()); exit 1 }"
    )


def set_location_command(working_directory: str) -> str:
    return f"Set-Location -LiteralPath {quote_literal(working_directory)} -ErrorAction Stop"


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


class PowerShellProcess:
    """ProcessHandle backed by an asyncio subprocess."""

    def __init__(self, proc: asyncio.subprocess.Process):
        self._proc = proc
        self._preamble_sent = False
        self._disposed = False
        self.exit_code: int | None = None
        self.error_output = ""

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def running(self) -> bool:
        return self._proc.returncode is None

    async def _send_line(self, line: str) -> None:
        stdin = self._proc.stdin
        if stdin is None:
            raise ProcessExecutionError("Interpreter stdin is not available")
        stdin.write((line + "\n").encode("utf-8"))
        await stdin.drain()

    async def write(self, text: str) -> None:
        if not self._preamble_sent:
            await self._send_line(PREAMBLE)
            self._preamble_sent = True
        await self._send_line(frame_step(text))

    async def read_all(self) -> str:
        """Close stdin, wait for exit, and return everything written to stdout."""
        stdin = self._proc.stdin
        if stdin is not None and not stdin.is_closing():
            # EOF on stdin is what ends a `-Command -` session
            stdin.close()
        stdout, stderr = await self._proc.communicate()
        self.exit_code = self._proc.returncode
        self.error_output = _decode(stderr)
        return _decode(stdout)

    async def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        proc = self._proc
        if proc.returncode is None:
            logger.debug(f"Killing interpreter pid={proc.pid}")
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            try:
                # communicate() drains the pipes so the exit can be observed
                await asyncio.wait_for(proc.communicate(), timeout=KILL_GRACE_SEC)
            except TimeoutError:
                logger.warning(f"Interpreter pid={proc.pid} not reaped after kill")
        if proc.stdin is not None and not proc.stdin.is_closing():
            proc.stdin.close()


class PowerShellSpawner:
    """Default spawner: asyncio subprocess with stdin/stdout/stderr pipes."""

    async def spawn(self, executable: str, flags: Sequence[str]) -> PowerShellProcess:
        try:
            proc = await asyncio.create_subprocess_exec(
                executable,
                *flags,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProcessLaunchError(f"Failed to start interpreter '{executable}': {e}") from e
        logger.debug(f"Spawned interpreter pid={proc.pid}: {executable}")
        return PowerShellProcess(proc)


class ProcessRunner:
    """Runs command text in a fresh interpreter process and reports an ExecutionResult."""

    def __init__(
        self,
        executable: str,
        *,
        spawner: ProcessSpawner | None = None,
        timeout: float | None = None,
    ):
        self.executable = executable
        self.flags = FIXED_FLAGS
        self.spawner: ProcessSpawner = spawner or PowerShellSpawner()
        # 0 or None = wait forever
        self.timeout = timeout or None

    @classmethod
    def from_config(
        cls, config: McpInterpreterConfig, spawner: ProcessSpawner | None = None
    ) -> ProcessRunner:
        return cls(config.executable, spawner=spawner, timeout=config.timeout)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[ProcessHandle]:
        """Spawn an interpreter and dispose of it when the block exits, however it exits."""
        handle = await self.spawner.spawn(self.executable, self.flags)
        try:
            yield handle
        finally:
            await handle.dispose()

    async def run(self, command_text: str, working_directory: str | None = None) -> ExecutionResult:
        """
        Execute command_text in a new interpreter process.

        Never raises for launch, execution or timeout failures; those come back
        as ExecutionResult(success=False) with the diagnostic text.
        """
        result = ExecutionResult(success=False)
        started = time.monotonic()
        try:
            output = await self._execute(command_text, working_directory)
        except PwshMcpError as e:
            logger.warning(f"Command failed ({e.code}): {e}")
            result.error_message = str(e)
        except Exception as e:
            logger.exception("Interpreter interaction failed")
            result.error_message = str(e) or type(e).__name__
        else:
            result.success = True
            result.output = output or NO_OUTPUT_PLACEHOLDER
        result.duration_ms = (time.monotonic() - started) * 1000
        return result

    async def _execute(self, command_text: str, working_directory: str | None) -> str:
        async with self.session() as handle:
            try:
                stdout = await asyncio.wait_for(
                    self._interact(handle, command_text, working_directory),
                    timeout=self.timeout,
                )
            except TimeoutError:
                raise ProcessTimeoutError(f"Command timed out after {self.timeout:g}s") from None

            errors = handle.error_output.strip()
            if handle.exit_code != 0 or errors:
                raise ProcessExecutionError(
                    errors or stdout.strip() or f"Interpreter exited with code {handle.exit_code}",
                    exit_code=handle.exit_code,
                )
            return stdout.rstrip("\r\n")

    async def _interact(
        self, handle: ProcessHandle, command_text: str, working_directory: str | None
    ) -> str:
        # Writes block once the stdin pipe is full
        if working_directory:
            await handle.write(set_location_command(working_directory))
        await handle.write(command_text)
        return await handle.read_all()
