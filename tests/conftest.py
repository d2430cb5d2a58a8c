"""Pytest fixtures for the PowerShell MCP server."""

from __future__ import annotations

import asyncio
import inspect
from pathlib import Path

import pytest

from pwsh_mcp.runner import ProcessRunner
from pwsh_mcp.tools import build_registry

WRITE_OUTPUT = "Write-Output "


def _unquote(token: str) -> str:
    if len(token) >= 2 and token[0] == token[-1] == "'":
        return token[1:-1].replace("''", "'")
    return token


def echo_responder(steps: list[str]) -> tuple[str, str, int]:
    """Pretend to be PowerShell: only Write-Output lines produce output."""
    lines = []
    for step in steps:
        for line in step.splitlines():
            if line.startswith(WRITE_OUTPUT):
                lines.append(_unquote(line[len(WRITE_OUTPUT):].strip()))
    stdout = "".join(f"{line}\n" for line in lines)
    return stdout, "", 0


class FakeProcess:
    """ProcessHandle double recording what was written and how often it was disposed."""

    def __init__(self, responder, executable: str, flags: tuple[str, ...]):
        self.responder = responder
        self.executable = executable
        self.flags = flags
        self.steps: list[str] = []
        self.exit_code: int | None = None
        self.error_output = ""
        self.dispose_calls = 0
        self.stall_writes = False

    async def write(self, text: str) -> None:
        if self.stall_writes:
            # interpreter that never drains its stdin
            await asyncio.Event().wait()
        self.steps.append(text)

    async def read_all(self) -> str:
        outcome = self.responder(self.steps)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        stdout, stderr, exit_code = outcome
        self.error_output = stderr
        self.exit_code = exit_code
        return stdout

    async def dispose(self) -> None:
        self.dispose_calls += 1


class RecordingSpawner:
    """ProcessSpawner double: counts spawns and disposals, captures command text."""

    def __init__(self, responder=echo_responder):
        self.responder = responder
        self.launch_error: Exception | None = None
        self.stall_writes = False
        self.spawned: list[FakeProcess] = []

    async def spawn(self, executable, flags):
        if self.launch_error is not None:
            raise self.launch_error
        handle = FakeProcess(self.responder, executable, tuple(flags))
        handle.stall_writes = self.stall_writes
        self.spawned.append(handle)
        return handle

    @property
    def spawn_count(self) -> int:
        return len(self.spawned)

    @property
    def dispose_count(self) -> int:
        return sum(h.dispose_calls for h in self.spawned)

    @property
    def last_command(self) -> str:
        return self.spawned[-1].steps[-1]


@pytest.fixture(autouse=True)
def hermetic_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Each test runs in its own tmp cwd with no PWSH_MCP_* leaking in."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "PWSH_MCP_CONFIG",
        "PWSH_MCP_ENABLED",
        "PWSH_MCP_LOG_LEVEL",
        "PWSH_MCP_EXECUTABLE",
        "PWSH_MCP_TIMEOUT",
        "PWSH_MCP_OBS_ENABLED",
        "PWSH_MCP_OBS_LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def spawner() -> RecordingSpawner:
    return RecordingSpawner()


@pytest.fixture
def runner(spawner: RecordingSpawner) -> ProcessRunner:
    return ProcessRunner("pwsh", spawner=spawner, timeout=5)


@pytest.fixture
def registry(runner: ProcessRunner):
    return build_registry(runner)
