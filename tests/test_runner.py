"""
Tests for the process runner.

Most tests drive ProcessRunner through the recording spawner from conftest.
The subprocess tests at the bottom use a small Python script standing in
for the interpreter so the real pipes, kill and reap paths are exercised.
"""

import asyncio
import base64
import re
import stat
import sys
import time

import pytest

from pwsh_mcp.config import McpInterpreterConfig
from pwsh_mcp.errors import ProcessLaunchError
from pwsh_mcp.runner import (
    FIXED_FLAGS,
    NO_OUTPUT_PLACEHOLDER,
    PREAMBLE,
    PowerShellSpawner,
    ProcessRunner,
    frame_step,
    set_location_command,
)


class TestProcessRunner:
    @pytest.mark.asyncio
    async def test_output_returned_without_trailing_newline(self, runner, spawner):
        result = await runner.run("Write-Output test")
        assert result.success is True
        assert result.output == "test"
        assert result.error_message is None
        assert spawner.spawn_count == 1
        assert spawner.dispose_count == 1

    @pytest.mark.asyncio
    async def test_fixed_flags(self, runner, spawner):
        await runner.run("Get-Date")
        handle = spawner.spawned[0]
        assert handle.executable == "pwsh"
        assert handle.flags == (
            "-NoProfile",
            "-ExecutionPolicy",
            "Bypass",
            "-NonInteractive",
            "-Command",
            "-",
        )

    @pytest.mark.asyncio
    async def test_empty_output_placeholder(self, runner):
        result = await runner.run("$null = 1")
        assert result.success is True
        assert result.output == NO_OUTPUT_PLACEHOLDER

    @pytest.mark.asyncio
    async def test_working_directory_set_before_command(self, runner, spawner):
        await runner.run("Get-ChildItem", working_directory="C:\\it's here")
        steps = spawner.spawned[0].steps
        assert steps == [
            "Set-Location -LiteralPath 'C:\\it''s here' -ErrorAction Stop",
            "Get-ChildItem",
        ]

    @pytest.mark.asyncio
    async def test_stderr_means_failure_even_with_zero_exit(self, runner, spawner):
        spawner.responder = lambda steps: ("partial\n", "Get-Item : Cannot find path\n", 0)
        result = await runner.run("Get-Item nope")
        assert result.success is False
        assert result.error_message == "Get-Item : Cannot find path"
        assert spawner.dispose_count == 1

    @pytest.mark.asyncio
    async def test_nonzero_exit_without_stderr(self, runner, spawner):
        spawner.responder = lambda steps: ("", "", 3)
        result = await runner.run("exit 3")
        assert result.success is False
        assert result.error_message == "Interpreter exited with code 3"

    @pytest.mark.asyncio
    async def test_nonzero_exit_falls_back_to_stdout(self, runner, spawner):
        spawner.responder = lambda steps: ("something went wrong\n", "", 1)
        result = await runner.run("throw")
        assert result.error_message == "something went wrong"

    @pytest.mark.asyncio
    async def test_launch_failure(self, runner, spawner):
        spawner.launch_error = ProcessLaunchError("Failed to start interpreter 'pwsh': not found")
        result = await runner.run("Get-Date")
        assert result.success is False
        assert "Failed to start interpreter" in result.error_message
        assert spawner.spawn_count == 0

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_reported_and_process_disposed(self, runner, spawner):
        def explode(steps):
            raise BrokenPipeError("pipe closed")

        spawner.responder = explode
        result = await runner.run("Get-Date")
        assert result.success is False
        assert result.error_message == "pipe closed"
        assert spawner.dispose_count == 1

    @pytest.mark.asyncio
    async def test_timeout_disposes_process(self, spawner):
        async def hang(steps):
            await asyncio.Event().wait()

        spawner.responder = hang
        runner = ProcessRunner("pwsh", spawner=spawner, timeout=0.05)
        result = await runner.run("Start-Sleep 60")
        assert result.success is False
        assert result.error_message == "Command timed out after 0.05s"
        assert spawner.dispose_count == 1

    @pytest.mark.asyncio
    async def test_timeout_covers_blocked_writes(self, spawner):
        spawner.stall_writes = True
        runner = ProcessRunner("pwsh", spawner=spawner, timeout=0.05)
        result = await runner.run("Write-Output x", working_directory="C:\\")
        assert result.success is False
        assert result.error_message == "Command timed out after 0.05s"
        assert spawner.dispose_count == 1

    @pytest.mark.asyncio
    async def test_cancellation_disposes_process(self, runner, spawner):
        started = asyncio.Event()

        async def hang(steps):
            started.set()
            await asyncio.Event().wait()

        spawner.responder = hang
        task = asyncio.create_task(runner.run("Start-Sleep 60"))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert spawner.dispose_count == 1

    @pytest.mark.asyncio
    async def test_each_run_gets_a_fresh_process(self, runner, spawner):
        await runner.run("Write-Output one")
        await runner.run("Write-Output two")
        assert spawner.spawn_count == 2
        assert all(h.dispose_calls == 1 for h in spawner.spawned)

    @pytest.mark.asyncio
    async def test_duration_recorded(self, runner):
        result = await runner.run("Write-Output x")
        assert result.duration_ms >= 0

    def test_zero_timeout_means_unbounded(self):
        assert ProcessRunner("pwsh", timeout=0).timeout is None
        assert ProcessRunner("pwsh").timeout is None

    def test_from_config(self, spawner):
        runner = ProcessRunner.from_config(
            McpInterpreterConfig(executable="/opt/pwsh/pwsh", timeout=30), spawner=spawner
        )
        assert runner.executable == "/opt/pwsh/pwsh"
        assert runner.timeout == 30
        assert runner.spawner is spawner


def test_frame_step_carries_text_intact():
    text = "$x = @'\nmulti 'line'\n'@\nWrite-Output $x"
    line = frame_step(text)
    assert "\n" not in line
    encoded = re.search(r"FromBase64String\('([A-Za-z0-9+/=]+)'\)", line).group(1)
    assert base64.b64decode(encoded).decode("utf-8") == text
    assert "exit 1" in line


def test_set_location_command_quotes_path():
    assert set_location_command("/tmp/a'b") == "Set-Location -LiteralPath '/tmp/a''b' -ErrorAction Stop"


STUB_INTERPRETER = """\
#!{python}
import sys
import time

mode = {mode!r}
if mode == "deaf":
    time.sleep(60)
lines = sys.stdin.read().splitlines()
if mode == "ok":
    print(" ".join(sys.argv[1:]))
    print(len(lines))
    print(lines[0])
elif mode == "fail":
    sys.stderr.write("boom\\n")
    sys.exit(1)
elif mode == "hang":
    time.sleep(60)
"""


@pytest.fixture
def stub_interpreter(tmp_path):
    """Factory for executable scripts that behave like a minimal interpreter."""

    def make(mode):
        path = tmp_path / f"fake-pwsh-{mode}"
        path.write_text(STUB_INTERPRETER.format(python=sys.executable, mode=mode))
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
        return str(path)

    return make


@pytest.mark.skipif(sys.platform == "win32", reason="shebang stub needs a POSIX host")
class TestSubprocess:
    @pytest.mark.asyncio
    async def test_real_pipes(self, stub_interpreter):
        runner = ProcessRunner(stub_interpreter("ok"), timeout=30)
        result = await runner.run("Get-Date", working_directory="/tmp")
        assert result.success is True
        argv, line_count, first_line = result.output.splitlines()
        assert argv == " ".join(FIXED_FLAGS)
        # preamble, Set-Location, command
        assert line_count == "3"
        assert first_line == PREAMBLE

    @pytest.mark.asyncio
    async def test_stderr_and_exit_code(self, stub_interpreter):
        runner = ProcessRunner(stub_interpreter("fail"), timeout=30)
        result = await runner.run("throw 'boom'")
        assert result.success is False
        assert result.error_message == "boom"

    @pytest.mark.asyncio
    async def test_timeout_kills_interpreter(self, stub_interpreter):
        spawner = PowerShellSpawner()
        handles = []
        original_spawn = spawner.spawn

        async def spawn(executable, flags):
            handle = await original_spawn(executable, flags)
            handles.append(handle)
            return handle

        spawner.spawn = spawn
        runner = ProcessRunner(stub_interpreter("hang"), spawner=spawner, timeout=0.5)

        started = time.monotonic()
        result = await runner.run("Start-Sleep 60")
        assert time.monotonic() - started < 20
        assert result.success is False
        assert "timed out" in result.error_message
        assert not handles[0].running

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path):
        spawner = PowerShellSpawner()
        with pytest.raises(ProcessLaunchError):
            await spawner.spawn(str(tmp_path / "no-such-pwsh"), FIXED_FLAGS)

        result = await ProcessRunner(str(tmp_path / "no-such-pwsh")).run("Get-Date")
        assert result.success is False
        assert result.error_message.startswith("Failed to start interpreter")

    @pytest.mark.asyncio
    async def test_timeout_when_interpreter_never_reads_stdin(self, stub_interpreter):
        runner = ProcessRunner(stub_interpreter("deaf"), timeout=0.5)
        # far larger than a pipe buffer, so writing blocks
        command = "Write-Output '" + "x" * 200_000 + "'"

        started = time.monotonic()
        result = await runner.run(command)
        assert time.monotonic() - started < 10
        assert result.success is False
        assert result.error_message == "Command timed out after 0.5s"
