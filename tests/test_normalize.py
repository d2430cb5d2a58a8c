"""Tests for the response envelope."""

from datetime import datetime

from pwsh_mcp.errors import ProcessTimeoutError
from pwsh_mcp.normalize import (
    ERROR_PREFIX,
    ExecutionResult,
    error_result,
    normalize,
    normalize_exception,
    text_result,
)


def _text(result):
    assert len(result.content) == 1
    assert result.content[0].type == "text"
    return result.content[0].text


def test_success_passes_output_through():
    result = normalize(ExecutionResult(success=True, output='{"Name": "pwsh"}'))
    assert result.isError is False
    assert _text(result) == '{"Name": "pwsh"}'


def test_failure_is_prefixed():
    result = normalize(ExecutionResult(success=False, error_message="Access is denied."))
    assert result.isError is True
    assert _text(result) == "Error executing command: Access is denied."


def test_failure_without_message():
    result = normalize(ExecutionResult(success=False))
    assert _text(result) == ERROR_PREFIX + "unknown error"


def test_exception_envelope():
    result = normalize_exception(ProcessTimeoutError("Command timed out after 5s"))
    assert result.isError is True
    assert _text(result) == "Error executing command: Command timed out after 5s"


def test_exception_without_message_uses_type_name():
    assert _text(normalize_exception(RuntimeError())) == ERROR_PREFIX + "RuntimeError"


def test_text_and_error_results():
    assert text_result("ok").isError is False
    assert error_result("bad").isError is True
    assert _text(error_result("bad")) == "bad"


def test_timestamp_is_iso_utc():
    stamp = ExecutionResult(success=True).timestamp
    assert stamp.endswith("Z")
    datetime.fromisoformat(stamp.replace("Z", "+00:00"))
