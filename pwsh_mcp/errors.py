"""
Error types for the PowerShell MCP server.

Every per-call failure is one of these, carrying an MCP-friendly error code.
"""

from __future__ import annotations


class PwshMcpError(Exception):
    """Base error for pwsh-mcp operations."""

    code: str = "PWSH_MCP_ERROR"

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class ValidationError(PwshMcpError):
    """Tool arguments do not match the declared parameter schema."""

    code = "INVALID_ARGUMENT"

    def __init__(self, message: str, *, parameter: str):
        super().__init__(message)
        self.parameter = parameter


class MissingParameterError(ValidationError):
    """A required parameter was not supplied."""

    code = "MISSING_PARAMETER"

    def __init__(self, parameter: str):
        super().__init__(f"Missing required parameter '{parameter}'", parameter=parameter)


class TypeMismatchError(ValidationError):
    """A parameter was supplied with the wrong type or an unknown enum value."""

    code = "TYPE_MISMATCH"

    def __init__(self, parameter: str, expected: str, received: object):
        super().__init__(
            f"Parameter '{parameter}' expected {expected}, got {_describe(received)}",
            parameter=parameter,
        )
        self.expected = expected


class ProcessLaunchError(PwshMcpError):
    """The interpreter executable could not be started."""

    code = "PROCESS_LAUNCH_FAILED"


class ProcessExecutionError(PwshMcpError):
    """The interpreter started but the submitted command failed."""

    code = "PROCESS_EXECUTION_FAILED"

    def __init__(self, message: str, *, exit_code: int | None = None):
        super().__init__(message)
        self.exit_code = exit_code


class ProcessTimeoutError(ProcessExecutionError):
    """The interpreter did not finish within the configured timeout."""

    code = "PROCESS_TIMEOUT"


class UnknownToolError(PwshMcpError):
    """No tool is registered under the requested name."""

    code = "UNKNOWN_TOOL"

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class DuplicateToolError(PwshMcpError):
    """A tool name was registered twice."""

    code = "DUPLICATE_TOOL"

    def __init__(self, name: str):
        super().__init__(f"Tool already registered: {name}")
        self.name = name


class RegistryFrozenError(PwshMcpError):
    """Registration attempted after startup finished."""

    code = "REGISTRY_FROZEN"


def _describe(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__
