"""
Typed parameter descriptors and argument validation.

Tools declare their parameters as an ordered list of ParamSpec. The same list
renders the MCP inputSchema and validates incoming arguments before any
interpreter process is spawned.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pwsh_mcp.errors import MissingParameterError, TypeMismatchError


class ParamKind(str, Enum):
    STRING = "string"
    BOOL = "bool"
    INT = "int"
    ENUM = "enum"
    STRING_ARRAY = "array-of-string"


_JSON_TYPES = {
    ParamKind.STRING: "string",
    ParamKind.BOOL: "boolean",
    ParamKind.INT: "integer",
    ParamKind.ENUM: "string",
}


@dataclass(frozen=True)
class ParamSpec:
    """Declared parameter of a tool."""

    name: str
    kind: ParamKind
    description: str
    required: bool = False
    default: Any = None
    choices: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.kind is ParamKind.ENUM and not self.choices:
            raise ValueError(f"enum parameter '{self.name}' needs choices")
        if self.required and self.default is not None:
            raise ValueError(f"required parameter '{self.name}' cannot have a default")

    def json_schema(self) -> dict[str, Any]:
        if self.kind is ParamKind.STRING_ARRAY:
            schema: dict[str, Any] = {"type": "array", "items": {"type": "string"}}
        else:
            schema = {"type": _JSON_TYPES[self.kind]}
        if self.kind is ParamKind.ENUM:
            schema["enum"] = list(self.choices)
        schema["description"] = self.description
        if self.default is not None:
            schema["default"] = self.default
        return schema


def input_schema(params: Sequence[ParamSpec]) -> dict[str, Any]:
    """Build a JSON Schema object for an MCP Tool from parameter specs."""
    return {
        "type": "object",
        "properties": {p.name: p.json_schema() for p in params},
        "required": [p.name for p in params if p.required],
    }


def _coerce(spec: ParamSpec, value: Any) -> Any:
    kind = spec.kind
    if kind is ParamKind.STRING:
        if isinstance(value, str):
            return value
        raise TypeMismatchError(spec.name, "string", value)

    if kind is ParamKind.BOOL:
        if isinstance(value, bool):
            return value
        raise TypeMismatchError(spec.name, "boolean", value)

    if kind is ParamKind.INT:
        # bool is an int subclass; JSON clients may send 5.0 for 5
        if isinstance(value, bool):
            raise TypeMismatchError(spec.name, "integer", value)
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise TypeMismatchError(spec.name, "integer", value)

    if kind is ParamKind.ENUM:
        if isinstance(value, str) and value in spec.choices:
            return value
        raise TypeMismatchError(spec.name, f"one of {list(spec.choices)}", value)

    if kind is ParamKind.STRING_ARRAY:
        if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
            return list(value)
        raise TypeMismatchError(spec.name, "array of strings", value)

    raise AssertionError(f"unhandled parameter kind: {kind}")


def validate_arguments(
    params: Sequence[ParamSpec], arguments: Mapping[str, Any] | None
) -> dict[str, Any]:
    """
    Check arguments against declared params.

    Returns a new dict holding only declared parameters, with defaults filled
    in for absent optional ones. Extra arguments are dropped silently.

    Raises:
        MissingParameterError: required parameter absent or null
        TypeMismatchError: parameter present with the wrong type
    """
    arguments = arguments or {}
    validated: dict[str, Any] = {}
    for spec in params:
        value = arguments.get(spec.name)
        if value is None:
            if spec.required:
                raise MissingParameterError(spec.name)
            if spec.default is not None:
                validated[spec.name] = spec.default
            continue
        validated[spec.name] = _coerce(spec, value)
    return validated
