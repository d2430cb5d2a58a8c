"""Tool registry: name → definition, with validated dispatch."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
import logging
from types import MappingProxyType
from typing import Any

from mcp.types import Tool

from pwsh_mcp.errors import (
    DuplicateToolError,
    RegistryFrozenError,
    UnknownToolError,
    ValidationError,
)
from pwsh_mcp.normalize import ToolResult, error_result, normalize_exception
from pwsh_mcp.schema import ParamSpec, input_schema, validate_arguments

logger = logging.getLogger("pwsh-mcp.registry")

ToolHandler = Callable[[dict[str, Any]], Awaitable[ToolResult]]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    params: tuple[ParamSpec, ...]
    handler: ToolHandler

    def to_mcp_tool(self) -> Tool:
        return Tool(
            name=self.name,
            description=self.description,
            inputSchema=input_schema(self.params),
        )


class ToolRegistry:
    """
    Holds every tool the server exposes.

    Tools are registered once at startup, then the registry is frozen.
    dispatch() only raises UnknownToolError; validation failures and handler
    exceptions come back as error envelopes.
    """

    def __init__(self):
        self._tools: dict[str, ToolDefinition] = {}
        self._frozen = False

    def register(
        self,
        name: str,
        description: str,
        params: Sequence[ParamSpec],
        handler: ToolHandler,
    ) -> ToolDefinition:
        if self._frozen:
            raise RegistryFrozenError(f"Cannot register '{name}': registry is frozen")
        if name in self._tools:
            raise DuplicateToolError(name)
        definition = ToolDefinition(
            name=name, description=description, params=tuple(params), handler=handler
        )
        self._tools[name] = definition
        logger.debug(f"Registered tool: {name}")
        return definition

    def freeze(self) -> ToolRegistry:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def tools(self) -> Mapping[str, ToolDefinition]:
        return MappingProxyType(self._tools)

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def definitions(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def to_mcp_tools(self) -> list[Tool]:
        return [d.to_mcp_tool() for d in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[str]:
        return iter(self._tools)

    async def dispatch(self, name: str, arguments: Mapping[str, Any] | None) -> ToolResult:
        definition = self._tools.get(name)
        if definition is None:
            raise UnknownToolError(name)

        try:
            params = validate_arguments(definition.params, arguments)
        except ValidationError as e:
            logger.info(f"Rejected {name}: {e}")
            return error_result(f"Invalid arguments for {name}: {e}")

        try:
            return await definition.handler(params)
        except Exception as e:
            logger.exception(f"Handler for {name} raised")
            return normalize_exception(e)
