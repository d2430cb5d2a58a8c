"""MCP configuration loader - reads from pwsh-mcp.toml with ENV overrides."""  # noqa: I001

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, fields
import os
from pathlib import Path
import sys
import tomllib
from typing import Any

LOG_LEVELS = ("debug", "info", "warning", "error")
TRUTHY = ("1", "true", "yes")


def _default_executable() -> str:
    # Windows PowerShell ships everywhere on Windows; PowerShell 7 is "pwsh" elsewhere
    return "powershell" if sys.platform == "win32" else "pwsh"


@dataclass
class McpServerConfig:
    """Server identity and logging."""

    name: str = "powershell-mcp-server"
    log_level: str = "info"

    def validate(self) -> None:
        if self.log_level.lower() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")


@dataclass
class McpInterpreterConfig:
    """External interpreter settings."""

    executable: str = field(default_factory=_default_executable)
    timeout: float = 120  # seconds, 0 = unbounded

    def validate(self) -> None:
        if not self.executable or not self.executable.strip():
            raise ValueError("interpreter executable must not be empty")
        if self.timeout < 0:
            raise ValueError("timeout must be >= 0")


@dataclass
class McpObservabilityConfig:
    """Observability settings."""

    enabled: bool = False
    log_format: str = "text"  # "json" | "text"
    log_level: str = "info"
    include_correlation_id: bool = True

    def validate(self) -> None:
        if self.log_format not in ("json", "text"):
            raise ValueError(f"Invalid log_format: {self.log_format}")
        if self.log_level.lower() not in LOG_LEVELS:
            raise ValueError(f"Invalid observability log_level: {self.log_level}")


@dataclass
class McpConfig:
    """Root configuration."""

    enabled: bool = True
    server: McpServerConfig = field(default_factory=McpServerConfig)
    interpreter: McpInterpreterConfig = field(default_factory=McpInterpreterConfig)
    observability: McpObservabilityConfig = field(default_factory=McpObservabilityConfig)

    def validate(self) -> None:
        self.server.validate()
        self.interpreter.validate()
        self.observability.validate()


def _truthy(raw: str) -> bool:
    return raw.strip().lower() in TRUTHY


# env var -> (section, field, parser)
ENV_OVERRIDES: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "PWSH_MCP_LOG_LEVEL": ("server", "log_level", str),
    "PWSH_MCP_EXECUTABLE": ("interpreter", "executable", str),
    "PWSH_MCP_TIMEOUT": ("interpreter", "timeout", float),
    "PWSH_MCP_OBS_ENABLED": ("observability", "enabled", _truthy),
    "PWSH_MCP_OBS_LOG_FORMAT": ("observability", "log_format", str),
}

SECTIONS = ("server", "interpreter", "observability")


def _apply_env_overrides(cfg: McpConfig) -> McpConfig:
    """Apply PWSH_MCP_* environment variables. ENV beats TOML."""
    raw_enabled = os.getenv("PWSH_MCP_ENABLED")
    if raw_enabled:
        cfg.enabled = _truthy(raw_enabled)

    for var, (section, name, parse) in ENV_OVERRIDES.items():
        raw = os.getenv(var)
        if not raw:
            continue
        try:
            value = parse(raw)
        except ValueError:
            raise ValueError(f"{var} has an invalid value: {raw!r}") from None
        setattr(getattr(cfg, section), name, value)

    return cfg


def _checked(key: str, value: Any, current: Any) -> Any:
    """Return value if it has the same kind as the current setting, else raise ValueError."""
    if isinstance(current, bool):
        ok, expected = isinstance(value, bool), "a boolean"
    elif isinstance(current, (int, float)):
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        expected = "a number"
    else:
        ok, expected = isinstance(value, str), "a string"
    if not ok:
        raise ValueError(f"{key} must be {expected}, got {type(value).__name__}: {value!r}")
    return value


def _apply_toml(cfg: McpConfig, data: dict[str, Any]) -> None:
    """Copy known keys from parsed TOML onto cfg; unknown keys are ignored."""
    if "enabled" in data:
        cfg.enabled = _checked("enabled", data["enabled"], cfg.enabled)

    for section in SECTIONS:
        table = data.get(section) or {}
        if not isinstance(table, dict):
            raise ValueError(f"[{section}] must be a table")
        target = getattr(cfg, section)
        known = {f.name for f in fields(target)}
        for key, value in table.items():
            if key in known:
                setattr(target, key, _checked(f"{section}.{key}", value, getattr(target, key)))


def load_config(config_path: str | Path | None = None) -> McpConfig:
    """
    Build the effective configuration.

    Lookup order for the file: config_path, then $PWSH_MCP_CONFIG, then
    ./pwsh-mcp.toml. A missing file just means defaults. Environment
    overrides are applied on top and the result is validated.

    Raises:
        ValueError: a setting is out of range or an override cannot be parsed
    """
    if config_path is None:
        config_path = os.getenv("PWSH_MCP_CONFIG") or "pwsh-mcp.toml"
    path = Path(config_path)

    cfg = McpConfig()
    if path.is_file():
        with path.open("rb") as f:
            _apply_toml(cfg, tomllib.load(f))

    _apply_env_overrides(cfg)
    cfg.validate()
    return cfg
