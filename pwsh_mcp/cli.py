"""CLI for the PowerShell MCP server."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.table import Table
import typer

if TYPE_CHECKING:
    from pwsh_mcp.config import McpConfig

app = typer.Typer(
    name="pwsh-mcp",
    help="PowerShell MCP Server CLI",
    add_completion=False,
)
console = Console()
# Never print to stdout while serving; the protocol owns it
err_console = Console(stderr=True)


def _load_or_exit(config_path: Optional[str]) -> McpConfig:
    from pwsh_mcp.config import load_config

    try:
        return load_config(config_path)
    except ValueError as e:
        err_console.print(f"[red]✗[/] Invalid configuration: {e}")
        raise typer.Exit(2) from None


@app.command()
def serve(
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to pwsh-mcp.toml"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", "-l", help="Override log level (debug, info, warning, error)"
    ),
) -> None:
    """Run the MCP server on stdio."""
    from pwsh_mcp.server import run_server

    config = _load_or_exit(config_path)
    if log_level:
        config.server.log_level = log_level
        config.observability.log_level = log_level
        try:
            config.validate()
        except ValueError as e:
            err_console.print(f"[red]✗[/] Invalid configuration: {e}")
            raise typer.Exit(2) from None

    run_server(config)


@app.command()
def tools(
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to pwsh-mcp.toml"
    ),
) -> None:
    """List the tools the server exposes."""
    from pwsh_mcp.runner import ProcessRunner
    from pwsh_mcp.tools import build_registry

    config = _load_or_exit(config_path)
    registry = build_registry(ProcessRunner.from_config(config.interpreter))

    table = Table(title=f"{len(registry)} tools ({config.interpreter.executable})")
    table.add_column("Name", style="bold")
    table.add_column("Required")
    table.add_column("Optional")
    for definition in registry.definitions():
        required = ", ".join(f"{p.name}: {p.kind.value}" for p in definition.params if p.required)
        optional = ", ".join(
            f"{p.name}: {p.kind.value}" + (f" = {p.default!r}" if p.default is not None else "")
            for p in definition.params
            if not p.required
        )
        table.add_row(definition.name, required or "-", optional or "-")
    console.print(table)


@app.command()
def check(
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to pwsh-mcp.toml"
    ),
) -> None:
    """Check that the configured interpreter starts (exit code 0 = healthy)."""
    from pwsh_mcp.health import check_interpreter
    from pwsh_mcp.runner import ProcessRunner

    config = _load_or_exit(config_path)
    runner = ProcessRunner.from_config(config.interpreter)
    report = asyncio.run(check_interpreter(runner))

    table = Table(show_header=False)
    table.add_row("Interpreter:", report.executable)
    table.add_row("Version:", report.version)
    table.add_row("Message:", report.message)

    if report.healthy:
        console.print("[green]✓[/] Interpreter healthy")
        console.print(table)
    else:
        console.print("[red]✗[/] Interpreter check failed")
        console.print(table)
        raise typer.Exit(1)


def main() -> None:
    """Entry point for pwsh-mcp CLI."""
    app()


if __name__ == "__main__":
    main()
