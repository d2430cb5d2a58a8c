"""PowerShell MCP Server - interpreter-backed host tools over the Model Context Protocol."""

__version__ = "1.2.0"
