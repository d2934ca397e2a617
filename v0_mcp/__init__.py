# v0_mcp/__init__.py
"""MCP server fronting the v0 design API."""

__version__ = "1.0.0"
