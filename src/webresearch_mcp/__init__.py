"""Browser-backed web research MCP server."""

__version__ = "0.2.0"
