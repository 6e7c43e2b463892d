from __future__ import annotations

import json

from mcp.server.fastmcp import FastMCP
from mcp.types import Resource as MCPResource

from ..context import ServerContext
from ..session import screenshot_uri

SUMMARY_URI = "research://current/summary"
SCREENSHOT_URI_TEMPLATE = "research://screenshots/{index}"


def screenshot_listing() -> list[MCPResource]:
    """One concrete resource entry per screenshot in the current session.

    Reads go through the template; this only feeds resources/list.
    """
    return [
        MCPResource(
            uri=screenshot_uri(i),
            name=f"Screenshot of {result.title}",
            description=f"Screenshot taken at {result.timestamp.isoformat()}",
            mimeType="image/png",
        )
        for i, result in ServerContext.get_session_store().screenshot_entries()
    ]


def register(mcp: FastMCP) -> None:
    """Register read-only session resources."""

    @mcp.resource(
        SUMMARY_URI,
        name="Current Research Session Summary",
        description="Summary of the current research session including queries and results",
        mime_type="application/json",
    )
    def session_summary() -> str:
        return json.dumps(ServerContext.get_session_store().summary(), ensure_ascii=False, indent=2)

    @mcp.resource(
        SCREENSHOT_URI_TEMPLATE,
        name="Research Screenshot",
        description="Screenshot captured during the research session, by result index",
        mime_type="image/png",
    )
    def session_screenshot(index: str) -> bytes:
        return ServerContext.get_session_store().screenshot_bytes(index)
