from __future__ import annotations

from typing import Any, Optional

from mcp.server.fastmcp import Context, FastMCP

from ..context import ServerContext
from ..research import search_results_as_dicts
from ..utils import (
    handle_mcp_errors,
    ok_response,
    safe_ctx_info,
    safe_notify_resources_changed,
)


async def _flush_resource_notifications(ctx: Optional[Context]) -> None:
    if ServerContext.consume_resource_changes():
        await safe_notify_resources_changed(ctx)


def register(mcp: FastMCP) -> None:
    """Register the research tools: search_google, visit_page, take_screenshot."""

    @mcp.tool(name="search_google", description="Search Google for a query")
    @handle_mcp_errors
    async def search_google(
        query: str,
        new_session: bool = False,
        ctx: Optional[Context] = None,
    ) -> dict[str, Any]:
        """Search Google and record every result in the research session.

        Args:
            query: Search query.
            new_session: Start a fresh research session labelled with this query.
        """
        await safe_ctx_info(ctx, f"Searching Google: {query}")
        researcher = ServerContext.get_researcher()
        results = await researcher.search(query, new_session=new_session)
        return ok_response(
            tool="search_google",
            input={"query": query, "new_session": new_session},
            output={"results": search_results_as_dicts(results)},
        )

    @mcp.tool(name="visit_page", description="Visit a webpage and extract its content")
    @handle_mcp_errors
    async def visit_page(
        url: str,
        takeScreenshot: bool = True,
        ctx: Optional[Context] = None,
    ) -> dict[str, Any]:
        """Visit a webpage and extract its main content as Markdown.

        Args:
            url: http(s) URL to visit.
            takeScreenshot: Also capture a size-bounded screenshot, exposed as a resource.
        """
        await safe_ctx_info(ctx, f"Visiting: {url}")
        researcher = ServerContext.get_researcher()
        output = await researcher.visit_page(url, take_screenshot=takeScreenshot)
        await _flush_resource_notifications(ctx)
        return ok_response(
            tool="visit_page",
            input={"url": url, "takeScreenshot": takeScreenshot},
            output=output,
        )

    @mcp.tool(name="take_screenshot", description="Take a screenshot of the current page")
    @handle_mcp_errors
    async def take_screenshot(ctx: Optional[Context] = None) -> dict[str, Any]:
        """Take a screenshot of the current page; it becomes available as a resource."""
        researcher = ServerContext.get_researcher()
        output = await researcher.take_screenshot()
        await _flush_resource_notifications(ctx)
        return ok_response(tool="take_screenshot", input={}, output=output)
