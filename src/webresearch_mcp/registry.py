from mcp.server.fastmcp import FastMCP

from webresearch_mcp.tools import prompts as research_prompts
from webresearch_mcp.tools import research as research_tools
from webresearch_mcp.tools import resources as research_resources


def register_all(mcp: FastMCP) -> None:
    """Register every tool, resource and prompt with the MCP server instance.

    Architecture:
    - Tools: search_google, visit_page, take_screenshot
    - Resources: research://current/summary, research://screenshots/{index}
    - Prompts: agentic-research
    """
    research_tools.register(mcp)
    research_resources.register(mcp)
    research_prompts.register(mcp)
