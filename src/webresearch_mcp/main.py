"""
Web Research MCP Server

Exposes browser-backed web research tools via the Model Context Protocol (MCP).
It allows LLMs (like Claude) to:
1. Search Google and collect result snippets
2. Visit a page and read its main content as Markdown
3. Capture size-bounded screenshots of the current page

Everything retrieved is kept in an in-memory research session, exposed as
resources (research://current/summary, research://screenshots/{index}).

Usage:
    webresearch-mcp
    python -m webresearch_mcp.main --log-level DEBUG
"""

from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Sequence

from mcp.server.fastmcp import FastMCP
from mcp.types import Resource as MCPResource

from webresearch_mcp import __version__
from webresearch_mcp.config import get_settings
from webresearch_mcp.context import ServerContext
from webresearch_mcp.registry import register_all
from webresearch_mcp.tools.resources import screenshot_listing

logger = logging.getLogger("webresearch_mcp")


@asynccontextmanager
async def server_lifespan(server: FastMCP) -> AsyncIterator[None]:
    """Run the single bounded cleanup path when the server stops for any reason."""
    try:
        yield
    finally:
        await ServerContext.shutdown()


class WebResearchMCP(FastMCP):
    """FastMCP whose resources/list also names every screenshot in the session.

    Screenshots are served through a URI template, which FastMCP never lists.
    """

    async def list_resources(self) -> list[MCPResource]:
        resources = await super().list_resources()
        return resources + screenshot_listing()


def create_server() -> FastMCP:
    mcp = WebResearchMCP("webresearch", lifespan=server_lifespan)
    register_all(mcp)
    return mcp


def _forward_to_interrupt(signum: int, frame: object) -> None:
    # Route SIGTERM through the same path as Ctrl+C so the event loop unwinds normally.
    logger.info("Received signal %s, shutting down", signum)
    signal.raise_signal(signal.SIGINT)


def configure_logging(level: Optional[str] = None) -> None:
    level_name = (level or get_settings().LOG_LEVEL).upper()
    # stdout carries the MCP protocol; logs go to stderr
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Web Research MCP server (stdio)")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, ...)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _forward_to_interrupt)

    exit_code = 0
    mcp = create_server()
    logger.info("Web Research MCP server %s running on stdio", __version__)
    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except Exception as e:
        logger.error("Server failed: %s", e, exc_info=True)
        exit_code = 1

    if not ServerContext.shutdown_completed():
        logger.error("Cleanup did not complete in time, forcing exit")
        ServerContext.clear_session()
        logging.shutdown()
        os._exit(1)
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
