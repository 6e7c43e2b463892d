"""Web research MCP tools.

This package contains the MCP surface exposed by the web research server.

Architecture:
- research.py: search_google / visit_page / take_screenshot tools
- resources.py: research://current/summary and research://screenshots/{index}
- prompts.py: the agentic-research prompt
"""

from __future__ import annotations

__all__ = [
    "research",
    "resources",
    "prompts",
]
