from __future__ import annotations

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.prompts.base import AssistantMessage, Message, UserMessage

DEPTH_PHRASES = {
    "basic": "at a basic level",
    "moderate": "with moderate depth",
    "thorough": "very thoroughly",
}

GREETING = (
    "I am ready to help you with your research. I will conduct thorough web research, "
    "explore topics deeply, and maintain a dialogue with you throughout the process."
)

INSTRUCTIONS = """Please help me explore it {depth}, like you're a thoughtful, highly-trained research assistant.

General instructions:
1. Start by proposing your research approach -- namely, formulate what initial query you will use to search the web. Propose a relatively broad search to understand the topic landscape. At the same time, make your queries optimized for returning high-quality results based on what you know about constructing Google search queries.
2. Next, get my input on whether you should proceed with that query or if you should refine it.
3. Once you have an approved query, perform the search.
4. Prioritize high quality, authoritative sources when they are available and relevant to the topic. Avoid low quality or spammy sources.
5. Retrieve information that is relevant to the topic at hand.
6. Iteratively refine your research direction based on what you find.
7. Keep me informed of what you find and let *me* guide the direction of the research interactively.
8. If you run into a dead end while researching, do a Google search for the topic and attempt to find a URL for a relevant page. Then, explore that page in depth.
9. Only conclude when my research goals are met.
10. **Always cite your sources**, providing URLs to the sources you used in a citation block at the end of your response.

You can use these tools:
- search_google: Search for information
- visit_page: Visit and extract content from web pages
- take_screenshot: Capture visual information from the current page

Do *NOT* use the following tools:
- Anything related to knowledge graphs or memory, unless explicitly instructed to do so by the user."""


def build_research_messages(topic: str, depth: str = "moderate") -> list[Message]:
    depth_phrase = DEPTH_PHRASES.get(depth.lower(), DEPTH_PHRASES["moderate"])
    return [
        AssistantMessage(GREETING),
        UserMessage(
            f"I'd like to research this topic: <topic>{topic}</topic>\n\n"
            + INSTRUCTIONS.format(depth=depth_phrase)
        ),
    ]


def register(mcp: FastMCP) -> None:
    """Register the agentic-research prompt."""

    @mcp.prompt(
        name="agentic-research",
        description=(
            "Conduct iterative web research on a topic, exploring it thoroughly through "
            "multiple steps while maintaining a dialogue with the user"
        ),
    )
    def agentic_research(topic: str, depth: str = "moderate") -> list[Message]:
        """
        Args:
            topic: The topic or question to research.
            depth: Desired depth of research (basic, moderate, thorough).
        """
        return build_research_messages(topic, depth)
