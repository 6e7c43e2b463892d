"""Common utility helpers for web research MCP tools."""
from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Optional
from urllib.parse import urlparse

from .errors import (
    CaptureError,
    NavigationError,
    ResourceError,
    ValidationError,
)

logger = logging.getLogger("webresearch_mcp")

TRUNCATION_MARKER = "... (content truncated)"


# ---------------------------------------------------------------------------
# Safe Context helpers (tools can run without an active MCP request)
# ---------------------------------------------------------------------------

async def safe_ctx_info(ctx: Optional[Any], message: str) -> None:
    """Safely call ctx.info() if context is available and valid.

    Outside a request (in-process calls, tests) ctx may be None or may not
    carry a request context, so we wrap the call in try-except.
    """
    if ctx is None:
        return
    try:
        await ctx.info(message)
    except (ValueError, AttributeError):
        pass


async def safe_notify_resources_changed(ctx: Optional[Any]) -> None:
    """Send notifications/resources/list_changed over the current session, if any."""
    if ctx is None:
        return
    try:
        await ctx.session.send_resource_list_changed()
    except (ValueError, AttributeError):
        pass


# ---------------------------------------------------------------------------
# Structured response helpers (LLM-friendly)
# ---------------------------------------------------------------------------

def ok_response(*, tool: str, input: dict[str, Any], output: Any) -> dict[str, Any]:
    return {"ok": True, "tool": tool, "input": input, "output": output}


def error_response(
    *,
    tool: str,
    input: dict[str, Any],
    error_type: str,
    message: str,
    details: Any | None = None,
    code: str = "E0000",
) -> dict[str, Any]:
    """Return a standardized error dict with machine-readable code."""
    return {
        "ok": False,
        "tool": tool,
        "input": input,
        "error": {"type": error_type, "code": code, "message": message, "details": details},
    }


# ---------------------------------------------------------------------------
# Decorator to convert core exceptions to structured output
# ---------------------------------------------------------------------------

def handle_mcp_errors(func: Callable) -> Callable:  # noqa: D401
    """Wrap a tool so it always returns dict instead of raising."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):  # type: ignore[return-value]
        tool_input = {k: v for k, v in kwargs.items() if k != "ctx"}
        try:
            return await func(*args, **kwargs)
        except ValidationError as e:
            logger.warning("Validation error in %s: %s", func.__name__, e)
            return error_response(
                tool=func.__name__,
                input=tool_input,
                error_type="validation_error",
                code="E4001",
                message=str(e),
            )
        except NavigationError as e:
            logger.error("Navigation error in %s: %s", func.__name__, e)
            return error_response(
                tool=func.__name__,
                input=tool_input,
                error_type="navigation_error",
                code="E2101",
                message=str(e),
            )
        except ResourceError as e:
            logger.error("Resource error in %s: %s", func.__name__, e)
            return error_response(
                tool=func.__name__,
                input=tool_input,
                error_type="resource_error",
                code="E1002",
                message="Browser could not be started.",
                details=str(e),
            )
        except CaptureError as e:
            logger.error("Capture error in %s: %s", func.__name__, e)
            return error_response(
                tool=func.__name__,
                input=tool_input,
                error_type="capture_error",
                code="E3002",
                message=str(e),
            )
        except Exception as e:
            logger.error("Unexpected error in %s: %s", func.__name__, str(e), exc_info=False)
            return error_response(
                tool=func.__name__,
                input=tool_input,
                error_type="unexpected_error",
                code="E9000",
                message=str(e),
            )

    return wrapper


# ---------------------------------------------------------------------------
# URL validation & truncation
# ---------------------------------------------------------------------------

def validate_http_url(url: str) -> str:
    """Return ``url`` unchanged if it is an absolute http(s) URL, else raise."""
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise ValidationError(f"Invalid URL format: {url}") from e
    if parsed.scheme not in ("http", "https"):
        raise ValidationError(f"Only http and https URLs are supported: {url}")
    if not parsed.netloc:
        raise ValidationError(f"Invalid URL format: {url}")
    return url


def truncate_content(content: str, max_length: int = 100_000) -> str:
    if len(content) <= max_length:
        return content
    return content[:max_length] + TRUNCATION_MARKER
