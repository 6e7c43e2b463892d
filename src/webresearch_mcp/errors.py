"""Error taxonomy for the web research core.

- ValidationError: bad caller input (URL scheme, resource index). Never retried.
- NavigationError: the loaded page is unusable (HTTP error, bot defense, thin content).
- ResourceError: the browser or page cannot be established.
- CaptureError: a screenshot cannot be produced under the pixel constraints. Never retried.
"""

from __future__ import annotations


class WebResearchError(Exception):
    """Base class for all errors raised by webresearch_mcp."""


class ValidationError(WebResearchError):
    pass


class NavigationError(WebResearchError):
    pass


class ResourceError(WebResearchError):
    pass


class CaptureError(WebResearchError):
    pass
