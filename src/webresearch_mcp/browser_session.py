"""Browser session management.

This module owns the single Playwright browser/page pair used by every
research operation.

Design goals:
- One live browser and one page, created lazily and repaired on next use when
  the remote process disconnects or closes the page out-of-band.
- Baseline page configuration: fixed viewport and user agent, heavyweight
  resources (media, PDFs) blocked at the network layer.
- The launcher is injectable so tests can run against a fake backend.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlparse

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Route, async_playwright

from .config import Settings, get_settings
from .errors import ResourceError
from .retry import RetryPolicy, with_retry

logger = logging.getLogger(__name__)

BLOCKED_RESOURCE_TYPES = frozenset({"media"})
BLOCKED_EXTENSIONS = (".pdf",)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--hide-scrollbars",
    "--mute-audio",
]


class BrowserState(enum.Enum):
    ABSENT = "absent"
    LAUNCHING = "launching"
    READY = "ready"
    DISCONNECTED = "disconnected"


class PageState(enum.Enum):
    ABSENT = "absent"
    OPEN = "open"
    CLOSED = "closed"


def should_block(resource_type: str, url: str) -> bool:
    if resource_type in BLOCKED_RESOURCE_TYPES:
        return True
    try:
        path = urlparse(url).path.lower()
    except ValueError:
        return False
    return path.endswith(BLOCKED_EXTENSIONS)


class BrowserSession:
    """Lifecycle owner of the browser/page singleton."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        launcher: Optional[Callable[[], Awaitable[Browser]]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._launcher = launcher or self._launch_chromium
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._state = BrowserState.ABSENT

    @property
    def state(self) -> BrowserState:
        return self._state

    @property
    def page_state(self) -> PageState:
        if self._page is None:
            return PageState.ABSENT
        return PageState.CLOSED if self._page.is_closed() else PageState.OPEN

    @property
    def viewport(self) -> dict[str, int]:
        return {
            "width": self._settings.WEBRESEARCH_VIEWPORT_WIDTH,
            "height": self._settings.WEBRESEARCH_VIEWPORT_HEIGHT,
        }

    async def _ensure_playwright(self) -> Playwright:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return self._playwright

    async def _launch_chromium(self) -> Browser:
        playwright = await self._ensure_playwright()
        logger.info("Launching Chromium (headless=%s)", self._settings.WEBRESEARCH_HEADLESS)
        return await playwright.chromium.launch(
            headless=self._settings.WEBRESEARCH_HEADLESS,
            args=CHROMIUM_ARGS,
        )

    def _on_disconnected(self, browser: Any) -> None:
        # Events from a browser already torn down or replaced are ignored.
        if browser is not self._browser:
            return
        logger.warning("Browser disconnected; it will be relaunched on next use")
        self._state = BrowserState.DISCONNECTED
        self._context = None
        self._page = None

    async def _get_browser(self) -> Browser:
        existing = self._browser
        if existing is not None and existing.is_connected():
            return existing

        # Clean up stale browser/page
        if existing is not None or self._state is BrowserState.DISCONNECTED:
            logger.info("Browser not connected, recreating")
            await self._teardown()

        async def _launch() -> Browser:
            try:
                return await self._launcher()
            except Exception:
                await self._teardown()
                raise

        self._state = BrowserState.LAUNCHING
        try:
            browser = await with_retry(
                _launch,
                RetryPolicy(max_attempts=2, delay=self._settings.WEBRESEARCH_RETRY_DELAY),
                label="browser launch",
            )
        except Exception as e:
            self._state = BrowserState.ABSENT
            raise ResourceError(f"Failed to launch browser: {e}") from e

        browser.on("disconnected", self._on_disconnected)
        self._browser = browser
        self._state = BrowserState.READY
        return browser

    async def acquire_page(self) -> Page:
        """Return a ready page, launching or repairing the browser as needed."""
        browser = await self._get_browser()

        page = self._page
        if page is not None and not page.is_closed():
            return page
        if page is not None:
            logger.info("Page was closed, opening a new one")

        try:
            if self._context is not None:
                try:
                    await self._context.close()
                except Exception as e:
                    logger.debug("Closing stale context failed: %s", e)
            self._context = await browser.new_context(
                viewport=self.viewport,
                user_agent=self._settings.WEBRESEARCH_USER_AGENT,
            )
            page = await self._context.new_page()
            await page.route("**/*", self._route_request)
            page.on("pageerror", lambda error: logger.debug("Page error: %s", error))
        except Exception as e:
            raise ResourceError(f"Failed to open page: {e}") from e

        self._page = page
        return page

    @staticmethod
    async def _route_request(route: Route) -> None:
        request = route.request
        if should_block(request.resource_type, request.url):
            await route.abort()
        else:
            await route.continue_()

    async def _teardown(self) -> None:
        """Best-effort close of whatever handles exist; errors are only logged."""
        handles = (("page", self._page), ("context", self._context), ("browser", self._browser))
        # Detach first so the disconnect event from closing is not taken for a crash.
        self._page = None
        self._context = None
        self._browser = None
        for name, closer in handles:
            if closer is None:
                continue
            try:
                await closer.close()
            except Exception as e:
                logger.debug("Closing %s failed: %s", name, e)
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug("Stopping Playwright failed: %s", e)
            finally:
                self._playwright = None
        self._state = BrowserState.ABSENT

    async def release_all(self) -> None:
        """Cleanly close the page, browser and Playwright."""
        try:
            await self._teardown()
        finally:
            self._page = None
            self._context = None
            self._browser = None
            self._playwright = None
            self._state = BrowserState.ABSENT
