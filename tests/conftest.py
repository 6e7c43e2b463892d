"""
Fake Playwright backend for tests.

Pages are backed by BeautifulSoup-parsed HTML, so navigation checks, content
extraction and screenshot budgeting run without a real browser.
"""

from __future__ import annotations

import asyncio
import io
import random
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from bs4 import BeautifulSoup
from PIL import Image
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from webresearch_mcp.browser_session import BrowserSession
from webresearch_mcp.config import Settings
from webresearch_mcp.context import ServerContext
from webresearch_mcp.navigation import CONSENT_SCRIPT, SNAPSHOT_SCRIPT
from webresearch_mcp.research import SEARCH_RESULTS_SCRIPT
from webresearch_mcp.screenshot import EXTENT_SCRIPT
from webresearch_mcp.session import SessionStore


def words(n: int, word: str = "lorem") -> str:
    return " ".join(f"{word}{i}" for i in range(n))


def article_html(n_words: int = 2000, title: str = "An Article", extra: str = "") -> str:
    return (
        f"<html><head><title>{title}</title></head><body>"
        f"<nav>Home About Contact</nav>{extra}"
        f"<article><h1>{title}</h1><p>{words(n_words)}</p></article>"
        f"<footer>Copyright</footer></body></html>"
    )


def png_bytes(width: int, height: int, mode: str = "solid") -> bytes:
    if mode == "noise":
        rng = random.Random(width * 7919 + height)
        img = Image.frombytes("RGB", (width, height), rng.randbytes(width * height * 3))
    else:
        img = Image.new("RGB", (width, height), (30, 120, 200))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class FakeResponse:
    def __init__(self, status: int = 200, status_text: str = "OK") -> None:
        self.status = status
        self.status_text = status_text


class FakeElementHandle:
    def __init__(self, page: "FakePage", selector: str) -> None:
        self.page = page
        self.selector = selector

    async def fill(self, value: str) -> None:
        self.page.typed.append(value)


class FakeKeyboard:
    def __init__(self, page: "FakePage") -> None:
        self.page = page

    async def press(self, key: str) -> None:
        self.page.keys.append(key)
        if key == "Enter" and self.page.on_enter is not None:
            url, html = self.page.on_enter
            self.page.load(url, html)


class FakeContext:
    def __init__(self, browser: Optional["FakeBrowser"] = None, **options: Any) -> None:
        self.browser = browser
        self.options = options
        self.cookies: List[Dict[str, Any]] = []
        self.pages: List[FakePage] = []
        self.closed = False

    async def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        self.cookies.extend(cookies)

    async def new_page(self) -> "FakePage":
        page = FakePage(context=self)
        if self.browser is not None and self.browser.page_factory is not None:
            page = self.browser.page_factory(self)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.closed = True


class FakePage:
    """Subset of playwright.async_api.Page used by the core."""

    def __init__(
        self,
        html: str = "<html><body></body></html>",
        url: str = "about:blank",
        *,
        context: Optional[FakeContext] = None,
        routes: Optional[Dict[str, Tuple[int, str]]] = None,
        extent: Optional[Tuple[int, int]] = None,
        image_mode: str = "solid",
    ) -> None:
        self.context = context or FakeContext()
        self.routes = routes or {}
        self.extent = extent
        self.image_mode = image_mode
        self.viewport_size: Optional[Dict[str, int]] = {"width": 1280, "height": 720}
        self.keyboard = FakeKeyboard(self)
        self.on_enter: Optional[Tuple[str, str]] = None
        self.goto_calls: List[str] = []
        self.goto_error: Optional[Exception] = None
        self.idle_never_arrives = False
        self.body_wait_times_out = False
        self.extent_calls = 0
        self.screenshot_calls = 0
        self.viewport_calls: List[Dict[str, int]] = []
        self.typed: List[str] = []
        self.keys: List[str] = []
        self.route_handlers: List[Any] = []
        self.handlers: Dict[str, List[Callable[..., Any]]] = {}
        self._closed = False
        self.load(url, html)

    def load(self, url: str, html: str) -> None:
        self.url = url
        self.html = html
        self.soup = BeautifulSoup(html, "html.parser")

    # navigation -------------------------------------------------------

    async def goto(self, url: str, wait_until: str = "load", timeout: float = 0) -> Optional[FakeResponse]:
        self.goto_calls.append(url)
        if self.goto_error is not None:
            raise self.goto_error
        status, html = self.routes.get(url, (200, self.html))
        self.load(url, html)
        return FakeResponse(status, "Not Found" if status == 404 else "OK")

    async def wait_for_selector(self, selector: str, timeout: float = 0) -> FakeElementHandle:
        if selector == "body" and self.body_wait_times_out:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for body")
        if self.soup.select_one(selector) is None:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")
        return FakeElementHandle(self, selector)

    async def query_selector(self, selector: str) -> Optional[FakeElementHandle]:
        if self.soup.select_one(selector) is None:
            return None
        return FakeElementHandle(self, selector)

    async def wait_for_load_state(self, state: str = "load", timeout: float = 0) -> None:
        if self.idle_never_arrives:
            await asyncio.Event().wait()

    @asynccontextmanager
    async def expect_navigation(self, wait_until: str = "load", timeout: float = 0):
        yield

    # evaluation -------------------------------------------------------

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == SNAPSHOT_SCRIPT:
            body = self.soup.body or self.soup
            title = self.soup.title.get_text() if self.soup.title else ""
            return {
                "markers": [sel for sel in arg if self.soup.select_one(sel) is not None],
                "text": body.get_text(" "),
                "title": title,
            }
        if script == EXTENT_SCRIPT:
            self.extent_calls += 1
            width, height = self.extent or (self.viewport_size["width"], self.viewport_size["height"])
            return {"width": width, "height": height}
        if script == SEARCH_RESULTS_SCRIPT:
            elements: List[Any] = []
            for selector in arg:
                elements = self.soup.select(selector)
                if elements:
                    break
            out = []
            for el in elements:
                title_el = el.select_one("h3, h2")
                link_el = el.select_one("a[href]")
                snippet_el = el.select_one("div.VwiC3b, div.s, span.st")
                out.append(
                    {
                        "title": title_el.get_text() if title_el else "",
                        "url": link_el.get("href", "") if link_el else "",
                        "snippet": snippet_el.get_text() if snippet_el else "",
                    }
                )
            return out
        if script == CONSENT_SCRIPT:
            return False
        raise NotImplementedError(script[:60])

    async def content(self) -> str:
        return self.html

    async def title(self) -> str:
        return self.soup.title.get_text() if self.soup.title else ""

    # screenshots ------------------------------------------------------

    async def set_viewport_size(self, size: Dict[str, int]) -> None:
        self.viewport_calls.append(dict(size))
        self.viewport_size = dict(size)

    async def screenshot(self, type: str = "png", full_page: bool = False) -> bytes:
        self.screenshot_calls += 1
        return png_bytes(self.viewport_size["width"], self.viewport_size["height"], self.image_mode)

    # lifecycle --------------------------------------------------------

    async def route(self, pattern: str, handler: Any) -> None:
        self.route_handlers.append(handler)

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        self.handlers.setdefault(event, []).append(callback)

    def is_closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        self._closed = True


class FakeBrowser:
    def __init__(self, page_factory: Optional[Callable[[FakeContext], FakePage]] = None) -> None:
        self.page_factory = page_factory
        self.connected = True
        self.closed = False
        self.contexts: List[FakeContext] = []
        self.handlers: Dict[str, List[Callable[..., Any]]] = {}

    def is_connected(self) -> bool:
        return self.connected

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        self.handlers.setdefault(event, []).append(callback)

    async def new_context(self, **options: Any) -> FakeContext:
        context = FakeContext(self, **options)
        self.contexts.append(context)
        return context

    def disconnect(self) -> None:
        self.connected = False
        for callback in self.handlers.get("disconnected", []):
            callback(self)

    async def close(self) -> None:
        self.closed = True
        self.disconnect()


class FakeLauncher:
    """Async browser factory that records launches."""

    def __init__(self, page_factory: Optional[Callable[[FakeContext], FakePage]] = None, fail: int = 0) -> None:
        self.page_factory = page_factory
        self.fail = fail
        self.browsers: List[FakeBrowser] = []

    @property
    def launches(self) -> int:
        return len(self.browsers)

    async def __call__(self) -> FakeBrowser:
        if self.fail > 0:
            self.fail -= 1
            raise RuntimeError("Executable doesn't exist")
        browser = FakeBrowser(self.page_factory)
        self.browsers.append(browser)
        return browser


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        WEBRESEARCH_NETWORK_IDLE_TIMEOUT=0.01,
        WEBRESEARCH_RETRY_DELAY=0.0,
        WEBRESEARCH_SEARCH_INPUT_RETRY_DELAY=0.0,
        WEBRESEARCH_SCREENSHOT_DIR=str(tmp_path / "shots"),
        WEBRESEARCH_SHUTDOWN_TIMEOUT=1.0,
    )


@pytest.fixture
def store(settings) -> SessionStore:
    return SessionStore(max_results=settings.WEBRESEARCH_MAX_RESULTS, screenshot_dir=settings.WEBRESEARCH_SCREENSHOT_DIR)


@pytest.fixture
def make_browser(settings):
    """Build a BrowserSession whose pages come from ``page_factory``."""

    def _make(page_factory: Optional[Callable[[FakeContext], FakePage]] = None, fail: int = 0):
        launcher = FakeLauncher(page_factory, fail=fail)
        return BrowserSession(settings, launcher=launcher), launcher

    return _make


@pytest.fixture(autouse=True)
def reset_server_context():
    ServerContext.reset()
    yield
    ServerContext.reset()
