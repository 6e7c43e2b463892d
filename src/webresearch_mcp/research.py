"""Research operations: search, visit a page, take a screenshot.

Each operation acquires the shared page from BrowserSession, runs its remote
steps through `with_retry`, and records what it retrieved in the SessionStore.
Operations are serialized: concurrent navigation on one page corrupts state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urljoin, urlparse

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .browser_session import BrowserSession
from .config import Settings, get_settings
from .errors import NavigationError
from .extraction import extract_markdown
from .navigation import dismiss_consent, safe_navigate
from .retry import RetryPolicy, with_retry
from .screenshot import capture_bounded
from .session import ResearchResult, SessionStore, screenshot_uri
from .utils import truncate_content, validate_http_url

logger = logging.getLogger(__name__)

SCREENSHOT_PLACEHOLDER = "Screenshot taken"
UNTITLED_PAGE = "Untitled Page"

SEARCH_INPUT_SELECTOR = 'textarea[name="q"], input[name="q"], input[type="text"]'

# Result container selectors for different search UI variations, tried in order.
RESULT_CONTAINER_SELECTORS = ["div.g", "div.tF2Cxc", "div.yuRUbf", "div[data-hveid]"]

SEARCH_RESULTS_SCRIPT = """
(containers) => {
    let elements = [];
    for (const selector of containers) {
        const found = document.querySelectorAll(selector);
        if (found.length > 0) { elements = Array.from(found); break; }
    }
    return elements.map(el => {
        const titleEl = el.querySelector('h3, h2');
        const linkEl = el.querySelector('a[href]');
        const snippetEl = el.querySelector('div.VwiC3b, div.s, span.st');
        return {
            title: titleEl ? (titleEl.textContent || '') : '',
            url: linkEl ? (linkEl.getAttribute('href') || '') : '',
            snippet: snippetEl ? (snippetEl.textContent || '') : '',
        };
    });
}
"""


@dataclass(frozen=True)
class SearchResult:
    title: str
    url: str
    snippet: str


def clean_result_url(href: str, base: str = "") -> str:
    """Resolve relative hrefs and unwrap `/url?q=...` redirect links."""
    url = urljoin(base, href) if base else href
    parsed = urlparse(url)
    if parsed.path == "/url":
        query = parse_qs(parsed.query)
        for key in ("q", "url"):
            if query.get(key):
                return query[key][0]
    return url


def parse_search_results(raw: Any, base: str = "") -> List[SearchResult]:
    """Turn the in-page extraction output into validated SearchResult entries."""
    results: List[SearchResult] = []
    seen: set[str] = set()
    for item in raw or []:
        if not isinstance(item, dict):
            continue
        title = " ".join(str(item.get("title") or "").split())
        href = str(item.get("url") or "").strip()
        if not title or not href:
            continue
        url = clean_result_url(href, base)
        if urlparse(url).scheme not in ("http", "https") or url in seen:
            continue
        seen.add(url)
        snippet = " ".join(str(item.get("snippet") or "").split())
        results.append(SearchResult(title=title, url=url, snippet=snippet))
    return results


class WebResearcher:
    """The three research operations over one browser session and one session store."""

    def __init__(
        self,
        browser: BrowserSession,
        store: SessionStore,
        settings: Optional[Settings] = None,
    ) -> None:
        self.browser = browser
        self.store = store
        self.settings = settings or get_settings()
        self._lock = asyncio.Lock()

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.settings.WEBRESEARCH_RETRY_ATTEMPTS,
            delay=self.settings.WEBRESEARCH_RETRY_DELAY,
        )

    # ------------------------------------------------------------------
    # search
    # ------------------------------------------------------------------

    async def search(self, query: str, *, new_session: bool = False) -> List[SearchResult]:
        """Run ``query`` through the search engine and record every hit."""
        async with self._lock:
            if new_session:
                self.store.start_session(query)
            else:
                self.store.ensure_session(query)

            page = await self.browser.acquire_page()
            results = await with_retry(
                lambda: self._search_flow(page, query),
                self.retry_policy,
                label="search",
            )
            for r in results:
                self.store.add_result(ResearchResult(url=r.url, title=r.title, content=r.snippet))
            logger.info("Search %r returned %d results", query, len(results))
            return results

    async def _search_flow(self, page: Page, query: str) -> List[SearchResult]:
        s = self.settings
        await safe_navigate(
            page,
            s.WEBRESEARCH_SEARCH_ENGINE_URL,
            min_words=s.WEBRESEARCH_MIN_LANDING_WORDS,
            settings=s,
        )
        await dismiss_consent(page)

        async def fill_query() -> None:
            try:
                handle = await page.wait_for_selector(
                    SEARCH_INPUT_SELECTOR,
                    timeout=s.WEBRESEARCH_SEARCH_INPUT_TIMEOUT * 1000,
                )
            except PlaywrightTimeoutError as e:
                raise NavigationError("Search input not found") from e
            if handle is None:
                raise NavigationError("Search input not found")
            await handle.fill(query)

        async def submit() -> None:
            async with page.expect_navigation(
                wait_until="load",
                timeout=s.WEBRESEARCH_SEARCH_SUBMIT_TIMEOUT * 1000,
            ):
                await page.keyboard.press("Enter")

        async def extract() -> List[SearchResult]:
            raw = await page.evaluate(SEARCH_RESULTS_SCRIPT, RESULT_CONTAINER_SELECTORS)
            results = parse_search_results(raw, base=page.url)
            if not results:
                raise NavigationError("No search results found")
            return results

        await with_retry(
            fill_query,
            RetryPolicy(s.WEBRESEARCH_RETRY_ATTEMPTS, s.WEBRESEARCH_SEARCH_INPUT_RETRY_DELAY),
            label="search input",
        )
        await with_retry(submit, self.retry_policy, label="search submit")
        return await with_retry(extract, self.retry_policy, label="search results")

    # ------------------------------------------------------------------
    # visit_page
    # ------------------------------------------------------------------

    async def visit_page(self, url: str, take_screenshot: bool = True) -> Dict[str, Any]:
        """Navigate to ``url``, extract markdown and optionally a budgeted screenshot."""
        validate_http_url(url)

        async with self._lock:
            page = await self.browser.acquire_page()

            async def visit() -> ResearchResult:
                await safe_navigate(page, url, settings=self.settings)
                title = await page.title()

                async def extract() -> str:
                    content = await extract_markdown(page)
                    if not content:
                        raise NavigationError("Failed to extract content")
                    return content

                content = await with_retry(extract, self.retry_policy, label="content extraction")
                content = truncate_content(content, self.settings.WEBRESEARCH_MAX_CONTENT_LENGTH)

                screenshot_path = None
                if take_screenshot:
                    shot = await self._capture(page)
                    screenshot_path = self.store.save_screenshot(shot)
                return ResearchResult(
                    url=url,
                    title=title,
                    content=content,
                    screenshot_path=screenshot_path,
                )

            result = await with_retry(visit, self.retry_policy, label="visit page")
            self.store.add_result(result)
            return self._describe(result)

    # ------------------------------------------------------------------
    # take_screenshot
    # ------------------------------------------------------------------

    async def take_screenshot(self) -> Dict[str, Any]:
        """Capture the current page without navigating."""
        async with self._lock:
            page = await self.browser.acquire_page()
            shot = await self._capture(page)
            title = await page.title()
            result = ResearchResult(
                url=page.url,
                title=title or UNTITLED_PAGE,
                content=SCREENSHOT_PLACEHOLDER,
                screenshot_path=self.store.save_screenshot(shot),
            )
            self.store.add_result(result)
            return {
                "url": result.url,
                "title": result.title,
                "screenshot": self._screenshot_ref(result),
            }

    async def _capture(self, page: Page) -> bytes:
        return await with_retry(
            lambda: capture_bounded(
                page,
                self.settings.WEBRESEARCH_SCREENSHOT_MAX_BYTES,
                restore_viewport=self.browser.viewport,
            ),
            self.retry_policy,
            label="screenshot",
        )

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _screenshot_ref(self, result: ResearchResult) -> Optional[str]:
        session = self.store.session
        if session is None or not result.screenshot_path:
            return None
        for i, r in enumerate(session.results):
            if r is result:
                return screenshot_uri(i)
        return None

    def _describe(self, result: ResearchResult) -> Dict[str, Any]:
        return {
            "url": result.url,
            "title": result.title,
            "content": result.content,
            "screenshot": self._screenshot_ref(result),
        }


def search_results_as_dicts(results: List[SearchResult]) -> List[Dict[str, str]]:
    return [asdict(r) for r in results]
