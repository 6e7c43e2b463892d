"""Post-navigation validation.

`safe_navigate` loads a URL and decides whether the result is usable content
or a bot-defense / interstitial response. The in-page part is a single
evaluation returning a plain snapshot; the decision is made in Python by
`assess_snapshot`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .config import Settings, get_settings
from .errors import NavigationError

logger = logging.getLogger(__name__)

CHALLENGE_SELECTORS = [
    "#challenge-running",  # Cloudflare
    "#cf-challenge-running",  # Cloudflare
    "#px-captcha",  # PerimeterX
    "#ddos-protection",
    "#waf-challenge-html",
    "#captcha",
    ".g-recaptcha",
    ".h-captcha",
]

SUSPICIOUS_TITLE_PHRASES = [
    "security check",
    "ddos protection",
    "please wait",
    "just a moment",
    "attention required",
]

# Receives the challenge selectors; returns the matched ones plus visible text and title.
SNAPSHOT_SCRIPT = """
(selectors) => {
    const markers = selectors.filter(sel => document.querySelector(sel) !== null);
    const body = document.body;
    const text = body ? (body.innerText || body.textContent || '') : '';
    return { markers, text, title: document.title || '' };
}
"""

CONSENT_DOMAINS = (
    "google.com", "google.co", "google.de", "google.fr", "google.co.uk", "google.it",
    "google.es", "google.nl", "google.pl", "google.ie", "google.dk", "google.no",
    "google.se", "google.fi", "google.at", "google.ch", "google.be", "google.pt",
)

CONSENT_DIALOG_SELECTOR = (
    'div[aria-modal="true"], div[role="dialog"], div[role="alertdialog"], '
    'div[class*="consent"], div[id*="consent"], form:has(button[aria-label])'
)

# Clicks the first button whose text or aria-label matches an accept phrase.
CONSENT_SCRIPT = """
(patterns) => {
    const buttons = Array.from(document.querySelectorAll('button'));
    const button = buttons.find(b => {
        const text = (b.textContent || '').toLowerCase();
        const label = (b.getAttribute('aria-label') || '').toLowerCase();
        return patterns.text.some(p => text.includes(p))
            || patterns.labels.some(p => label.includes(p));
    });
    if (button) { button.click(); return true; }
    return false;
}
"""

CONSENT_PATTERNS = {
    "text": [
        "accept all", "agree", "consent",
        "alle akzeptieren", "ich stimme zu", "zustimmen",
        "tout accepter", "j'accepte",
        "aceptar todo", "acepto",
        "accetta tutto", "accetto",
        "aceitar tudo", "concordo",
        "alles accepteren", "akkoord",
    ],
    "labels": ["consent", "accept", "agree"],
}


@dataclass(frozen=True)
class PageSnapshot:
    markers: List[str] = field(default_factory=list)
    text: str = ""
    title: str = ""

    @property
    def word_count(self) -> int:
        return len(self.text.split())

    @classmethod
    def from_evaluation(cls, data: Any) -> "PageSnapshot":
        if not isinstance(data, dict):
            return cls()
        return cls(
            markers=list(data.get("markers") or []),
            text=str(data.get("text") or ""),
            title=str(data.get("title") or ""),
        )


def assess_snapshot(snapshot: PageSnapshot, min_words: int) -> None:
    """Raise NavigationError if the snapshot looks like a challenge or an empty page."""
    if snapshot.markers:
        raise NavigationError(
            f"Bot protection detected ({', '.join(snapshot.markers)})"
        )
    title = snapshot.title.lower()
    if any(phrase in title for phrase in SUSPICIOUS_TITLE_PHRASES):
        raise NavigationError(
            f'Suspicious page title indicates possible bot protection: "{snapshot.title}"'
        )
    words = snapshot.word_count
    if words < min_words:
        raise NavigationError(
            f"Page contains insufficient content ({words} words, minimum {min_words})"
        )


async def _set_consent_cookie(page: Page, domain: str) -> None:
    try:
        await page.context.add_cookies(
            [{"name": "CONSENT", "value": "YES+", "domain": domain, "path": "/"}]
        )
    except Exception as e:
        logger.debug("Setting consent cookie failed: %s", e)


async def _wait_idle_or_timer(page: Page, seconds: float) -> None:
    """Wait for network idle or a flat timer, whichever finishes first."""
    idle = asyncio.ensure_future(
        page.wait_for_load_state("networkidle", timeout=seconds * 1000)
    )
    timer = asyncio.ensure_future(asyncio.sleep(seconds))
    try:
        await asyncio.wait({idle, timer}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (idle, timer):
            task.cancel()
        # An idle wait that timed out is expected; consume its exception.
        idle_outcome, _ = await asyncio.gather(idle, timer, return_exceptions=True)
        if isinstance(idle_outcome, Exception):
            logger.debug("Network idle wait ended: %s", idle_outcome)


async def safe_navigate(
    page: Page,
    url: str,
    *,
    min_words: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> None:
    """Navigate ``page`` to ``url`` and verify that real content loaded.

    A Playwright timeout anywhere in the pipeline is not fatal: the page is
    kept with whatever content it managed to load.
    """
    settings = settings or get_settings()
    if min_words is None:
        min_words = settings.WEBRESEARCH_MIN_CONTENT_WORDS

    try:
        await _set_consent_cookie(page, settings.WEBRESEARCH_CONSENT_COOKIE_DOMAIN)

        response = await page.goto(
            url,
            wait_until="domcontentloaded",
            timeout=settings.WEBRESEARCH_NAVIGATION_TIMEOUT * 1000,
        )
        if response is None:
            logger.warning("Navigation to %s returned no response, continuing", url)
        elif response.status >= 400:
            raise NavigationError(f"HTTP {response.status}: {response.status_text}")

        try:
            await page.wait_for_selector(
                "body", timeout=settings.WEBRESEARCH_BODY_WAIT_TIMEOUT * 1000
            )
        except PlaywrightTimeoutError:
            logger.warning("Body selector wait timed out for %s, continuing", url)

        await _wait_idle_or_timer(page, settings.WEBRESEARCH_NETWORK_IDLE_TIMEOUT)

        data = await page.evaluate(SNAPSHOT_SCRIPT, CHALLENGE_SELECTORS)
        assess_snapshot(PageSnapshot.from_evaluation(data), min_words)

    except PlaywrightTimeoutError as e:
        logger.warning("Navigation to %s timed out, continuing with available content: %s", url, e)
        return
    except NavigationError as e:
        raise NavigationError(f"Navigation to {url} failed: {e}") from e
    except PlaywrightError as e:
        raise NavigationError(f"Navigation to {url} failed: {e}") from e


async def dismiss_consent(page: Page) -> bool:
    """Click through a search-engine consent dialog if one is showing."""
    try:
        host = urlparse(page.url).hostname or ""
        if not any(host == d or host.endswith("." + d) for d in CONSENT_DOMAINS):
            return False
        if await page.query_selector(CONSENT_DIALOG_SELECTOR) is None:
            return False
        clicked = bool(await page.evaluate(CONSENT_SCRIPT, CONSENT_PATTERNS))
        if clicked:
            logger.info("Dismissed consent dialog on %s", host)
        return clicked
    except Exception as e:
        logger.info("Consent handling failed: %s", e)
        return False
