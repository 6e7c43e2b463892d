"""DOM-to-markdown reduction.

The page's serialized HTML is parsed into a working copy with BeautifulSoup,
so removing chrome elements never touches the live page.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Optional

import html2text
from bs4 import BeautifulSoup, Tag
from markdownify import MarkdownConverter
from playwright.async_api import Page
from soupsieve import SelectorSyntaxError

from .errors import ValidationError

logger = logging.getLogger(__name__)

# Probed in order; the first match is taken as the main content.
CONTENT_SELECTORS = [
    "main",
    "article",
    '[role="main"]',
    "#content",
    ".content",
    ".main",
    ".post",
    ".article",
]

# Removed from the body when no content container matched.
CHROME_SELECTORS = [
    "header",
    "footer",
    "nav",
    "aside",
    ".sidebar",
    ".nav",
    ".menu",
    ".footer",
    ".header",
    ".advertisement",
    ".ads",
    ".cookie-notice",
    '[role="complementary"]',
    '[role="navigation"]',
]

DROPPED_TAGS = ["script", "style", "noscript"]

_LANGUAGE_CLASS = re.compile(r"^language-(\S+)$")
_EMPTY_LIST_ITEM = re.compile(r"^\s*[-*+]\s*$")
_EXTRA_NEWLINES = re.compile(r"\n{3,}")


def _code_language(el: Tag) -> str:
    """Return the language token from a `language-xxx` class on <pre> or its <code>."""
    candidates = [el]
    code = el.find("code")
    if isinstance(code, Tag):
        candidates.insert(0, code)
    for node in candidates:
        for cls in node.get("class") or []:
            match = _LANGUAGE_CLASS.match(cls)
            if match:
                return match.group(1)
    return ""


class ResearchMarkdownConverter(MarkdownConverter):
    """markdownify converter with plain inline links/images and captioned figures."""

    # markdownify passes either convert_as_inline or parent_tags depending on version.

    def convert_a(self, el, text, *args, **kwargs):
        href = el.get("href")
        text = (text or "").strip()
        if not href:
            return text
        return f"[{text}]({href})"

    def convert_img(self, el, text, *args, **kwargs):
        src = el.get("src")
        if not src:
            return ""
        alt = el.get("alt") or ""
        return f"![{alt}]({src})"

    def convert_figure(self, el, text, *args, **kwargs):
        img = el.find("img")
        caption = el.find("figcaption")
        if img is None or caption is None or not img.get("src"):
            return text
        alt = img.get("alt") or ""
        caption_text = caption.get_text(" ", strip=True)
        return f"\n\n![{alt}]({img['src']})\n*{caption_text}*\n\n"


def _converter() -> ResearchMarkdownConverter:
    return ResearchMarkdownConverter(
        heading_style="ATX",
        bullets="-",
        code_language_callback=_code_language,
        strong_em_symbol="*",
    )


def clean_markdown(text: str) -> str:
    """Collapse blank runs, drop empty list items and whitespace-only lines, trim."""
    lines = []
    for line in text.splitlines():
        line = line.rstrip()
        if _EMPTY_LIST_ITEM.match(line):
            continue
        lines.append(line)
    return _EXTRA_NEWLINES.sub("\n\n", "\n".join(lines)).strip()


def html_to_markdown(html: str) -> str:
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(DROPPED_TAGS):
        tag.decompose()
    try:
        text = _converter().convert_soup(soup)
    except Exception as e:
        logger.warning("markdownify failed, falling back to html2text: %s", e)
        h = html2text.HTML2Text()
        h.ignore_links = False
        h.body_width = 0
        text = h.handle(str(soup))
    return clean_markdown(text)


def _select_one(soup: BeautifulSoup, selector: str) -> Optional[Tag]:
    try:
        return soup.select_one(selector)
    except SelectorSyntaxError as e:
        raise ValidationError(f"Invalid CSS selector {selector!r}: {e}") from e


def select_content_html(html: str, selector: Optional[str] = None) -> str:
    """Pick the markup to convert: an explicit selector, a content container, or cleaned body."""
    soup = BeautifulSoup(html or "", "html.parser")

    if selector:
        el = _select_one(soup, selector)
        return str(el) if el is not None else ""

    for candidate in CONTENT_SELECTORS:
        el = soup.select_one(candidate)
        if el is not None:
            return str(el)

    body: Any = soup.body or soup
    for chrome in CHROME_SELECTORS:
        for el in body.select(chrome):
            el.decompose()
    return str(body)


async def extract_markdown(page: Page, selector: Optional[str] = None) -> str:
    """Extract the page's main content as markdown."""
    html = await page.content()
    return html_to_markdown(select_content_html(html, selector))
