"""Screenshot capture under a byte budget.

PNG size is a non-linear, content-dependent function of pixel count, so the
target dimensions cannot be computed up front. The capture is shrunk
iteratively, starting from a generous safety margin.
"""

from __future__ import annotations

import io
import logging
import math
from typing import Any, Optional, Tuple

from PIL import Image
from playwright.async_api import Page

from .errors import CaptureError

logger = logging.getLogger(__name__)

MIN_DIM = 100
MAX_DIM = 10_000
DEFAULT_MAX_BYTES = 500_000

INITIAL_MARGIN = 0.8
SCALE_STEP = 0.7
MAX_RESIZE_ATTEMPTS = 5
FINAL_BOX = (640, 480)
FINAL_COLORS = 64

EXTENT_SCRIPT = """
() => {
    const doc = document.documentElement;
    const body = document.body;
    return {
        width: Math.max(doc ? doc.scrollWidth : 0, body ? body.scrollWidth : 0),
        height: Math.max(doc ? doc.scrollHeight : 0, body ? body.scrollHeight : 0),
    };
}
"""


def clamp_extent(width: int, height: int) -> Tuple[int, int]:
    """Cap the page extent at MAX_DIM; fail if either side is under MIN_DIM."""
    width, height = min(int(width), MAX_DIM), min(int(height), MAX_DIM)
    if width < MIN_DIM or height < MIN_DIM:
        raise CaptureError(
            f"Page too small for screenshot: {width}x{height} (minimum {MIN_DIM}x{MIN_DIM})"
        )
    return width, height


def _encode_png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG", optimize=True, compress_level=9)
    return buf.getvalue()


def _resize(img: Image.Image, scale: float) -> Image.Image:
    width = max(MIN_DIM, int(img.width * scale))
    height = max(MIN_DIM, int(img.height * scale))
    return img.resize((width, height), Image.Resampling.LANCZOS)


def _final_pass(img: Image.Image) -> bytes:
    box_w, box_h = FINAL_BOX
    scale = min(box_w / img.width, box_h / img.height, 1.0)
    small = _resize(img, scale) if scale < 1.0 else img.copy()
    quantized = small.convert("RGB").quantize(colors=FINAL_COLORS)
    return _encode_png(quantized)


def fit_to_budget(raw: bytes, max_bytes: int = DEFAULT_MAX_BYTES) -> bytes:
    """Shrink PNG bytes until they fit ``max_bytes``.

    Small inputs are returned untouched. After MAX_RESIZE_ATTEMPTS the image is
    reduced to fit FINAL_BOX with a reduced palette and returned whatever its size.
    """
    if len(raw) <= max_bytes:
        return raw

    with Image.open(io.BytesIO(raw)) as source:
        source.load()
        img = source.copy()
    logger.info("Screenshot %dx%d is %d bytes, budget %d", img.width, img.height, len(raw), max_bytes)

    scale = math.sqrt(max_bytes / len(raw)) * INITIAL_MARGIN
    for attempt in range(1, MAX_RESIZE_ATTEMPTS + 1):
        resized = _resize(img, scale)
        data = _encode_png(resized)
        logger.debug(
            "Resize attempt %d: %dx%d (scale %.3f) -> %d bytes",
            attempt,
            resized.width,
            resized.height,
            scale,
            len(data),
        )
        if len(data) <= max_bytes:
            return data
        scale *= SCALE_STEP

    data = _final_pass(img)
    if len(data) > max_bytes:
        logger.warning("Final screenshot pass is %d bytes, over budget of %d", len(data), max_bytes)
    return data


async def capture_bounded(
    page: Page,
    max_bytes: int = DEFAULT_MAX_BYTES,
    *,
    restore_viewport: Optional[dict[str, int]] = None,
) -> bytes:
    """Capture the page's full content extent as PNG within ``max_bytes``."""
    extent: Any = await page.evaluate(EXTENT_SCRIPT)
    try:
        width, height = int(extent["width"]), int(extent["height"])
    except (TypeError, KeyError, ValueError) as e:
        raise CaptureError(f"Could not read page extent: {extent!r}") from e

    width, height = clamp_extent(width, height)

    original = restore_viewport or page.viewport_size
    try:
        await page.set_viewport_size({"width": width, "height": height})
        raw = await page.screenshot(type="png", full_page=False)
    except Exception as e:
        raise CaptureError(f"Screenshot failed: {e}") from e
    finally:
        if original:
            try:
                await page.set_viewport_size(original)
            except Exception as e:
                logger.debug("Restoring viewport failed: %s", e)

    try:
        return fit_to_budget(raw, max_bytes)
    except OSError as e:
        raise CaptureError(f"Screenshot could not be decoded: {e}") from e
