import io

import pytest
from PIL import Image

from webresearch_mcp.errors import CaptureError
from webresearch_mcp.screenshot import MIN_DIM, capture_bounded, clamp_extent, fit_to_budget

from .conftest import FakePage, png_bytes


def dims(data: bytes):
    with Image.open(io.BytesIO(data)) as img:
        return img.size, img.mode


@pytest.mark.asyncio
async def test_large_page_within_budget():
    page = FakePage(extent=(4000, 3000))
    data = await capture_bounded(page, 500_000)
    assert len(data) <= 500_000
    (width, height), _ = dims(data)
    assert width >= MIN_DIM and height >= MIN_DIM
    assert page.viewport_calls[0] == {"width": 4000, "height": 3000}


@pytest.mark.asyncio
async def test_tiny_page_fails_before_capture():
    page = FakePage(extent=(50, 50))
    with pytest.raises(CaptureError, match="Page too small"):
        await capture_bounded(page)
    assert page.viewport_calls == []
    assert page.screenshot_calls == 0


@pytest.mark.asyncio
async def test_viewport_is_restored():
    page = FakePage(extent=(1200, 900))
    await capture_bounded(page, restore_viewport={"width": 1920, "height": 1080})
    assert page.viewport_size == {"width": 1920, "height": 1080}


@pytest.mark.asyncio
async def test_unreadable_extent():
    page = FakePage()

    async def broken(script, arg=None):
        return None

    page.evaluate = broken
    with pytest.raises(CaptureError, match="Could not read page extent"):
        await capture_bounded(page)


def test_clamp_extent_caps_at_max():
    assert clamp_extent(20_000, 500) == (10_000, 500)


def test_small_input_returned_untouched():
    raw = png_bytes(200, 200)
    assert fit_to_budget(raw, 500_000) is raw


def test_noisy_image_is_resized_into_budget():
    raw = png_bytes(800, 600, "noise")
    assert len(raw) > 500_000
    data = fit_to_budget(raw, 500_000)
    assert len(data) <= 500_000
    (width, height), _ = dims(data)
    assert width < 800 and height < 600
    assert width >= MIN_DIM and height >= MIN_DIM


def test_unreachable_budget_returns_final_pass():
    raw = png_bytes(400, 300, "noise")
    data = fit_to_budget(raw, 1_000)
    (width, height), mode = dims(data)
    assert (width, height) == (400, 300)
    assert mode == "P"


def test_final_pass_fits_box():
    raw = png_bytes(1600, 1200, "noise")
    data = fit_to_budget(raw, 1_000)
    (width, height), mode = dims(data)
    assert width <= 640 and height <= 480
    assert mode == "P"
