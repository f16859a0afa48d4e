from __future__ import annotations

import io

import pytest
from PIL import Image
from playwright.sync_api import Error as PWError
from playwright.sync_api import TimeoutError as PWTimeoutError

from snapcoder.errors import RendererError, RendererTimeoutError
from snapcoder.renderer import PlaywrightRenderer


class FakePage:
    def __init__(self, goto_errors=(), evaluate_error=None):
        self.goto_errors = list(goto_errors)
        self.evaluate_error = evaluate_error
        self.gotos = []
        self.viewport_size = {"width": 1024, "height": 768}

    def set_default_timeout(self, ms):
        self.timeout = ms

    def goto(self, url, wait_until=None, timeout=None):
        self.gotos.append(wait_until)
        if self.goto_errors:
            raise self.goto_errors.pop(0)

    def evaluate(self, script, arg=None):
        if self.evaluate_error:
            raise self.evaluate_error
        return {"htmlScrollHeight": 1234.0}

    def screenshot(self, **kwargs):
        self.screenshot_kwargs = kwargs
        buf = io.BytesIO()
        Image.new("RGB", (12, 7)).save(buf, format="PNG")
        return buf.getvalue()


def test_goto_falls_back_to_domcontentloaded() -> None:
    page = FakePage(goto_errors=[PWTimeoutError("networkidle never reached")])
    PlaywrightRenderer(page).goto("https://example.com")
    assert page.gotos == ["networkidle", "domcontentloaded"]


def test_goto_timeout_after_fallback() -> None:
    page = FakePage(goto_errors=[PWTimeoutError("slow"), PWTimeoutError("still slow")])
    with pytest.raises(RendererTimeoutError):
        PlaywrightRenderer(page).goto("https://example.com")


def test_goto_navigation_error() -> None:
    page = FakePage(goto_errors=[PWError("net::ERR_NAME_NOT_RESOLVED")])
    with pytest.raises(RendererError) as exc:
        PlaywrightRenderer(page).goto("https://nope.invalid")
    assert not isinstance(exc.value, RendererTimeoutError)


def test_disconnect_during_measure_is_renderer_error() -> None:
    page = FakePage(evaluate_error=PWError("Target page, context or browser has been closed"))
    with pytest.raises(RendererError):
        PlaywrightRenderer(page).measure()


def test_measure_returns_ints() -> None:
    assert PlaywrightRenderer(FakePage()).measure() == {"htmlScrollHeight": 1234}


def test_screenshot_reads_dimensions() -> None:
    page = FakePage()
    raw = PlaywrightRenderer(page).screenshot(full_page=True)
    assert (raw.width, raw.height) == (12, 7)
    assert raw.extension == "png"
    assert page.screenshot_kwargs == {"type": "png", "full_page": True}


def test_viewport_size() -> None:
    assert PlaywrightRenderer(FakePage()).viewport_size() == (1024, 768)
