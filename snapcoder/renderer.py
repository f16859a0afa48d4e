"""Playwright-backed renderer used by the CLI."""

import io
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Tuple

from PIL import Image
from playwright.sync_api import Error as PWError
from playwright.sync_api import TimeoutError as PWTimeoutError

from snapcoder.errors import RendererError, RendererTimeoutError
from snapcoder.types import RawCapture

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--disable-features=IsolateOrigins,site-per-process",
]

NAV_TIMEOUT_MS = 30000

# ---------- JS helpers ----------

JS_SCROLL_HEIGHT = "() => document.body ? document.body.scrollHeight : 0"

JS_MEASURE = r"""
() => {
  const body = document.body || {};
  const html = document.documentElement;
  return {
    bodyScrollWidth: body.scrollWidth || 0,
    bodyOffsetWidth: body.offsetWidth || 0,
    htmlClientWidth: html.clientWidth,
    htmlScrollWidth: html.scrollWidth,
    htmlOffsetWidth: html.offsetWidth,
    bodyScrollHeight: body.scrollHeight || 0,
    bodyOffsetHeight: body.offsetHeight || 0,
    htmlClientHeight: html.clientHeight,
    htmlScrollHeight: html.scrollHeight,
    htmlOffsetHeight: html.offsetHeight,
  };
}
"""


def parse_headless(value: str) -> bool:
    value = (value or "true").strip().lower()
    if value in ("true", "new"):
        return True
    if value == "false":
        return False
    raise ValueError(f"Headless mode must be true, false, or new (got {value!r})")


def png_size(buffer: bytes) -> Tuple[int, int]:
    with Image.open(io.BytesIO(buffer)) as img:
        return img.size


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except PWTimeoutError as exc:
        raise RendererTimeoutError(f"Timed out while {action}: {exc}") from exc
    except PWError as exc:
        raise RendererError(f"Renderer failed while {action}: {exc}") from exc


class PlaywrightRenderer:
    """
    Thin wrapper over a Playwright page exposing just what the capture core needs.
    """

    def __init__(self, page):
        self.page = page

    def goto(self, url: str, timeout_ms: int = NAV_TIMEOUT_MS):
        self.page.set_default_timeout(timeout_ms)
        try:
            self.page.goto(url, wait_until="networkidle", timeout=timeout_ms)
        except PWTimeoutError:
            # pages with tracking pixels may never reach network idle
            with translate_errors(f"loading {url}"):
                self.page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        except PWError as exc:
            raise RendererError(f"Could not load {url}: {exc}") from exc

    def viewport_size(self) -> Tuple[int, int]:
        size = self.page.viewport_size or {"width": 0, "height": 0}
        return size["width"], size["height"]

    def wait(self, ms: int):
        with translate_errors("waiting"):
            self.page.wait_for_timeout(ms)

    def scroll_by(self, dx: int, dy: int):
        with translate_errors("scrolling"):
            self.page.evaluate("([dx, dy]) => window.scrollBy(dx, dy)", [dx, dy])

    def scroll_to(self, x: int, y: int):
        with translate_errors("scrolling"):
            self.page.evaluate("([x, y]) => window.scrollTo(x, y)", [x, y])

    def scroll_height(self) -> int:
        with translate_errors("reading scroll height"):
            return int(self.page.evaluate(JS_SCROLL_HEIGHT))

    def measure(self) -> Dict[str, int]:
        with translate_errors("measuring the document"):
            return {k: int(v) for k, v in self.page.evaluate(JS_MEASURE).items()}

    def screenshot(self, full_page: bool = False, clip: Optional[Dict[str, float]] = None) -> RawCapture:
        kwargs = {"type": "png", "full_page": full_page}
        if clip:
            kwargs["clip"] = clip
        with translate_errors("taking the screenshot"):
            buffer = self.page.screenshot(**kwargs)
        width, height = png_size(buffer)
        return RawCapture(buffer=buffer, width=width, height=height, extension="png")


@contextmanager
def open_renderer(playwright, width: int = 1920, height: int = 1080,
                  headless: bool = True) -> Iterator[PlaywrightRenderer]:
    """Launch chromium with one page sized to ``width`` x ``height``; always closes the browser."""
    with translate_errors("launching the browser"):
        browser = playwright.chromium.launch(headless=headless, args=LAUNCH_ARGS)
    try:
        with translate_errors("opening a page"):
            context = browser.new_context(
                viewport={"width": width, "height": height},
                device_scale_factor=1,
                user_agent=USER_AGENT,
            )
            page = context.new_page()
        yield PlaywrightRenderer(page)
    finally:
        browser.close()
