"""
Full-page geometry resolution.

Lazy-loading pages only grow while something scrolls past their content, so
the document is walked top to bottom before it is measured.
"""

import time
from typing import Tuple

from snapcoder.errors import RendererTimeoutError
from snapcoder.types import PageGeometry, RawCapture

SCROLL_STEP = 100
SCROLL_INTERVAL_MS = 100
SETTLE_MS = 1000
SCROLL_TIMEOUT_MS = 120000

WIDTH_SOURCES = ("bodyScrollWidth", "bodyOffsetWidth", "htmlClientWidth", "htmlScrollWidth", "htmlOffsetWidth")
HEIGHT_SOURCES = ("bodyScrollHeight", "bodyOffsetHeight", "htmlClientHeight", "htmlScrollHeight", "htmlOffsetHeight")


def elicit_lazy_content(renderer, step: int = SCROLL_STEP, interval_ms: int = SCROLL_INTERVAL_MS,
                        timeout_ms: int = SCROLL_TIMEOUT_MS) -> int:
    """
    Scroll down ``step`` px every ``interval_ms`` until the distance scrolled
    catches up with the document height. Returns the largest height seen.
    """
    if step <= 0 or interval_ms < 0:
        raise ValueError("step must be positive and interval_ms non-negative")
    scrolled = 0
    height = 0
    waited = 0
    started = time.monotonic()
    while True:
        renderer.wait(interval_ms)
        waited += interval_ms
        # wall clock covers zero intervals and slow renderer calls
        elapsed = max(waited, int((time.monotonic() - started) * 1000))
        # never let a shrinking page pull the target back up
        height = max(height, renderer.scroll_height())
        renderer.scroll_by(0, step)
        scrolled += step
        if scrolled >= height:
            return height
        if elapsed >= timeout_ms:
            raise RendererTimeoutError(
                f"Page kept growing: scrolled {scrolled}px of {height}px after {elapsed}ms"
            )


def measure_geometry(renderer, floor_height: int = 0) -> PageGeometry:
    m = renderer.measure()
    vw, vh = renderer.viewport_size()
    width = max([m.get(k, 0) for k in WIDTH_SOURCES] + [vw])
    height = max([m.get(k, 0) for k in HEIGHT_SOURCES] + [vh, floor_height])
    return PageGeometry(width=width, height=height)


def resolve_full_page_geometry(renderer, *, step: int = SCROLL_STEP, interval_ms: int = SCROLL_INTERVAL_MS,
                               settle_ms: int = SETTLE_MS, timeout_ms: int = SCROLL_TIMEOUT_MS) -> PageGeometry:
    height = elicit_lazy_content(renderer, step=step, interval_ms=interval_ms, timeout_ms=timeout_ms)
    renderer.scroll_to(0, 0)
    renderer.wait(settle_ms)
    return measure_geometry(renderer, floor_height=height)


def capture_full_page(renderer, **kwargs) -> Tuple[PageGeometry, RawCapture]:
    geometry = resolve_full_page_geometry(renderer, **kwargs)
    return geometry, renderer.screenshot(full_page=True)
