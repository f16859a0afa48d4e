"""snapcoder: website screenshots that always fit a size budget."""

from snapcoder.compress import compress
from snapcoder.errors import RendererError, RendererTimeoutError, SnapcoderError
from snapcoder.fullpage import capture_full_page, resolve_full_page_geometry
from snapcoder.types import CompressionResult, PageGeometry, RawCapture, SizeBudget

__version__ = "1.0.0"

__all__ = [
    "compress",
    "capture_full_page",
    "resolve_full_page_geometry",
    "CompressionResult",
    "PageGeometry",
    "RawCapture",
    "SizeBudget",
    "SnapcoderError",
    "RendererError",
    "RendererTimeoutError",
]
