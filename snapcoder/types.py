from dataclasses import dataclass
from typing import Optional

DEFAULT_MAX_BYTES = 5 * 1024 * 1024
# 0x3FFF * 0x3FFF, the largest raster the lossy pipeline handles without resizing
DEFAULT_MAX_PIXELS = 268_402_689
# JPEG stores each dimension in 16 bits; libjpeg refuses anything above 65500
DEFAULT_MAX_SIDE = 65_500

LOSSLESS = "lossless"


@dataclass(frozen=True)
class RawCapture:
    """An unmodified lossless capture straight from the renderer."""

    buffer: bytes
    width: int
    height: int
    extension: str = "png"

    def __post_init__(self):
        if not self.buffer:
            raise ValueError("Raw capture is empty.")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Raw capture has invalid dimensions {self.width}x{self.height}.")

    @property
    def total_pixels(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class SizeBudget:
    max_bytes: int = DEFAULT_MAX_BYTES
    max_pixels: int = DEFAULT_MAX_PIXELS
    max_side: int = DEFAULT_MAX_SIDE

    def __post_init__(self):
        for name in ("max_bytes", "max_pixels", "max_side"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")


@dataclass(frozen=True)
class CompressionResult:
    """
    Output of the compressor.

    ``stage`` records where the search ended: passthrough, quality, scale,
    best-effort, or fallback (original returned after a codec failure).
    ``quality``/``scale`` hold the last attempted values for diagnostics.
    """

    buffer: bytes
    encoding: str
    extension: str
    width: int
    height: int
    stage: str
    best_effort: bool = False
    quality: Optional[int] = None
    scale: Optional[float] = None
    diagnostic: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.buffer)

    @property
    def fallback(self) -> bool:
        return self.stage == "fallback"

    @property
    def within_budget(self) -> bool:
        return not (self.best_effort or self.fallback)


@dataclass(frozen=True)
class PageGeometry:
    width: int
    height: int
