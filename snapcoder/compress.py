"""
Size-budget compression for raw screenshots.

Stages, each entered only when the previous one did not fit the budget:

1. pass-through of the raw lossless buffer
2. pre-resize below the codec's pixel ceiling
3. JPEG quality search 90 -> 20
4. geometric reduction 0.9 -> 0.3 at quality 80
5. best-effort: smallest buffer seen, tagged

Importing this module (and so the snapcoder package) sets
``PIL.Image.MAX_IMAGE_PIXELS = None`` for the whole process. Raw full-page
captures routinely exceed Pillow's decompression-bomb limit; the pixel
ceiling in ``SizeBudget`` bounds the work instead. Callers that open
untrusted images elsewhere in the same process should restore a limit.
"""

import io
import math
from typing import Optional, Tuple

from PIL import Image

from snapcoder.types import LOSSLESS, CompressionResult, RawCapture, SizeBudget

Image.MAX_IMAGE_PIXELS = None

LOSSY_FORMAT = "JPEG"
LOSSY_EXTENSION = "jpg"

SAFETY_MARGIN = 0.95
QUALITY_STEPS = (90, 80, 70, 60, 50, 40, 30, 20)
SCALE_STEPS = (9, 8, 7, 6, 5, 4, 3)  # tenths
SCALE_QUALITY = 80


# ---------- geometry ----------

def fit_inside(width: int, height: int, scale: float) -> Tuple[int, int]:
    return max(1, math.floor(width * scale)), max(1, math.floor(height * scale))


def pre_resize_scale(width: int, height: int, budget: SizeBudget) -> Optional[float]:
    """Scale factor that brings a raster under the codec ceiling, or None if it already fits."""
    total = width * height
    longest = max(width, height)
    if total <= budget.max_pixels and longest <= budget.max_side:
        return None
    factor = math.sqrt(budget.max_pixels / total)
    if longest > budget.max_side:
        factor = min(factor, budget.max_side / longest)
    return min(factor, 1.0) * SAFETY_MARGIN


# ---------- codec ----------

def _flatten(image: Image.Image) -> Image.Image:
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        rgb = Image.new("RGB", rgba.size, (255, 255, 255))
        rgb.paste(rgba, mask=rgba.split()[3])
        return rgb
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def _resize(image: Image.Image, size: Tuple[int, int]) -> Image.Image:
    return image.resize(size, Image.Resampling.LANCZOS)


def _encode_jpeg(image: Image.Image, quality: int) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format=LOSSY_FORMAT, quality=quality, optimize=True)
    return buf.getvalue()


def _fallback(raw: RawCapture, diagnostic: str, quality=None, scale=None) -> CompressionResult:
    return CompressionResult(
        buffer=raw.buffer,
        encoding=LOSSLESS,
        extension=raw.extension,
        width=raw.width,
        height=raw.height,
        stage="fallback",
        quality=quality,
        scale=scale,
        diagnostic=diagnostic,
    )


# ---------- search ----------

def compress(raw: RawCapture, budget: Optional[SizeBudget] = None) -> CompressionResult:
    """
    Shrink ``raw`` until it fits ``budget.max_bytes``.

    Always returns a buffer. Codec errors on individual attempts are skipped;
    if the capture cannot be decoded at all, or no attempt encodes, the
    original buffer comes back with ``stage="fallback"`` and a diagnostic.
    """
    budget = budget or SizeBudget()
    if not isinstance(raw, RawCapture):
        raise ValueError(f"Expected a RawCapture, got {type(raw).__name__}")

    if len(raw.buffer) <= budget.max_bytes:
        return CompressionResult(
            buffer=raw.buffer,
            encoding=LOSSLESS,
            extension=raw.extension,
            width=raw.width,
            height=raw.height,
            stage="passthrough",
        )

    try:
        image = Image.open(io.BytesIO(raw.buffer))
        image.load()
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        return _fallback(raw, f"could not decode capture: {exc}")

    try:
        scale = pre_resize_scale(image.width, image.height, budget)
        if scale is not None:
            image = _resize(image, fit_inside(image.width, image.height, scale))
        working = _flatten(image)
    except (OSError, ValueError, MemoryError) as exc:
        return _fallback(raw, f"could not prepare capture for re-encoding: {exc}")

    best: Optional[Tuple[bytes, int, int, int, Optional[float]]] = None
    errors = []
    last_quality = None
    last_scale = None

    for quality in QUALITY_STEPS:
        last_quality = quality
        try:
            data = _encode_jpeg(working, quality)
        except (OSError, ValueError) as exc:
            errors.append(f"quality {quality}: {exc}")
            continue
        if best is None or len(data) < len(best[0]):
            best = (data, working.width, working.height, quality, None)
        if len(data) <= budget.max_bytes:
            return _lossy(data, working.width, working.height, "quality", quality, None)

    for tenths in SCALE_STEPS:
        factor = tenths / 10
        last_scale, last_quality = factor, SCALE_QUALITY
        size = (max(1, working.width * tenths // 10), max(1, working.height * tenths // 10))
        try:
            data = _encode_jpeg(_resize(working, size), SCALE_QUALITY)
        except (OSError, ValueError) as exc:
            errors.append(f"scale {factor}: {exc}")
            continue
        if best is None or len(data) < len(best[0]):
            best = (data, size[0], size[1], SCALE_QUALITY, factor)
        if len(data) <= budget.max_bytes:
            return _lossy(data, size[0], size[1], "scale", SCALE_QUALITY, factor)

    if best is None:
        return _fallback(
            raw,
            "every re-encode attempt failed: " + "; ".join(errors),
            quality=last_quality,
            scale=last_scale,
        )

    data, width, height, quality, _ = best
    return CompressionResult(
        buffer=data,
        encoding=f"lossy-quality-{quality}",
        extension=LOSSY_EXTENSION,
        width=width,
        height=height,
        stage="best-effort",
        best_effort=True,
        quality=last_quality,
        scale=last_scale,
        diagnostic=(
            f"smallest result is {len(data)} bytes, over the {budget.max_bytes} byte budget "
            f"after quality {QUALITY_STEPS[-1]} and scale {SCALE_STEPS[-1] / 10}"
        ),
    )


def _lossy(data: bytes, width: int, height: int, stage: str, quality: int,
           scale: Optional[float]) -> CompressionResult:
    return CompressionResult(
        buffer=data,
        encoding=f"lossy-quality-{quality}",
        extension=LOSSY_EXTENSION,
        width=width,
        height=height,
        stage=stage,
        quality=quality,
        scale=scale,
    )
