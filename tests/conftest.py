from __future__ import annotations

import io
import os

import pytest
from PIL import Image

from snapcoder.types import RawCapture


def png_capture(image: Image.Image) -> RawCapture:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return RawCapture(buffer=buf.getvalue(), width=image.width, height=image.height)


@pytest.fixture
def noise_capture():
    def _make(width: int, height: int, mode: str = "RGB") -> RawCapture:
        channels = len(mode)
        img = Image.frombytes(mode, (width, height), os.urandom(width * height * channels))
        return png_capture(img)

    return _make


@pytest.fixture
def flat_capture():
    def _make(width: int, height: int) -> RawCapture:
        return png_capture(Image.new("RGB", (width, height), (240, 240, 240)))

    return _make
