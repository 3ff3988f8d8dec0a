import os
import tempfile
from io import BytesIO

# Must happen before pictogram.config is imported: the global config writes its INI on import
os.environ["PICTOGRAM_HOME"] = tempfile.mkdtemp(prefix="pictogram-tests-")

import numpy as np
import pytest
from PIL import Image


def encode_image(img: Image.Image, fmt: str = "PNG", **kwargs) -> bytes:
    out = BytesIO()
    img.save(out, format=fmt, **kwargs)
    return out.getvalue()


@pytest.fixture
def make_image_bytes():
    """Factory for solid-colour source images of a given size and format."""
    def _make(width=400, height=300, fmt="PNG", color=(200, 40, 40)):
        mode = "RGBA" if len(color) == 4 else "RGB"
        return encode_image(Image.new(mode, (width, height), color=color), fmt)
    return _make


@pytest.fixture
def noise_png():
    """A 64x64 PNG of random pixels, large enough that truncating it breaks the data stream."""
    rng = np.random.default_rng(1234)
    arr = rng.integers(0, 256, size=(64, 64, 4), dtype=np.uint8)
    return encode_image(Image.fromarray(arr, mode="RGBA"))
