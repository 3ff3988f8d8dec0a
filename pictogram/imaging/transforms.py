"""Pure pixel-buffer transforms: rotate, flip, resize and center-crop.

Every function returns a new PixelBuffer and leaves its input untouched.
"""

import enum
import logging
from typing import Optional, Tuple

import numpy as np
from PIL import Image

from pictogram.errors import InvalidOperationError
from pictogram.models import PixelBuffer

log = logging.getLogger(__name__)


class Interpolation(enum.Enum):
    NEAREST = "nearest"
    BILINEAR = "bilinear"
    BICUBIC = "bicubic"
    LANCZOS = "lanczos"

    @property
    def resample(self) -> Image.Resampling:
        return {
            Interpolation.NEAREST: Image.Resampling.NEAREST,
            Interpolation.BILINEAR: Image.Resampling.BILINEAR,
            Interpolation.BICUBIC: Image.Resampling.BICUBIC,
            Interpolation.LANCZOS: Image.Resampling.LANCZOS,
        }[self]

    @classmethod
    def parse(cls, text: str) -> "Interpolation":
        try:
            return cls(text.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown interpolation: {text!r}") from None


def rotate(buffer: PixelBuffer, degrees: int) -> PixelBuffer:
    """Rotates by a multiple of 90 degrees. Positive is clockwise."""
    if degrees % 90 != 0:
        raise ValueError(f"Only 90 degree steps are supported, got {degrees}")
    # np.rot90 turns counter-clockwise for positive k
    k = (-degrees // 90) % 4
    if k == 0:
        return PixelBuffer(buffer.pixels.copy())
    return PixelBuffer(np.rot90(buffer.pixels, k=k).copy())


def rotate_right(buffer: PixelBuffer) -> PixelBuffer:
    return rotate(buffer, 90)


def rotate_left(buffer: PixelBuffer) -> PixelBuffer:
    return rotate(buffer, -90)


def flip_horizontal(buffer: PixelBuffer) -> PixelBuffer:
    """Mirrors left to right."""
    return PixelBuffer(buffer.pixels[:, ::-1].copy())


def flip_vertical(buffer: PixelBuffer) -> PixelBuffer:
    """Mirrors top to bottom."""
    return PixelBuffer(buffer.pixels[::-1].copy())


def resolve_resize(
    src_width: int,
    src_height: int,
    width: Optional[int],
    height: Optional[int],
) -> Optional[Tuple[int, int]]:
    """
    Works out the target size for a resize request.

    Non-positive values count as missing. With one side given, the other
    follows the source aspect ratio (rounded, at least 1 px). Returns None
    when nothing is left to resize to.
    """
    w = width if width is not None and width > 0 else None
    h = height if height is not None and height > 0 else None
    if w is None and h is None:
        return None
    if src_width <= 0 or src_height <= 0:
        return None
    if h is None:
        h = max(1, round(w * src_height / src_width))
    elif w is None:
        w = max(1, round(h * src_width / src_height))
    return int(w), int(h)


def resize(
    buffer: PixelBuffer,
    width: Optional[int] = None,
    height: Optional[int] = None,
    interpolation: Interpolation = Interpolation.BILINEAR,
    max_pixels: Optional[int] = None,
) -> PixelBuffer:
    """
    Resizes to ``width`` x ``height``.

    Both given: exactly that size, aspect ratio is not preserved.
    One given: the other is derived from the buffer's aspect ratio.
    Neither (or only non-positive values): returns the buffer unchanged.

    Raises:
        InvalidOperationError: if the target is larger than ``max_pixels``
            or cannot be allocated.
    """
    target = resolve_resize(buffer.width, buffer.height, width, height)
    if target is None:
        return buffer
    if max_pixels and target[0] * target[1] > max_pixels:
        raise InvalidOperationError(
            f"Resize of {buffer.width}x{buffer.height} to {target[0]}x{target[1]} "
            f"exceeds the {max_pixels / 1e6:g} megapixel limit"
        )
    if target == buffer.size:
        return PixelBuffer(buffer.pixels.copy())
    try:
        img = buffer.to_image().resize(target, resample=interpolation.resample)
        return PixelBuffer.from_image(img)
    except (MemoryError, ValueError) as e:
        raise InvalidOperationError(f"Cannot resize to {target[0]}x{target[1]}: {e}") from e


def crop_center(buffer: PixelBuffer, target_width: int, target_height: int) -> PixelBuffer:
    """
    Crops a ``target_width`` x ``target_height`` window centred on the image.

    The origin is ``max(0, (size - target) // 2)`` on each axis. When the
    source is smaller than the target the window is clamped to the source,
    so the result can be smaller than requested.
    """
    if target_width <= 0 or target_height <= 0:
        raise ValueError(f"Crop size must be positive, got {target_width}x{target_height}")
    w, h = buffer.size
    x = max(0, (w - target_width) // 2)
    y = max(0, (h - target_height) // 2)
    crop_w = min(target_width, w - x)
    crop_h = min(target_height, h - y)
    if crop_w < target_width or crop_h < target_height:
        log.debug(f"Crop window {target_width}x{target_height} clamped to {crop_w}x{crop_h} for {w}x{h} source")
    return PixelBuffer(buffer.pixels[y:y + crop_h, x:x + crop_w].copy())
