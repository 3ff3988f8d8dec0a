"""Codec adapter: raw bytes <-> PixelBuffer, built on Pillow."""

import functools
import logging
from io import BytesIO
from typing import Optional

import numpy as np
from PIL import Image, UnidentifiedImageError, features

from pictogram.config import config
from pictogram.errors import DecodeError, EncodeError
from pictogram.formats import OutputFormat
from pictogram.imaging.jpeg import decode_jpeg_rgba, looks_like_jpeg
from pictogram.models import EncodedImage, PixelBuffer

log = logging.getLogger(__name__)

DEFAULT_QUALITY = 90
MIN_QUALITY = 1
MAX_QUALITY = 100

# Pillow plugins allowed to open input; everything else is rejected as unrecognized
INPUT_PIL_FORMATS = tuple(fmt.pil_format for fmt in OutputFormat)

_DECODE_ERRORS = (
    UnidentifiedImageError,
    OSError,
    SyntaxError,
    ValueError,
    EOFError,
    Image.DecompressionBombError,
)


@functools.lru_cache(maxsize=None)
def webp_supported() -> bool:
    """Whether this Pillow build can write WEBP."""
    return bool(features.check("webp"))


def clamp_quality(quality: Optional[int], default: Optional[int] = None) -> int:
    """Clamps a JPEG quality into [1, 100]; None selects the configured default."""
    if quality is None:
        quality = default if default is not None else config.getint("core", "jpeg_quality", fallback=DEFAULT_QUALITY)
    return max(MIN_QUALITY, min(MAX_QUALITY, int(quality)))


def identify(data: bytes) -> Optional[OutputFormat]:
    """Returns the format of ``data`` from its header, or None. Does not decode pixels."""
    if not data:
        return None
    try:
        with Image.open(BytesIO(data), formats=INPUT_PIL_FORMATS) as im:
            return OutputFormat.from_pil_format(im.format)
    except _DECODE_ERRORS:
        return None


def _to_8bit(im: Image.Image) -> Image.Image:
    """Scales high bit depth greyscale down to ``L``.

    Pillow's own ``convert("RGBA")`` clips ``I;16``/``I`` values at 255
    instead of rescaling them, which turns 16-bit PNGs white.
    """
    if im.mode.startswith("I;16") or im.mode == "I":
        arr = np.clip(np.asarray(im), 0, 65535).astype(np.uint32)
        return Image.fromarray((arr >> 8).astype(np.uint8))
    if im.mode == "F":
        arr = np.clip(np.asarray(im, dtype=np.float32), 0.0, 255.0)
        return Image.fromarray(np.rint(arr).astype(np.uint8))
    return im


def decode(data: bytes, *, use_turbo: Optional[bool] = None) -> PixelBuffer:
    """Decodes JPEG, PNG, BMP, GIF or WEBP bytes into an RGBA PixelBuffer.

    Only the first frame of animated GIF / WEBP input is decoded.

    Raises:
        DecodeError: if ``data`` is empty, truncated or not a supported format.
    """
    if not data:
        raise DecodeError("Image data is empty")

    if use_turbo is None:
        use_turbo = config.getboolean("codec", "use_turbojpeg", fallback=True)
    if use_turbo and looks_like_jpeg(data):
        arr = decode_jpeg_rgba(data)
        if arr is not None:
            log.debug(f"Decoded JPEG with PyTurboJPEG: {arr.shape[1]}x{arr.shape[0]}")
            return PixelBuffer(arr)

    try:
        with Image.open(BytesIO(data), formats=INPUT_PIL_FORMATS) as im:
            source_format = im.format
            if getattr(im, "n_frames", 1) > 1:
                log.debug(f"{source_format} input has {im.n_frames} frames; using the first")
                im.seek(0)
            im.load()
            buffer = PixelBuffer.from_image(_to_8bit(im))
    except _DECODE_ERRORS as e:
        raise DecodeError(f"Unrecognized or corrupt image data ({len(data)} bytes): {e}") from e

    if buffer.is_empty:
        raise DecodeError(f"Decoded {source_format} image has no pixels")
    log.debug(f"Decoded {source_format} with Pillow: {buffer.width}x{buffer.height}")
    return buffer


def _prepare_for(buffer: PixelBuffer, fmt: OutputFormat) -> Image.Image:
    img = buffer.to_image()
    if fmt is OutputFormat.JPEG:
        # JPEG has no alpha channel; it is dropped
        return img.convert("RGB")
    if buffer.has_transparency():
        return img
    return img.convert("RGB")


def encode(
    buffer: PixelBuffer,
    fmt: OutputFormat,
    quality: Optional[int] = None,
    *,
    webp_fallback: Optional[str] = None,
) -> EncodedImage:
    """Encodes ``buffer`` as ``fmt``.

    ``quality`` only affects JPEG and is clamped to [1, 100] (default 90).
    When WEBP is requested but this Pillow build cannot write it, PNG is
    written instead and the returned ``EncodedImage.format`` says so
    (``fallback_from`` is WEBP). With ``webp_fallback="error"`` an
    ``EncodeError`` is raised instead.

    Raises:
        EncodeError: for zero-dimension buffers or encoder failures.
    """
    if not isinstance(fmt, OutputFormat):
        raise EncodeError(f"Not an output format: {fmt!r}")
    if buffer.is_empty:
        raise EncodeError(f"Cannot encode a {buffer.width}x{buffer.height} buffer")

    written = fmt
    fallback_from = None
    if fmt is OutputFormat.WEBP and not webp_supported():
        policy = webp_fallback or config.get("codec", "webp_fallback", fallback="png")
        if policy.strip().lower() == "error":
            raise EncodeError("WEBP encoding is not available in this Pillow build")
        log.warning("WEBP encoding is not available; writing PNG instead")
        written = OutputFormat.PNG
        fallback_from = OutputFormat.WEBP

    save_kwargs = {"format": written.pil_format}
    if written is OutputFormat.JPEG:
        save_kwargs["quality"] = clamp_quality(quality)

    img = _prepare_for(buffer, written)
    out = BytesIO()
    try:
        img.save(out, **save_kwargs)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"Failed to encode {buffer.width}x{buffer.height} image as {written.display_name}: {e}") from e

    data = out.getvalue()
    log.debug(f"Encoded {buffer.width}x{buffer.height} as {written.display_name}: {len(data)} bytes")
    return EncodedImage(
        data=data,
        format=written,
        width=buffer.width,
        height=buffer.height,
        fallback_from=fallback_from,
    )
