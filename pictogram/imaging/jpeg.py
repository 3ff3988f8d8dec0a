"""JPEG fast path using PyTurboJPEG. Callers fall back to Pillow when it returns None."""

import logging
import warnings
from typing import Optional

import numpy as np

log = logging.getLogger(__name__)

# Attempt to import PyTurboJPEG

try:
    from turbojpeg import TurboJPEG, TJPF_RGBA
except ImportError:
    jpeg_decoder = None
    TURBO_AVAILABLE = False
    log.info("PyTurboJPEG not found. Pillow will decode JPEG input.")
else:
    try:
        jpeg_decoder = TurboJPEG()
    except Exception:
        # libturbojpeg shared library missing or unloadable
        jpeg_decoder = None
        TURBO_AVAILABLE = False
        log.warning("PyTurboJPEG initialization failed. Pillow will decode JPEG input.")
    else:
        TURBO_AVAILABLE = True
        log.info("PyTurboJPEG is available. Using it for JPEG decoding.")

JPEG_SOI = b"\xff\xd8\xff"


def looks_like_jpeg(data: bytes) -> bool:
    return data[:3] == JPEG_SOI


def decode_jpeg_rgba(jpeg_bytes: bytes) -> Optional[np.ndarray]:
    """Decodes JPEG bytes into an (H, W, 4) uint8 array, or None if the fast path is unusable."""
    if not (TURBO_AVAILABLE and jpeg_decoder):
        return None
    try:
        # Corrupt-data warnings (truncated scans) must not yield a half-grey image
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            # flags=0 keeps the accurate DCT so output matches Pillow closely
            decoded = jpeg_decoder.decode(jpeg_bytes, pixel_format=TJPF_RGBA, flags=0)
    except Exception as e:
        log.debug(f"PyTurboJPEG failed to decode image: {e}. Trying Pillow.")
        return None
    if decoded is None or decoded.ndim != 3 or decoded.shape[2] != 4:
        return None
    # libjpeg-turbo fills the padding byte with 0xFF, but don't rely on it
    decoded[:, :, 3] = 255
    return decoded
