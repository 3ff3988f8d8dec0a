"""Core data types for Pictogram."""

import dataclasses
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
from PIL import Image

from pictogram.errors import PictogramError
from pictogram.formats import OutputFormat

RGBA_CHANNELS = 4


@dataclasses.dataclass(frozen=True, eq=False)
class PixelBuffer:
    """A decoded raster held as a read-only ``(height, width, 4)`` uint8 RGBA array.

    The array is frozen on construction. Transform primitives never write
    into ``pixels``; every step that changes the image returns a new buffer.
    """
    pixels: np.ndarray

    def __post_init__(self):
        arr = self.pixels
        if arr.ndim != 3 or arr.shape[2] != RGBA_CHANNELS:
            raise ValueError(f"PixelBuffer expects an (H, W, 4) array, got shape {arr.shape}")
        if arr.dtype != np.uint8:
            raise ValueError(f"PixelBuffer expects uint8 pixels, got {arr.dtype}")
        # The buffer takes ownership of the array
        arr.flags.writeable = False

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    @classmethod
    def from_image(cls, img: Image.Image) -> "PixelBuffer":
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        return cls(np.asarray(img, dtype=np.uint8))

    @classmethod
    def blank(cls, width: int, height: int, color=(0, 0, 0, 255)) -> "PixelBuffer":
        arr = np.empty((height, width, RGBA_CHANNELS), dtype=np.uint8)
        arr[:, :] = color
        return cls(arr)

    def to_image(self) -> Image.Image:
        return Image.fromarray(np.ascontiguousarray(self.pixels), mode="RGBA")

    def has_transparency(self) -> bool:
        return bool((self.pixels[:, :, 3] != 255).any())

    def __eq__(self, other):
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self.pixels.shape == other.pixels.shape and np.array_equal(self.pixels, other.pixels)

    __hash__ = None

    def __sizeof__(self) -> int:
        return self.pixels.nbytes

    def __repr__(self) -> str:
        return f"PixelBuffer({self.width}x{self.height})"


@dataclasses.dataclass(frozen=True)
class EncodedImage:
    """Bytes produced by the codec, labelled with the format actually written."""
    data: bytes
    format: OutputFormat
    width: int
    height: int
    # Set when the requested format could not be written and ``format`` was used instead
    fallback_from: Optional[OutputFormat] = None


@dataclasses.dataclass(frozen=True)
class PipelineResult:
    """Output of one pipeline run. ``format`` is what the bytes really are."""
    data: bytes
    width: int
    height: int
    format: OutputFormat
    requested_format: OutputFormat
    operation_count: int = 0

    @property
    def fell_back(self) -> bool:
        return self.format is not self.requested_format

    @property
    def mime_type(self) -> str:
        return self.format.mime_type

    @property
    def extension(self) -> str:
        return self.format.extension


@dataclasses.dataclass(frozen=True)
class PipelineOutcome:
    """Value-based result of a pipeline call: exactly one of ``result`` / ``error`` is set."""
    result: Optional[PipelineResult] = None
    error: Optional[PictogramError] = None

    def __post_init__(self):
        if (self.result is None) == (self.error is None):
            raise ValueError("PipelineOutcome needs exactly one of result or error")

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> PipelineResult:
        """Returns the result or re-raises the stored error."""
        if self.error is not None:
            raise self.error
        return self.result


@dataclasses.dataclass(frozen=True)
class ThumbnailEntry:
    """A cached PNG thumbnail. Never mutated once stored."""
    key: str
    filename: str
    data: bytes
    width: int
    height: int
    format: OutputFormat = OutputFormat.PNG

    def __sizeof__(self) -> int:
        return len(self.data)


@dataclasses.dataclass(frozen=True)
class ExportArtifact:
    """Everything an export sink needs: final bytes, file name and MIME type."""
    data: bytes
    filename: str
    mime_type: str
    width: int
    height: int
    format: OutputFormat


@dataclasses.dataclass
class ImageFile:
    """Represents a single image file on disk."""
    path: Path
    size: int = 0
    mtime_ns: int = 0


@dataclasses.dataclass(frozen=True)
class ExportOutcome:
    """Value-based result of an export: the artifact and where the sink put it, or an error."""
    artifact: Optional[ExportArtifact] = None
    destination: Optional[str] = None
    error: Optional[PictogramError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.artifact is not None


@dataclasses.dataclass
class Sidecar:
    """Represents the entire pictogram.json sidecar file."""
    version: int = 1
    # file name -> serialized operations, oldest first
    entries: Dict[str, List[dict]] = dataclasses.field(default_factory=dict)
