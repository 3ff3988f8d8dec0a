"""Exception types raised by the codec, the operation log and the session.

The codec converts Pillow / numpy failures into ``DecodeError`` and
``EncodeError`` (chained with ``raise ... from``). The pipeline boundary
(``try_apply_pipeline`` and ``EditSession``) turns them into failed
``PipelineOutcome`` values instead of letting them escape.
"""

from typing import Optional


class PictogramError(Exception):
    """Base class for every error raised by this package."""

    default_message = "Pictogram operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class ImageProcessingError(PictogramError):
    default_message = "Image processing failed"


class DecodeError(ImageProcessingError):
    """Input bytes are empty, truncated or not a supported raster format."""
    default_message = "Failed to decode image"


class EncodeError(ImageProcessingError):
    """The buffer cannot be written in the requested format."""
    default_message = "Failed to encode image"


class ValidationError(PictogramError):
    default_message = "Validation failed"


class InvalidOperationError(ValidationError):
    """An edit operation was rejected before it reached the operation log."""
    default_message = "Invalid edit operation"


class FileValidationError(ValidationError):
    """Source bytes were rejected before decoding (empty, too large, unknown extension)."""
    default_message = "File validation failed"


class ExportError(PictogramError):
    """The export sink could not persist the encoded image."""
    default_message = "Export failed"
