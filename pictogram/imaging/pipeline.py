"""Pipeline engine: decode the pristine source once, replay the log, encode once."""

import logging
import time
from typing import Callable, Optional, Sequence

from pictogram.config import config
from pictogram.errors import ImageProcessingError, PictogramError
from pictogram.formats import OutputFormat
from pictogram.imaging import codec, transforms
from pictogram.imaging.operations import (
    ConvertFormat,
    EditOperation,
    FlipHorizontal,
    FlipVertical,
    Resize,
    RotateLeft,
    RotateRight,
    max_output_pixels,
)
from pictogram.imaging.transforms import Interpolation
from pictogram.models import PipelineOutcome, PipelineResult, PixelBuffer

log = logging.getLogger(__name__)

Decoder = Callable[[bytes], PixelBuffer]


def default_interpolation() -> Interpolation:
    name = config.get("core", "interpolation", fallback="bilinear")
    try:
        return Interpolation.parse(name)
    except ValueError:
        log.warning(f"Unknown interpolation {name!r} in config; using bilinear")
        return Interpolation.BILINEAR


def apply_operation(
    buffer: PixelBuffer,
    op: EditOperation,
    interpolation: Interpolation = Interpolation.BILINEAR,
    max_pixels: Optional[int] = None,
) -> PixelBuffer:
    """Applies a single logged operation to ``buffer`` and returns the new buffer.

    Tolerates operations a validating log would have refused: a resize
    with no usable dimension and unknown operation objects are no-ops.
    """
    if isinstance(op, RotateRight):
        return transforms.rotate(buffer, 90)
    if isinstance(op, RotateLeft):
        return transforms.rotate(buffer, -90)
    if isinstance(op, FlipHorizontal):
        return transforms.flip_horizontal(buffer)
    if isinstance(op, FlipVertical):
        return transforms.flip_vertical(buffer)
    if isinstance(op, Resize):
        return transforms.resize(buffer, op.width, op.height, interpolation, max_pixels)
    if isinstance(op, ConvertFormat):
        # Only the final encode cares about the format
        return buffer
    log.warning(f"Skipping unknown operation {op!r}")
    return buffer


def apply_operations(
    buffer: PixelBuffer,
    operations: Sequence[EditOperation],
    interpolation: Interpolation = Interpolation.BILINEAR,
    max_pixels: Optional[int] = None,
) -> PixelBuffer:
    """Replays ``operations`` in log order."""
    for i, op in enumerate(operations):
        before = buffer.size
        buffer = apply_operation(buffer, op, interpolation, max_pixels)
        label = op.describe() if isinstance(op, EditOperation) else repr(op)
        log.debug(f"[{i + 1}/{len(operations)}] {label}: {before[0]}x{before[1]} -> {buffer.width}x{buffer.height}")
    return buffer


def render_buffer(
    original_bytes: bytes,
    operations: Sequence[EditOperation],
    *,
    interpolation: Optional[Interpolation] = None,
    decoder: Optional[Decoder] = None,
) -> PixelBuffer:
    """Decodes ``original_bytes`` and replays ``operations`` without encoding."""
    decoder = decoder or codec.decode
    interpolation = interpolation or default_interpolation()
    buffer = decoder(original_bytes)
    return apply_operations(buffer, list(operations), interpolation, max_output_pixels())


def apply_pipeline(
    original_bytes: bytes,
    operations: Sequence[EditOperation],
    target_format: OutputFormat,
    quality: Optional[int] = None,
    *,
    interpolation: Optional[Interpolation] = None,
    decoder: Optional[Decoder] = None,
) -> PipelineResult:
    """
    Produces the encoded result of replaying ``operations`` on ``original_bytes``.

    The source is decoded fresh on every call and nothing is kept between
    calls, so the same arguments always give the same bytes. Undo is a
    matter of passing a shorter ``operations`` slice.

    Args:
        original_bytes: the untouched source image.
        operations: the log to replay, in order.
        target_format: the requested output format.
        quality: JPEG quality, clamped to [1, 100]; default 90.

    Returns:
        PipelineResult whose ``format`` is the format actually written
        (PNG when WEBP was requested but cannot be encoded here).

    Raises:
        DecodeError, EncodeError: the whole run is abandoned.
    """
    t_start = time.perf_counter()
    ops = list(operations)
    buffer = render_buffer(original_bytes, ops, interpolation=interpolation, decoder=decoder)
    encoded = codec.encode(buffer, target_format, quality)
    log.debug(
        f"Pipeline: {len(ops)} operation(s) -> {encoded.width}x{encoded.height} "
        f"{encoded.format.display_name}, {len(encoded.data)} bytes in {time.perf_counter() - t_start:.3f}s"
    )
    return PipelineResult(
        data=encoded.data,
        width=encoded.width,
        height=encoded.height,
        format=encoded.format,
        requested_format=target_format,
        operation_count=len(ops),
    )


def try_apply_pipeline(
    original_bytes: bytes,
    operations: Sequence[EditOperation],
    target_format: OutputFormat,
    quality: Optional[int] = None,
    **kwargs,
) -> PipelineOutcome:
    """Like ``apply_pipeline`` but reports failures as a value instead of raising."""
    try:
        result = apply_pipeline(original_bytes, operations, target_format, quality, **kwargs)
    except PictogramError as e:
        log.error(f"Pipeline failed: {e}")
        return PipelineOutcome(error=e)
    except MemoryError:
        log.exception("Pipeline ran out of memory")
        return PipelineOutcome(error=ImageProcessingError("Not enough memory to render the image"))
    return PipelineOutcome(result=result)
