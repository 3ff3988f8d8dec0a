"""Editing session: one pristine source image plus the log of edits made to it."""

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from pictogram.config import config
from pictogram.errors import ExportError, FileValidationError
from pictogram.formats import OutputFormat, get_file_extension, is_extension_supported
from pictogram.imaging import codec
from pictogram.imaging.operations import (
    ConvertFormat,
    EditOperation,
    FlipHorizontal,
    FlipVertical,
    OperationLog,
    Resize,
    RotateLeft,
    RotateRight,
)
from pictogram.imaging.pipeline import default_interpolation, try_apply_pipeline
from pictogram.imaging.transforms import Interpolation
from pictogram.io.export import DEFAULT_BASE_NAME, ExportSink, build_artifact, sanitize_base_name
from pictogram.models import ExportOutcome, PipelineOutcome, PixelBuffer

log = logging.getLogger(__name__)


class EditSession:
    """
    Holds the source bytes for the session and the operation log.

    The source is never replaced by a render: every ``render``/``export``
    replays the active log against the bytes given to ``load``.
    """

    def __init__(
        self,
        default_format: Optional[OutputFormat] = None,
        quality: Optional[int] = None,
        interpolation: Optional[Interpolation] = None,
        max_file_size: Optional[int] = None,
        decoder: Optional[Callable[[bytes], PixelBuffer]] = None,
    ):
        if default_format is None:
            default_format = OutputFormat.parse(config.get("core", "default_format", fallback="png"))
        if max_file_size is None:
            max_file_size = int(config.getfloat("core", "max_file_size_mb", fallback=50) * 1024 * 1024)
        self.default_format = default_format
        self.quality = quality
        self.interpolation = interpolation or default_interpolation()
        self.max_file_size = max_file_size
        self._decoder = decoder or codec.decode

        self._lock = threading.RLock()
        self._original: Optional[bytes] = None
        self._filename: Optional[str] = None
        self._source_format: Optional[OutputFormat] = None
        self.base_name = DEFAULT_BASE_NAME
        self.operations = OperationLog()

        # Last successful render, keyed by (log revision, format, quality)
        self._cached_key = None
        self._cached_outcome: Optional[PipelineOutcome] = None

    # ------------------------------------------------------------------
    # Source
    # ------------------------------------------------------------------

    def load(self, data: bytes, filename: str = DEFAULT_BASE_NAME) -> None:
        """Starts a new session on ``data``. Clears the operation log.

        Raises:
            FileValidationError: if ``data`` is empty, larger than the
                configured limit, or ``filename`` has an unsupported extension.
        """
        if not data:
            raise FileValidationError(f"{filename} is empty")
        if self.max_file_size and len(data) > self.max_file_size:
            raise FileValidationError(
                f"{filename} is {len(data) / 1024**2:.1f} MB; the limit is {self.max_file_size / 1024**2:.0f} MB"
            )
        extension = get_file_extension(filename)
        if extension is not None and not is_extension_supported(extension):
            raise FileValidationError(f"Unsupported file type: {extension}")

        with self._lock:
            self._original = bytes(data)
            self._filename = filename
            self._source_format = codec.identify(self._original)
            self.base_name = sanitize_base_name(Path(filename).stem or DEFAULT_BASE_NAME)
            self.operations.clear()
            self._invalidate()
        log.info(f"Loaded {filename} ({len(data)} bytes, {self._source_format.display_name if self._source_format else 'unknown format'})")

    def load_file(self, path: Path) -> None:
        path = Path(path)
        self.load(path.read_bytes(), path.name)

    def close(self) -> None:
        """Drops the source and the log."""
        with self._lock:
            self._original = None
            self._filename = None
            self._source_format = None
            self.base_name = DEFAULT_BASE_NAME
            self.operations.clear()
            self._invalidate()

    @property
    def is_loaded(self) -> bool:
        return self._original is not None

    @property
    def original_bytes(self) -> Optional[bytes]:
        return self._original

    @property
    def filename(self) -> Optional[str]:
        return self._filename

    @property
    def source_format(self) -> Optional[OutputFormat]:
        return self._source_format

    @property
    def target_format(self) -> OutputFormat:
        """The most recent active format conversion, or the session default."""
        return self.operations.last_format() or self.default_format

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def apply(self, op: EditOperation) -> EditOperation:
        """Validates and appends ``op``.

        Raises:
            FileValidationError: if no image is loaded.
            InvalidOperationError: if ``op`` is malformed.
        """
        if not self.is_loaded:
            raise FileValidationError("No image loaded")
        return self.operations.append(op)

    def rotate_right(self) -> EditOperation:
        return self.apply(RotateRight())

    def rotate_left(self) -> EditOperation:
        return self.apply(RotateLeft())

    def flip_horizontal(self) -> EditOperation:
        return self.apply(FlipHorizontal())

    def flip_vertical(self) -> EditOperation:
        return self.apply(FlipVertical())

    def resize(self, width: Optional[int] = None, height: Optional[int] = None) -> EditOperation:
        """Pass one side to keep the aspect ratio, both for an exact size."""
        return self.apply(Resize(width=width, height=height))

    def convert_format(self, fmt: OutputFormat) -> EditOperation:
        return self.apply(ConvertFormat(to=fmt))

    def undo(self) -> Optional[EditOperation]:
        return self.operations.undo()

    def redo(self) -> Optional[EditOperation]:
        return self.operations.redo()

    def reset(self) -> None:
        """Discards every edit but keeps the source."""
        self.operations.clear()

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _invalidate(self) -> None:
        self._cached_key = None
        self._cached_outcome = None

    def render(self, fmt: Optional[OutputFormat] = None, quality: Optional[int] = None) -> PipelineOutcome:
        """Replays the active log on the source. Never raises for codec failures."""
        with self._lock:
            if self._original is None:
                return PipelineOutcome(error=FileValidationError("No image loaded"))
            original = self._original
            # Revision first: a concurrent append then only makes the key stale, never the ops
            rev = self.operations.revision
            ops = self.operations.active
            fmt = fmt or self.target_format
            quality = quality if quality is not None else self.quality
            key = (rev, fmt, quality)
            if self._cached_outcome is not None and self._cached_key == key:
                return self._cached_outcome

        outcome = try_apply_pipeline(
            original,
            ops,
            fmt,
            quality,
            interpolation=self.interpolation,
            decoder=self._decoder,
        )

        with self._lock:
            # Only cache if nothing changed during computation
            if outcome.ok and self._original is original and self.operations.revision == key[0]:
                self._cached_key = key
                self._cached_outcome = outcome
        return outcome

    def export(
        self,
        sink: Optional[ExportSink] = None,
        fmt: Optional[OutputFormat] = None,
        quality: Optional[int] = None,
    ) -> ExportOutcome:
        """Renders the final image and hands it to ``sink``.

        The file name and MIME type follow the format actually written.
        Without a sink, the artifact is just returned.
        """
        outcome = self.render(fmt, quality)
        if not outcome.ok:
            return ExportOutcome(error=outcome.error)

        artifact = build_artifact(outcome.result, self.base_name)
        if sink is None:
            return ExportOutcome(artifact=artifact)
        try:
            destination = sink.save(artifact)
        except ExportError as e:
            log.error(f"Export of {artifact.filename} failed: {e}")
            return ExportOutcome(artifact=artifact, error=e)
        except OSError as e:
            log.exception(f"Export of {artifact.filename} failed")
            return ExportOutcome(artifact=artifact, error=ExportError(str(e)))
        return ExportOutcome(artifact=artifact, destination=destination)

    def __repr__(self) -> str:
        return f"EditSession(file={self._filename!r}, {self.operations!r})"
