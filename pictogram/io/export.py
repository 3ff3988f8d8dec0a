"""Export sinks: where finished images go once the pipeline has encoded them."""

import logging
import os
import re
from pathlib import Path
from typing import Protocol, Union

from pictogram.errors import ExportError
from pictogram.models import ExportArtifact, PipelineResult

log = logging.getLogger(__name__)

DEFAULT_BASE_NAME = "edited_image"

_INVALID_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_base_name(name: str) -> str:
    """Replaces characters that are not allowed in file names; falls back to a default."""
    cleaned = _INVALID_CHARS.sub("_", name).strip().strip(".")
    return cleaned or DEFAULT_BASE_NAME


def build_artifact(result: PipelineResult, base_name: str) -> ExportArtifact:
    """Names the result after the format that was actually written, not the one requested."""
    return ExportArtifact(
        data=result.data,
        filename=result.format.filename(sanitize_base_name(base_name)),
        mime_type=result.format.mime_type,
        width=result.width,
        height=result.height,
        format=result.format,
    )


class ExportSink(Protocol):
    def save(self, artifact: ExportArtifact) -> str:
        """Persists ``artifact`` and returns a description of where it went."""
        ...


class FileExportSink:
    """Writes artifacts into a directory, atomically."""

    def __init__(self, directory: Union[Path, str], overwrite: bool = False):
        self.directory = Path(directory)
        self.overwrite = overwrite

    def _target_path(self, filename: str) -> Path:
        """Picks the destination for ``filename``.

        Without ``overwrite`` the name is claimed with an exclusive create, so
        concurrent saves of the same name each get their own ``name-N`` file.
        """
        target = self.directory / filename
        if self.overwrite:
            return target
        # photo.png exists: try photo-2.png, photo-3.png, ...
        stem, suffix = target.stem, target.suffix
        i = 2
        while True:
            try:
                with target.open("xb"):
                    return target
            except FileExistsError:
                target = self.directory / f"{stem}-{i}{suffix}"
                i += 1

    def save(self, artifact: ExportArtifact) -> str:
        """Writes the artifact and returns the path written.

        Raises:
            ExportError: if the directory or the file cannot be written.
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            target = self._target_path(artifact.filename)
            temp_path = target.with_name(target.name + ".tmp")
            try:
                with temp_path.open("wb") as f:
                    f.write(artifact.data)
                    f.flush()
                    os.fsync(f.fileno())
                # Atomic rename
                temp_path.replace(target)
            except OSError:
                temp_path.unlink(missing_ok=True)
                if not self.overwrite:
                    # Release the reserved name
                    target.unlink(missing_ok=True)
                raise
        except OSError as e:
            raise ExportError(f"Failed to write {artifact.filename} to {self.directory}: {e}") from e
        log.info(f"Exported {artifact.width}x{artifact.height} {artifact.mime_type} to {target}")
        return str(target)


class MemoryExportSink:
    """Keeps artifacts in a list, for embedding callers that handle persistence themselves."""

    def __init__(self):
        self.artifacts = []

    def save(self, artifact: ExportArtifact) -> str:
        self.artifacts.append(artifact)
        return artifact.filename
