"""Manages reading and writing the pictogram.json sidecar file.

The sidecar remembers each image's operation log so edits survive a
restart without touching the image files themselves.
"""

import json
import logging
import time
from pathlib import Path
from typing import List

from pictogram.errors import InvalidOperationError
from pictogram.imaging.operations import EditOperation, OperationLog, operation_from_dict
from pictogram.models import Sidecar

log = logging.getLogger(__name__)

SIDECAR_NAME = "pictogram.json"
SIDECAR_VERSION = 1


class EditSidecar:
    def __init__(self, directory: Path, debug: bool = False):
        self.path = Path(directory) / SIDECAR_NAME
        self.debug = debug
        self.data = self.load()

    def load(self) -> Sidecar:
        """Loads sidecar data from disk if it exists, otherwise returns a new object."""
        if not self.path.exists():
            log.info(f"No sidecar file found at {self.path}. Creating new one.")
            return Sidecar()
        try:
            t_start = time.perf_counter()
            with self.path.open("r") as f:
                data = json.load(f)
            if self.debug:
                log.info(f"EditSidecar.load: loading sidecar took {time.perf_counter() - t_start:.3f}s")
            if not isinstance(data, dict) or data.get("version") != SIDECAR_VERSION:
                log.warning("Unknown sidecar format detected. Starting fresh.")
                return Sidecar()

            entries = {
                name: ops
                for name, ops in data.get("entries", {}).items()
                if isinstance(ops, list)
            }
            return Sidecar(version=SIDECAR_VERSION, entries=entries)
        except (json.JSONDecodeError, TypeError, AttributeError, OSError) as e:
            log.error(f"Failed to load or parse sidecar file {self.path}: {e}")
            return Sidecar()

    def save(self):
        """Saves the sidecar data to disk atomically."""
        temp_path = self.path.with_suffix(".tmp")
        try:
            with temp_path.open("w") as f:
                serializable_data = {
                    "version": self.data.version,
                    "entries": self.data.entries,
                }
                json.dump(serializable_data, f, indent=2)

            # Atomic rename
            temp_path.replace(self.path)
            log.debug(f"Saved sidecar file to {self.path}")
        except (OSError, TypeError) as e:
            log.error(f"Failed to save sidecar file {self.path}: {e}")

    def get_operations(self, filename: str) -> List[EditOperation]:
        """Returns the stored operations for ``filename``, skipping entries that no longer parse."""
        ops = []
        for raw in self.data.entries.get(filename, []):
            try:
                ops.append(operation_from_dict(raw))
            except InvalidOperationError as e:
                log.warning(f"Skipping stored operation for {filename}: {e}")
        return ops

    def restore_log(self, filename: str) -> OperationLog:
        return OperationLog(self.get_operations(filename))

    def set_operations(self, filename: str, operations: OperationLog):
        """Stores the active operations of ``operations``; an empty log removes the entry."""
        serialized = operations.to_list()
        if serialized:
            self.data.entries[filename] = serialized
        else:
            self.data.entries.pop(filename, None)

    def forget(self, filename: str):
        self.data.entries.pop(filename, None)
