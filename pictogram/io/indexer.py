"""Scans directories for images the codec can open."""

import logging
import os
import time
from pathlib import Path
from typing import List, Tuple

from pictogram.formats import is_extension_supported
from pictogram.models import ImageFile

log = logging.getLogger(__name__)

def find_images(directory: Path) -> List[ImageFile]:
    """Finds all supported images in a directory, oldest first."""
    t_start = time.perf_counter()
    log.info("Scanning directory for images: %s", directory)
    found: List[Tuple[Path, os.stat_result]] = []

    try:
        for entry in os.scandir(directory):
            if entry.is_file() and is_extension_supported(Path(entry.name).suffix or "."):
                found.append((Path(entry.path), entry.stat()))
    except OSError:
        log.exception("Error scanning directory %s", directory)
        return []

    # Sort by modification time (oldest first), then filename
    found.sort(key=lambda x: (x[1].st_mtime_ns, x[0].name))

    image_files = [
        ImageFile(path=path, size=st.st_size, mtime_ns=st.st_mtime_ns)
        for path, st in found
    ]

    elapsed = time.perf_counter() - t_start
    if log.isEnabledFor(logging.DEBUG):
        log.info("Found %d images in %.3fs", len(image_files), elapsed)
    else:
        log.info("Found %d images.", len(image_files))
    return image_files
