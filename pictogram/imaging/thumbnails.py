"""Memoized gallery thumbnails: center-crop, resize to the exact size, encode as PNG."""

import concurrent.futures
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, MutableMapping, Optional, Tuple, Union

from pictogram.config import config
from pictogram.errors import PictogramError
from pictogram.formats import OutputFormat
from pictogram.imaging import codec
from pictogram.imaging.cache import ByteLRUCache, encoded_size
from pictogram.imaging.transforms import Interpolation, crop_center, resize
from pictogram.models import PixelBuffer, ThumbnailEntry

log = logging.getLogger(__name__)

THUMBNAIL_WIDTH = 140
THUMBNAIL_HEIGHT = 120

ThumbnailRequest = Tuple[str, str, bytes]  # (key, filename, original bytes)


def build_thumbnail_key(image_path: Union[Path, str], mtime_ns: int = 0) -> str:
    """Builds a stable cache key that changes when the file is rewritten."""
    if isinstance(image_path, Path):
        path_str = image_path.as_posix()
    else:
        path_str = str(image_path)
    return f"{path_str}::{mtime_ns}"


def make_thumbnail(
    buffer: PixelBuffer,
    width: int = THUMBNAIL_WIDTH,
    height: int = THUMBNAIL_HEIGHT,
) -> PixelBuffer:
    """Center-crops to ``width`` x ``height`` and resizes so the result is exactly that size.

    The resize only changes anything when the source was smaller than the
    crop window on some axis.
    """
    cropped = crop_center(buffer, width, height)
    return resize(cropped, width, height, Interpolation.BILINEAR)


class ThumbnailCache:
    """
    One PNG thumbnail per key, created on first request and returned from
    memory afterwards without decoding again.

    Unbounded by default; entries live until ``clear_cache``. Passing
    ``max_bytes`` switches storage to a byte-aware LRU. Safe to share
    between threads: concurrent requests for the same key decode once.
    """

    def __init__(
        self,
        width: Optional[int] = None,
        height: Optional[int] = None,
        decoder: Optional[Callable[[bytes], PixelBuffer]] = None,
        max_bytes: Optional[int] = None,
    ):
        self.width = width or config.getint("thumbnails", "width", fallback=THUMBNAIL_WIDTH)
        self.height = height or config.getint("thumbnails", "height", fallback=THUMBNAIL_HEIGHT)
        self._decode = decoder or codec.decode
        self._lock = threading.Lock()
        self._key_locks: Dict[str, threading.Lock] = {}
        self._entries: MutableMapping[str, ThumbnailEntry]
        if max_bytes:
            self._entries = ByteLRUCache(max_bytes, size_of=encoded_size)
        else:
            self._entries = {}
        self.hits = 0
        self.misses = 0

    @classmethod
    def from_config(cls, decoder=None) -> "ThumbnailCache":
        max_mb = config.getfloat("thumbnails", "max_cache_mb", fallback=0.0)
        max_bytes = int(max_mb * 1024**2) if max_mb > 0 else None
        return cls(decoder=decoder, max_bytes=max_bytes)

    def get(self, key: str) -> Optional[ThumbnailEntry]:
        with self._lock:
            return self._entries.get(key)

    def get_or_create(self, key: str, filename: str, original_bytes: bytes) -> ThumbnailEntry:
        """Returns the cached thumbnail for ``key``, generating it on first use.

        Raises:
            DecodeError, EncodeError: if the thumbnail cannot be produced.
                Nothing is cached in that case.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self.hits += 1
                return entry
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        with key_lock:
            with self._lock:
                # Another thread may have finished it while we waited
                entry = self._entries.get(key)
                if entry is not None:
                    self.hits += 1
                    return entry
                self.misses += 1
            try:
                entry = self._create(key, filename, original_bytes)
                with self._lock:
                    self._store(key, entry)
            finally:
                with self._lock:
                    if self._key_locks.get(key) is key_lock:
                        del self._key_locks[key]
        return entry

    def get_or_create_many(
        self,
        requests: Iterable[ThumbnailRequest],
        max_workers: Optional[int] = None,
    ) -> Dict[str, ThumbnailEntry]:
        """Generates a batch on a thread pool. Failed items are logged and left out."""
        requests = list(requests)
        if not requests:
            return {}
        max_workers = max_workers or config.getint("thumbnails", "workers", fallback=4)
        results: Dict[str, ThumbnailEntry] = {}
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="Thumbnail"
        ) as executor:
            futures = {
                executor.submit(self.get_or_create, key, filename, data): (key, filename)
                for key, filename, data in requests
            }
            for future in concurrent.futures.as_completed(futures):
                key, filename = futures[future]
                try:
                    results[key] = future.result()
                except PictogramError as e:
                    log.warning(f"Could not create thumbnail for {filename}: {e}")
        return results

    def _create(self, key: str, filename: str, original_bytes: bytes) -> ThumbnailEntry:
        buffer = self._decode(original_bytes)
        thumb = make_thumbnail(buffer, self.width, self.height)
        encoded = codec.encode(thumb, OutputFormat.PNG)
        log.debug(f"Created thumbnail for {filename} ({buffer.width}x{buffer.height} source, {len(encoded.data)} bytes)")
        return ThumbnailEntry(
            key=key,
            filename=filename,
            data=encoded.data,
            width=encoded.width,
            height=encoded.height,
        )

    def _store(self, key: str, entry: ThumbnailEntry) -> None:
        try:
            self._entries[key] = entry
        except ValueError:
            # cachetools refuses items bigger than the whole cache
            log.warning(f"Thumbnail '{key}' ({len(entry.data)} bytes) exceeds the cache capacity; not cached")

    def clear_cache(self) -> None:
        with self._lock:
            self._entries.clear()
        log.debug("Thumbnail cache cleared")

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._entries)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries.keys())

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        return self.count
