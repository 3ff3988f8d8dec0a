"""Byte-aware LRU container for encoded thumbnails."""

import logging
from typing import Any, Callable, Optional

from cachetools import LRUCache

log = logging.getLogger(__name__)


class ByteLRUCache(LRUCache):
    """An LRU Cache that respects the size of its items in bytes."""

    def __init__(
        self,
        max_bytes: int,
        size_of: Callable[[Any], int] = len,
        on_evict: Optional[Callable[[Any, Any], None]] = None,
    ):
        super().__init__(maxsize=max_bytes, getsizeof=size_of)
        self.on_evict = on_evict
        self.evictions = 0
        log.info(
            f"Initialized byte-aware LRU cache with {max_bytes / 1024**2:.2f} MB capacity."
        )

    def __setitem__(self, key, value):
        # Eviction of older entries, if needed, happens in the parent via popitem
        super().__setitem__(key, value)
        log.debug(
            f"Cached item '{key}'. Cache size: {self.currsize / 1024**2:.2f} MB"
        )

    def popitem(self):
        """Extend popitem to log eviction."""
        key, value = super().popitem()
        self.evictions += 1
        log.debug(
            f"Evicted item '{key}' to free up space. Cache size: {self.currsize / 1024**2:.2f} MB"
        )

        if self.on_evict:
            self.on_evict(key, value)

        return key, value


def encoded_size(item) -> int:
    """Size in bytes of an item carrying encoded ``data`` (thumbnails, results)."""
    data = getattr(item, "data", None)
    if isinstance(data, (bytes, bytearray, memoryview)):
        return len(data) or 1
    return 1  # Should not happen
