"""Tests for the byte-aware LRU cache."""

from pictogram.formats import OutputFormat
from pictogram.imaging.cache import ByteLRUCache, encoded_size
from pictogram.models import ThumbnailEntry


def entry(size: int) -> ThumbnailEntry:
    return ThumbnailEntry(key="k", filename="f.png", data=b"x" * size, width=1, height=1)


def test_cache_init():
    """Tests cache initialization."""
    cache = ByteLRUCache(max_bytes=1000, size_of=encoded_size)
    assert cache.maxsize == 1000
    assert cache.currsize == 0


def test_cache_add_items():
    """Tests adding items and tracking size."""
    cache = ByteLRUCache(max_bytes=100, size_of=encoded_size)
    cache["a"] = entry(20)
    assert cache.currsize == 20
    cache["b"] = entry(30)
    assert cache.currsize == 50
    assert "a" in cache
    assert "b" in cache


def test_cache_eviction():
    """Tests that the least recently used item is evicted when full."""
    evicted = []
    cache = ByteLRUCache(max_bytes=100, size_of=encoded_size, on_evict=lambda k, v: evicted.append(k))
    cache["a"] = entry(50)  # a is oldest
    cache["b"] = entry(40)
    cache["c"] = entry(30)  # This should evict 'a'

    assert "a" not in cache
    assert cache.currsize == 70
    assert evicted == ["a"]

    cache["b"]  # touch b so c becomes the oldest
    cache["d"] = entry(50)
    assert "c" not in cache
    assert "b" in cache
    assert cache.currsize == 90
    assert cache.evictions == 2


def test_cache_update_item():
    """Tests that updating an item adjusts the cache size."""
    cache = ByteLRUCache(max_bytes=100, size_of=encoded_size)
    cache["a"] = entry(20)
    cache["a"] = entry(50)
    assert cache.currsize == 50
    cache["a"] = entry(10)
    assert cache.currsize == 10


def test_encoded_size():
    assert encoded_size(entry(7)) == 7
    assert encoded_size(entry(0)) == 1
    assert encoded_size(object()) == 1
    assert entry(12).format is OutputFormat.PNG
