"""Content-addressed result cache."""

from .result_cache import CacheEntry, ResultCache
from .snapshot import STORAGE_KEY, JsonFileSnapshotStore, MemorySnapshotStore, SnapshotStore

__all__ = [
    "CacheEntry",
    "ResultCache",
    "STORAGE_KEY",
    "JsonFileSnapshotStore",
    "MemorySnapshotStore",
    "SnapshotStore",
]
