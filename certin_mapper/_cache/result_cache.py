"""Content-addressed result cache with a persisted snapshot.

The cache maps fingerprints (see ``certin_mapper.fingerprint``) to
previously computed enrichment results. One instance is meant to live
for the whole process: construct it, call ``init()`` once to load any
valid snapshot, and pass it to whoever needs it. ``clear()`` wipes both
memory and the persisted snapshot without a restart.

Every mutation writes the full snapshot through to the store. Store
failures are logged and otherwise ignored: the in-memory state stays
authoritative for the rest of the process.

Write-through keeps the snapshot current if the process dies mid-run, at
a price: each write serializes the whole cache synchronously, on the
event loop when called from async code. Enriching a document costs a
few writes per component, so total snapshot I/O grows quadratically
with the number of cached entries.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from certin_mapper.fingerprint import (
    COMPONENT_PREFIX,
    FILE_PREFIX,
    component_fingerprint,
    document_fingerprint,
)
from certin_mapper.logging_config import logger

from .snapshot import MemorySnapshotStore, Snapshot, SnapshotStore

DEFAULT_MAX_SNAPSHOT_AGE_MS = 24 * 60 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheEntry:
    """One cached value. ``ttl == 0`` means the entry never expires."""

    value: Any
    written_at: int
    ttl: int = 0

    def is_expired(self, now: int) -> bool:
        return self.ttl > 0 and (now - self.written_at) > self.ttl

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "writtenAt": self.written_at, "ttl": self.ttl}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CacheEntry":
        return cls(value=data["value"], written_at=int(data["writtenAt"]), ttl=int(data.get("ttl", 0)))


class ResultCache:
    """
    Fingerprint-keyed store for enrichment results.

    Example:
        cache = ResultCache(JsonFileSnapshotStore(path))
        cache.init()

        cache.set("npm:lodash", metadata)
        cache.get("npm:lodash")

        cache.set_with_expiry("session-token", token, ttl_ms=60_000)
    """

    def __init__(
        self,
        store: Optional[SnapshotStore] = None,
        max_snapshot_age_ms: int = DEFAULT_MAX_SNAPSHOT_AGE_MS,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        """
        Args:
            store: Snapshot persistence target (defaults to in-memory)
            max_snapshot_age_ms: Snapshots at least this old are discarded on load
            clock: Millisecond clock, injectable for tests
        """
        self._store: SnapshotStore = store if store is not None else MemorySnapshotStore()
        self._max_snapshot_age_ms = max_snapshot_age_ms
        self._clock = clock or _now_ms
        self._entries: Dict[str, CacheEntry] = {}
        self._session_start_time = self._clock()
        self._initialized = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def session_start_time(self) -> int:
        return self._session_start_time

    def init(self) -> "ResultCache":
        """
        Load the persisted snapshot, if a valid one exists.

        A snapshot at least ``max_snapshot_age_ms`` old is discarded as a
        whole. An unreadable or malformed snapshot is treated as absent
        and wiped from the store. Calling ``init`` again is a no-op.
        """
        if self._initialized:
            return self
        self._initialized = True

        try:
            snapshot = self._store.load()
        except Exception as e:
            logger.warning(f"Failed to load cache snapshot, discarding it: {e}")
            self._clear_store()
            return self

        if snapshot is None:
            logger.debug("No cache snapshot found, starting empty")
            return self

        try:
            entries, session_start = self._parse_snapshot(snapshot)
        except Exception as e:
            logger.warning(f"Corrupt cache snapshot, discarding it: {e}")
            self._clear_store()
            return self

        if entries is None:
            logger.info("Cache snapshot expired, discarding it")
            self._clear_store()
            return self

        self._entries = entries
        self._session_start_time = session_start
        logger.debug(f"Loaded {len(entries)} cached entries from snapshot")
        return self

    def _parse_snapshot(self, snapshot: Snapshot):
        """Return (entries, session_start), or (None, None) if the snapshot is too old."""
        if not isinstance(snapshot, Mapping):
            raise ValueError("snapshot is not an object")

        timestamp = snapshot.get("timestamp")
        if not isinstance(timestamp, (int, float)) or self._clock() - timestamp >= self._max_snapshot_age_ms:
            return None, None

        raw_entries = snapshot.get("cache") or []
        if not isinstance(raw_entries, list):
            raise ValueError("snapshot 'cache' is not a list")

        entries: Dict[str, CacheEntry] = {}
        for item in raw_entries:
            key, raw_entry = item
            if not isinstance(key, str):
                raise ValueError(f"cache key is not a string: {key!r}")
            entries[key] = CacheEntry.from_dict(raw_entry)

        session_start = snapshot.get("sessionStartTime")
        if not isinstance(session_start, (int, float)):
            session_start = self._clock()
        return entries, int(session_start)

    def clear(self) -> None:
        """Empty the cache and discard the persisted snapshot."""
        self._entries.clear()
        self._session_start_time = self._clock()
        self._clear_store()
        logger.info("Result cache cleared")

    # ------------------------------------------------------------------
    # Key/value operations
    # ------------------------------------------------------------------

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            logger.debug(f"Cache entry expired: {key}")
            self._persist()
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value for key, or default if absent or expired."""
        entry = self._live_entry(key)
        return default if entry is None else entry.value

    def has(self, key: str) -> bool:
        """Check whether key holds a live entry. A cached None counts as present."""
        return self._live_entry(key) is not None

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __len__(self) -> int:
        return len(self._entries)

    def set(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous entry. Never expires."""
        self.set_with_expiry(key, value, 0)

    def set_with_expiry(self, key: str, value: Any, ttl_ms: int) -> None:
        """
        Store value under key, expiring ``ttl_ms`` milliseconds from now.

        Args:
            key: Cache key
            value: JSON-serializable value
            ttl_ms: Lifetime in milliseconds, 0 for unbounded
        """
        if ttl_ms < 0:
            raise ValueError("ttl_ms must not be negative")
        self._entries[key] = CacheEntry(value=value, written_at=self._clock(), ttl=int(ttl_ms))
        self._persist()

    def get_with_expiry(self, key: str) -> Any:
        """Return the value for key, evicting it if it has expired."""
        return self.get(key)

    def delete(self, key: str) -> bool:
        """Remove key. Returns True if an entry was removed."""
        if key not in self._entries:
            return False
        del self._entries[key]
        self._persist()
        return True

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    # ------------------------------------------------------------------
    # Component / document convenience
    # ------------------------------------------------------------------

    def get_component_result(
        self, component: Mapping[str, Any], vulnerabilities: Optional[Iterable[Mapping[str, Any]]] = None
    ) -> Any:
        return self.get(component_fingerprint(component, vulnerabilities))

    def has_component_result(
        self, component: Mapping[str, Any], vulnerabilities: Optional[Iterable[Mapping[str, Any]]] = None
    ) -> bool:
        return self.has(component_fingerprint(component, vulnerabilities))

    def set_component_result(
        self,
        component: Mapping[str, Any],
        vulnerabilities: Optional[Iterable[Mapping[str, Any]]],
        result: Any,
    ) -> str:
        """Cache a component's result and return the fingerprint it was stored under."""
        fingerprint = component_fingerprint(component, vulnerabilities)
        self.set(fingerprint, result)
        return fingerprint

    def get_file_result(self, document: Mapping[str, Any]) -> Any:
        return self.get(document_fingerprint(document))

    def has_file_result(self, document: Mapping[str, Any]) -> bool:
        return self.has(document_fingerprint(document))

    def set_file_result(self, document: Mapping[str, Any], components: Any) -> str:
        """Cache a document's processed component list and return its fingerprint."""
        fingerprint = document_fingerprint(document)
        self.set(fingerprint, components)
        return fingerprint

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def stats(self) -> Dict[str, Any]:
        return {
            "entry_count": len(self._entries),
            "session_duration_ms": self._clock() - self._session_start_time,
            "keys": list(self._entries.keys()),
        }

    def cache_info(self) -> Dict[str, Any]:
        return {
            **self.stats(),
            "is_persistent": self._store.is_persistent,
            "max_age_ms": self._max_snapshot_age_ms,
            "storage_key": self._store.storage_key,
        }

    def checksum_stats(self) -> Dict[str, Any]:
        """Count whole-component and whole-document results held in the cache."""
        keys = list(self._entries.keys())
        component_keys = [k for k in keys if k.startswith(f"{COMPONENT_PREFIX}:")]
        file_keys = [k for k in keys if k.startswith(f"{FILE_PREFIX}:")]
        return {
            "total_component_results": len(component_keys),
            "total_file_results": len(file_keys),
            "component_keys": component_keys[:10],
            "total_cache_size": len(keys),
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> Snapshot:
        return {
            "cache": [[key, entry.to_dict()] for key, entry in self._entries.items()],
            "timestamp": self._clock(),
            "sessionStartTime": self._session_start_time,
        }

    def _persist(self) -> None:
        """Save the full snapshot. Blocking; runs once per mutation."""
        try:
            self._store.save(self.snapshot())
        except Exception as e:
            logger.warning(f"Failed to save cache snapshot: {e}")

    def _clear_store(self) -> None:
        try:
            self._store.clear()
        except Exception as e:
            logger.warning(f"Failed to clear cache snapshot: {e}")
