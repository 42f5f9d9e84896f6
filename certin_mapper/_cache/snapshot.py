"""Persistence targets for the result cache snapshot.

A snapshot is a single JSON object stored under one fixed key::

    {"cache": [[key, entry], ...], "timestamp": <ms>, "sessionStartTime": <ms>}
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from certin_mapper.logging_config import logger

STORAGE_KEY = "cert-in-sbom-cache"

Snapshot = Dict[str, Any]


class SnapshotStore(Protocol):
    """
    Protocol for wherever the cache snapshot lives.

    ``load`` returns None when nothing is stored and raises when stored
    data cannot be read; ``save`` and ``clear`` may raise on I/O errors.
    The cache treats every raised error as non-fatal.
    """

    @property
    def storage_key(self) -> str: ...

    @property
    def is_persistent(self) -> bool: ...

    def load(self) -> Optional[Snapshot]: ...

    def save(self, snapshot: Snapshot) -> None: ...

    def clear(self) -> None: ...


class MemorySnapshotStore:
    """Keeps the snapshot in process memory (used when persistence is disabled)."""

    def __init__(self, storage_key: str = STORAGE_KEY) -> None:
        self._storage_key = storage_key
        self._data: Dict[str, str] = {}

    @property
    def storage_key(self) -> str:
        return self._storage_key

    @property
    def is_persistent(self) -> bool:
        return False

    def load(self) -> Optional[Snapshot]:
        raw = self._data.get(self._storage_key)
        if raw is None:
            return None
        return json.loads(raw)

    def save(self, snapshot: Snapshot) -> None:
        # Serialize eagerly so unserializable values fail the same way the file store does
        self._data[self._storage_key] = json.dumps(snapshot)

    def clear(self) -> None:
        self._data.pop(self._storage_key, None)


class JsonFileSnapshotStore:
    """
    Stores the snapshot in a JSON file on local disk.

    The file holds one object mapping the storage key to the snapshot.
    Writes go to a temporary file in the same directory which then
    replaces the target, so a crash never leaves a half-written file.
    """

    def __init__(self, path: Path, storage_key: str = STORAGE_KEY) -> None:
        self._path = Path(path)
        self._storage_key = storage_key

    @property
    def path(self) -> Path:
        return self._path

    @property
    def storage_key(self) -> str:
        return self._storage_key

    @property
    def is_persistent(self) -> bool:
        return True

    def load(self) -> Optional[Snapshot]:
        if not self._path.exists():
            return None
        with open(self._path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Cache file {self._path} does not contain a JSON object")
        return data.get(self._storage_key)

    def save(self, snapshot: Snapshot) -> None:
        payload = json.dumps({self._storage_key: snapshot})
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".cache-", suffix=".json", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        if self._path.exists():
            self._path.unlink()
            logger.debug(f"Removed cache file: {self._path}")
