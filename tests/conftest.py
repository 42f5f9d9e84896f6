"""Pytest configuration and shared fixtures for all tests."""

from typing import Any, Dict

import pytest
from helpers import FakeClock

from certin_mapper._cache import MemorySnapshotStore, ResultCache


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemorySnapshotStore:
    return MemorySnapshotStore()


@pytest.fixture
def cache(store, clock) -> ResultCache:
    """In-memory result cache driven by a fake clock."""
    return ResultCache(store, clock=clock).init()


@pytest.fixture
def lodash() -> Dict[str, Any]:
    return {
        "bom-ref": "pkg:npm/lodash@4.17.20",
        "type": "library",
        "name": "lodash",
        "version": "4.17.20",
        "purl": "pkg:npm/lodash@4.17.20",
        "externalReferences": [{"type": "vcs", "url": "https://github.com/lodash/lodash.git"}],
    }


@pytest.fixture
def requests_component() -> Dict[str, Any]:
    return {
        "bom-ref": "pkg:pypi/requests@2.31.0",
        "type": "library",
        "name": "requests",
        "version": "2.31.0",
        "purl": "pkg:pypi/requests@2.31.0",
    }


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep the developer's environment out of configuration under test."""
    for name in (
        "GITHUB_TOKEN",
        "CERTIN_CACHE_FILE",
        "CERTIN_CACHE_ENABLED",
        "CERTIN_MAX_CONCURRENCY",
        "CERTIN_MAX_SNAPSHOT_AGE_HOURS",
        "CERTIN_HTTP_TIMEOUT",
        "CERTIN_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
