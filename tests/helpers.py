"""Test doubles shared across test modules."""

from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, Mock

from certin_mapper._cache import ResultCache
from certin_mapper._enrichment import FetchOrchestrator


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def make_sources(
    package: Optional[Dict[str, Any]] = None,
    vulnerabilities: Optional[Dict[str, Any]] = None,
    repository: Optional[Dict[str, Any]] = None,
    eol: Optional[str] = None,
) -> Dict[str, Mock]:
    """Source doubles returning fixed records."""
    registry = Mock()
    registry.name = "registry"
    registry.fetch = AsyncMock(return_value=package)

    osv = Mock()
    osv.name = "osv"
    osv.fetch = AsyncMock(return_value=vulnerabilities)

    github = Mock()
    github.name = "github"
    github.fetch = AsyncMock(return_value=repository)

    lifecycle = Mock()
    lifecycle.name = "lifecycle"
    lifecycle.fetch = Mock(return_value=eol)

    return {"registry": registry, "vulnerabilities": osv, "repositories": github, "lifecycle": lifecycle}


def make_orchestrator(cache: ResultCache, sources: Dict[str, Mock]) -> FetchOrchestrator:
    return FetchOrchestrator(cache=cache, **sources)


def total_source_calls(sources: Dict[str, Mock]) -> int:
    return sum(sources[name].fetch.await_count for name in ("registry", "vulnerabilities", "repositories"))


def property_value(component: Dict[str, Any], name: str) -> Optional[str]:
    for prop in component.get("properties") or []:
        if prop.get("name") == name:
            return prop.get("value")
    return None


def property_names(component: Dict[str, Any]) -> List[str]:
    return [p.get("name") for p in component.get("properties") or []]
