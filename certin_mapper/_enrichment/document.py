"""Whole-document resolution on top of the per-component orchestrator."""

import asyncio
import copy
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from certin_mapper.config import DEFAULT_MAX_CONCURRENCY
from certin_mapper.error_reporting import log_error
from certin_mapper.fingerprint import document_fingerprint
from certin_mapper.logging_config import logger

from .models import CERT_IN_PROPERTIES, NA, Component, PropertySet
from .orchestrator import FAILED_SOURCE_RETRY_MS, FetchOrchestrator, Resolution


@dataclass
class DocumentResolution:
    """Enriched components of one document and how they were obtained."""

    components: List[Component]
    fingerprint: str
    from_cache: bool
    path_counts: Dict[str, int] = field(default_factory=dict)
    errors: Dict[int, Dict[str, str]] = field(default_factory=dict)


def seed_properties(component: Mapping[str, Any]) -> Component:
    """Return a copy of the component with every CERT-In property present (``NA`` if missing)."""
    properties = [dict(p) for p in component.get("properties") or []]
    existing = {p.get("name") for p in properties}
    for name in CERT_IN_PROPERTIES:
        if name not in existing:
            properties.append({"name": name, "value": NA})
    return {**component, "properties": properties}


def merge_properties(component: Mapping[str, Any], derived: Optional[PropertySet]) -> Component:
    """
    Merge a derived property set into a component's properties.

    A property is overwritten (or appended) only when the derived value
    is present and not ``NA``; everything else is left untouched.
    """
    properties = [dict(p) for p in component.get("properties") or []]
    for name in CERT_IN_PROPERTIES:
        value = (derived or {}).get(name)
        if not value or value == NA:
            continue
        for prop in properties:
            if prop.get("name") == name:
                prop["value"] = str(value)
                break
        else:
            properties.append({"name": name, "value": str(value)})
    return {**component, "properties": properties}


class DocumentResolver:
    """
    Resolves every component of an SBOM document.

    A cached result for the whole document short-circuits all
    per-component work. Otherwise components are resolved concurrently,
    at most ``max_concurrency`` at a time, and the merged component list
    is cached under the document fingerprint. When any component hit a
    failing source the cached list expires like its component results.
    """

    def __init__(self, orchestrator: FetchOrchestrator, max_concurrency: int = DEFAULT_MAX_CONCURRENCY) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._orchestrator = orchestrator
        self._cache = orchestrator.cache
        self._max_concurrency = max_concurrency

    async def resolve_document(self, document: Mapping[str, Any]) -> List[Component]:
        """Return the document's components with CERT-In properties merged in."""
        resolution = await self.resolve(document)
        return resolution.components

    async def resolve(self, document: Mapping[str, Any]) -> DocumentResolution:
        fingerprint = document_fingerprint(document)

        if self._cache.has(fingerprint):
            logger.info("Cache hit (document): reusing enriched components")
            return DocumentResolution(
                components=copy.deepcopy(self._cache.get(fingerprint)),
                fingerprint=fingerprint,
                from_cache=True,
            )

        components = [seed_properties(c) for c in document.get("components") or []]
        sbom_vulnerabilities = list(document.get("vulnerabilities") or [])
        logger.info(f"Cache miss (document): resolving {len(components)} components")

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def resolve_with_limit(component: Component) -> Optional[Resolution]:
            async with semaphore:
                try:
                    return await self._orchestrator.resolve(component, sbom_vulnerabilities)
                except Exception as e:
                    log_error(e, "resolve_document", {"component_name": component.get("name")})
                    return None

        # gather keeps input order regardless of completion order
        resolutions = await asyncio.gather(*(resolve_with_limit(c) for c in components))

        merged: List[Component] = []
        path_counts: Counter = Counter()
        errors: Dict[int, Dict[str, str]] = {}
        for index, (component, resolution) in enumerate(zip(components, resolutions)):
            if resolution is None:
                merged.append(component)
                path_counts["failed"] += 1
                continue
            merged.append(merge_properties(component, resolution.properties))
            path_counts[resolution.path.value] += 1
            if resolution.errors:
                errors[index] = dict(resolution.errors)

        if errors or path_counts["failed"]:
            self._cache.set_with_expiry(fingerprint, merged, FAILED_SOURCE_RETRY_MS)
        else:
            self._cache.set(fingerprint, merged)
        return DocumentResolution(
            components=copy.deepcopy(merged),
            fingerprint=fingerprint,
            from_cache=False,
            path_counts=dict(path_counts),
            errors=errors,
        )
