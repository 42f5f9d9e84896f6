"""Per-component fetch orchestration.

For each component the orchestrator walks these steps, stopping at the
first that yields a property set:

1. Whole-result cache: the component fingerprint is already cached.
2. Dependency cache: every applicable source record (package, vulnerability,
   repository) is cached, so the properties are rebuilt synchronously.
3. Full fetch: the missing sources are queried concurrently. Each source
   runs in its own slot; a failing slot contributes None and never
   cancels its siblings. Source records and the merged property set are
   written back to the cache. A property set built while a source was
   failing expires after ``FAILED_SOURCE_RETRY_MS``.
4. Degraded: building the property set raised. A placeholder property
   set is cached so the same component is not re-fetched every run.

Concurrent resolutions of the same component fingerprint, or of the same
source record, share one in-flight task.
"""

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional

from certin_mapper._cache import ResultCache
from certin_mapper.error_reporting import categorize_error, log_error
from certin_mapper.fingerprint import component_fingerprint, generate_key
from certin_mapper.logging_config import logger

from .derivation import build_property_set, degraded_property_set
from .models import MAVEN, NPM, PYPI, PackageInfo, PropertySet
from .package_info import extract_package_info, find_repository_url, repository_id
from .protocol import LifecycleLookup, PackageRegistrySource, RepositorySource, VulnerabilitySource

PACKAGE_SLOT = "package"
VULNERABILITY_SLOT = "vulnerability"
REPOSITORY_SLOT = "repository"

# Lifetime of results built while a source was failing
FAILED_SOURCE_RETRY_MS = 60 * 60 * 1000


class ResolutionState(str, Enum):
    RESOLVED = "resolved"
    RESOLVED_WITH_ERRORS = "resolved_with_errors"


class ResolutionPath(str, Enum):
    RESULT_CACHE = "result_cache"
    DEPENDENCY_CACHE = "dependency_cache"
    FETCHED = "fetched"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class DependencyKeys:
    """Cache keys of the source records a component depends on (None = not applicable)."""

    package: Optional[str] = None
    vulnerability: Optional[str] = None
    repository: Optional[str] = None

    def applicable(self) -> List[str]:
        return [k for k in (self.package, self.vulnerability, self.repository) if k]


@dataclass
class SlotResult:
    """Outcome of one source call: a value, or the error that replaced it."""

    name: str
    value: Any = None
    error: Optional[BaseException] = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class Resolution:
    """Result of resolving one component."""

    properties: PropertySet
    state: ResolutionState
    path: ResolutionPath
    fingerprint: str
    errors: Dict[str, str] = field(default_factory=dict)


def dependency_keys(package_info: PackageInfo, repo_url: Optional[str]) -> DependencyKeys:
    """
    Compute the cache keys for a component's source records.

    The package key exists only for npm, PyPI and Maven; the vulnerability
    key only for a known ecosystem; the repository key whenever the
    component references a repository. Repository keys carry the host,
    so the same owner/repo on two hosts are kept apart.
    """
    package_key = None
    if package_info.ecosystem in (NPM, PYPI):
        package_key = generate_key(package_info.ecosystem, package_info.name)
    elif package_info.ecosystem == MAVEN:
        package_key = generate_key(MAVEN, package_info.group or "", package_info.name)

    vulnerability_key = None
    if package_info.is_known:
        vulnerability_key = generate_key(
            "vuln", package_info.ecosystem, package_info.qualified_name, package_info.version or ""
        )

    identity = repository_id(repo_url)
    repository_key = generate_key("repo", identity) if identity else None

    return DependencyKeys(package=package_key, vulnerability=vulnerability_key, repository=repository_key)


class FetchOrchestrator:
    """
    Resolves the CERT-In property set of one component.

    Example:
        with FetchOrchestrator(cache, registry, osv, github, lifecycle) as orchestrator:
            properties = await orchestrator.resolve_component(component, sbom["vulnerabilities"])
    """

    def __init__(
        self,
        cache: ResultCache,
        registry: PackageRegistrySource,
        vulnerabilities: VulnerabilitySource,
        repositories: RepositorySource,
        lifecycle: LifecycleLookup,
    ) -> None:
        self._cache = cache
        self._registry = registry
        self._vulnerabilities = vulnerabilities
        self._repositories = repositories
        self._lifecycle = lifecycle
        self._in_flight: Dict[str, "asyncio.Future[Any]"] = {}
        self.path_counts: Counter = Counter()

    @property
    def cache(self) -> ResultCache:
        return self._cache

    def close(self) -> None:
        """Close every source that holds a connection."""
        for source in (self._registry, self._vulnerabilities, self._repositories, self._lifecycle):
            close = getattr(source, "close", None)
            if callable(close):
                close()

    def __enter__(self) -> "FetchOrchestrator":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()

    async def resolve_component(
        self, component: Mapping[str, Any], sbom_vulnerabilities: Optional[Iterable[Mapping[str, Any]]] = None
    ) -> PropertySet:
        """Resolve a component and return only its property set."""
        resolution = await self.resolve(component, sbom_vulnerabilities)
        return resolution.properties

    async def resolve(
        self, component: Mapping[str, Any], sbom_vulnerabilities: Optional[Iterable[Mapping[str, Any]]] = None
    ) -> Resolution:
        """
        Resolve a component's CERT-In properties.

        Args:
            component: CycloneDX component dict
            sbom_vulnerabilities: The document's vulnerabilities array

        Returns:
            Resolution carrying the property set and how it was obtained
        """
        sbom_vulnerabilities = list(sbom_vulnerabilities or [])
        fingerprint = component_fingerprint(component, sbom_vulnerabilities)
        name = component.get("name")

        if self._cache.has(fingerprint):
            logger.debug(f"Cache hit (component): {name}")
            return self._record(
                Resolution(
                    properties=self._cache.get(fingerprint),
                    state=ResolutionState.RESOLVED,
                    path=ResolutionPath.RESULT_CACHE,
                    fingerprint=fingerprint,
                )
            )
        logger.debug(f"Cache miss (component): {name}")

        try:
            package_info = extract_package_info(component)
            repo_url = find_repository_url(component)
            keys = dependency_keys(package_info, repo_url)

            if all(self._cache.has(key) for key in keys.applicable()):
                properties = self._build_from_cache(component, package_info, keys, sbom_vulnerabilities)
                self._cache.set(fingerprint, properties)
                return self._record(
                    Resolution(
                        properties=properties,
                        state=ResolutionState.RESOLVED,
                        path=ResolutionPath.DEPENDENCY_CACHE,
                        fingerprint=fingerprint,
                    )
                )
        except Exception as e:
            return self._record(self._degrade(component, fingerprint, e))

        resolution = await self._coalesce(
            fingerprint,
            lambda: self._fetch_and_merge(component, package_info, repo_url, keys, sbom_vulnerabilities, fingerprint),
        )
        return self._record(resolution)

    def _build_from_cache(
        self,
        component: Mapping[str, Any],
        package_info: PackageInfo,
        keys: DependencyKeys,
        sbom_vulnerabilities: List[Mapping[str, Any]],
    ) -> PropertySet:
        package_data = self._cache.get(keys.package) if keys.package else None
        vuln_data = self._cache.get(keys.vulnerability) if keys.vulnerability else None
        repo_data = self._cache.get(keys.repository) if keys.repository else None
        eol_date = self._lifecycle.fetch(component, package_info)
        return build_property_set(
            component, package_info, package_data, vuln_data, repo_data, eol_date, sbom_vulnerabilities
        )

    async def _fetch_and_merge(
        self,
        component: Mapping[str, Any],
        package_info: PackageInfo,
        repo_url: Optional[str],
        keys: DependencyKeys,
        sbom_vulnerabilities: List[Mapping[str, Any]],
        fingerprint: str,
    ) -> Resolution:
        try:
            eol_date = self._lifecycle.fetch(component, package_info)
            package_slot, vuln_slot, repo_slot = await asyncio.gather(
                self._run_slot(
                    PACKAGE_SLOT,
                    keys.package,
                    lambda: self._registry.fetch(package_info.ecosystem, package_info.name, package_info.group),
                ),
                self._run_slot(
                    VULNERABILITY_SLOT,
                    keys.vulnerability,
                    lambda: self._vulnerabilities.fetch(
                        package_info.ecosystem, package_info.qualified_name, package_info.version
                    ),
                ),
                self._run_slot(REPOSITORY_SLOT, keys.repository, lambda: self._repositories.fetch(repo_url)),
            )
            properties = build_property_set(
                component,
                package_info,
                package_slot.value,
                vuln_slot.value,
                repo_slot.value,
                eol_date,
                sbom_vulnerabilities,
            )
        except Exception as e:
            return self._degrade(component, fingerprint, e)

        errors = {s.name: str(s.error) for s in (package_slot, vuln_slot, repo_slot) if not s.ok}
        if errors:
            # Expires so the failed sources are asked again on a later run
            self._cache.set_with_expiry(fingerprint, properties, FAILED_SOURCE_RETRY_MS)
        else:
            self._cache.set(fingerprint, properties)
        return Resolution(
            properties=properties,
            state=ResolutionState.RESOLVED,
            path=ResolutionPath.FETCHED,
            fingerprint=fingerprint,
            errors=errors,
        )

    async def _run_slot(
        self, name: str, key: Optional[str], call: Callable[[], Awaitable[Any]]
    ) -> SlotResult:
        """Run one source call, capturing its value or error instead of raising."""
        if key is None:
            return SlotResult(name)
        if self._cache.has(key):
            logger.debug(f"Cache hit ({name}): {key}")
            return SlotResult(name, value=self._cache.get(key), from_cache=True)

        try:
            value = await self._coalesce(key, lambda: self._fetch_and_store(key, call))
        except Exception as e:
            logger.warning(f"Error fetching {name} data for {key} [{categorize_error(e).value}]: {e}")
            return SlotResult(name, error=e)
        return SlotResult(name, value=value)

    async def _fetch_and_store(self, key: str, call: Callable[[], Awaitable[Any]]) -> Any:
        value = await call()
        # None ("not found") is cached too; raised errors are not
        self._cache.set(key, value)
        return value

    async def _coalesce(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        """Share one in-flight task between concurrent callers asking for the same key."""
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._in_flight[key] = task

            def _forget(done: "asyncio.Future[Any]") -> None:
                if self._in_flight.get(key) is done:
                    del self._in_flight[key]

            task.add_done_callback(_forget)
        else:
            logger.debug(f"Joining in-flight request: {key}")
        return await asyncio.shield(task)

    def _degrade(self, component: Mapping[str, Any], fingerprint: str, error: Exception) -> Resolution:
        log_error(
            error,
            "fetch_component_data",
            {"component_name": component.get("name"), "component_version": component.get("version")},
        )
        properties = degraded_property_set(component)
        self._cache.set(fingerprint, properties)
        return Resolution(
            properties=properties,
            state=ResolutionState.RESOLVED_WITH_ERRORS,
            path=ResolutionPath.DEGRADED,
            fingerprint=fingerprint,
            errors={"merge": str(error)},
        )

    def _record(self, resolution: Resolution) -> Resolution:
        self.path_counts[resolution.path.value] += 1
        return resolution
