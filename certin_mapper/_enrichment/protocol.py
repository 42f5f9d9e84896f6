"""Interfaces of the external data sources consumed by the orchestrator."""

from typing import Any, Mapping, Optional, Protocol

from .models import PackageInfo, PackageMetadata, RepositoryMetadata, VulnerabilityAggregate


class PackageRegistrySource(Protocol):
    """
    Package registry lookup (npm, PyPI, Maven Central).

    Example:
        class NpmOnlyRegistry:
            name = "registry.npmjs.org"

            async def fetch(self, ecosystem, name, group=None):
                if ecosystem != "npm":
                    return None
                ...
    """

    @property
    def name(self) -> str:
        """Human-readable name used in logs."""
        ...

    async def fetch(self, ecosystem: str, name: str, group: Optional[str] = None) -> Optional[PackageMetadata]:
        """
        Fetch registry metadata for a package.

        Returns None when the package is not known to the registry.
        Transport or server failures should be raised; the orchestrator
        treats a raised error as "no data" for this run without caching it.
        """
        ...


class VulnerabilitySource(Protocol):
    """Vulnerability database lookup."""

    @property
    def name(self) -> str: ...

    async def fetch(
        self, ecosystem: str, name: str, version: Optional[str] = None
    ) -> Optional[VulnerabilityAggregate]:
        """Summarize known vulnerabilities for a package version, or None if unknown."""
        ...


class RepositorySource(Protocol):
    """Source repository metadata lookup."""

    @property
    def name(self) -> str: ...

    async def fetch(self, repo_url: Optional[str]) -> Optional[RepositoryMetadata]:
        """Fetch repository metadata. A None URL, or a host this source does not serve, yields None."""
        ...


class LifecycleLookup(Protocol):
    """Local end-of-life lookup. Synchronous and never raises."""

    @property
    def name(self) -> str: ...

    def fetch(self, component: Mapping[str, Any], package_info: Optional[PackageInfo]) -> Optional[str]:
        """Return the end-of-life date for the component's release cycle, if known."""
        ...
