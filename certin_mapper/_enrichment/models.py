"""Data shapes shared by the enrichment sources and the orchestrator.

External records are plain JSON-compatible dicts so they can be stored
in the result cache snapshot as-is.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TypedDict

# Component and document payloads are CycloneDX JSON objects
Component = Dict[str, Any]
Document = Dict[str, Any]

# CERT-In property name -> value (None renders as no value)
PropertySet = Dict[str, Optional[str]]

NA = "NA"

PATCH_STATUS = "Patch Status"
RELEASE_DATE = "Release Date"
END_OF_LIFE_DATE = "End-of-Life Date"
CRITICALITY = "Criticality"
USAGE_RESTRICTIONS = "Usage Restrictions"
COMMENTS = "Comments or Notes"
EXECUTABLE_PROPERTY = "Executable Property"
ARCHIVE_PROPERTY = "Archive Property"
STRUCTURED_PROPERTY = "Structured Property"
UNIQUE_IDENTIFIER = "Unique Identifier"
COMPONENT_SUPPLIER = "Component Supplier"
COMPONENT_ORIGIN = "Component Origin"

# Property names in display order
CERT_IN_PROPERTIES: List[str] = [
    PATCH_STATUS,
    RELEASE_DATE,
    END_OF_LIFE_DATE,
    CRITICALITY,
    USAGE_RESTRICTIONS,
    COMMENTS,
    EXECUTABLE_PROPERTY,
    ARCHIVE_PROPERTY,
    STRUCTURED_PROPERTY,
    UNIQUE_IDENTIFIER,
    COMPONENT_SUPPLIER,
    COMPONENT_ORIGIN,
]

# Ecosystems with a package registry client
NPM = "npm"
PYPI = "pypi"
MAVEN = "maven"
UNKNOWN = "unknown"
SUPPORTED_ECOSYSTEMS = (NPM, PYPI, MAVEN)


@dataclass(frozen=True)
class PackageInfo:
    """Where a component can be looked up."""

    ecosystem: str
    name: str
    group: Optional[str] = None
    version: Optional[str] = None

    @property
    def is_known(self) -> bool:
        return self.ecosystem in SUPPORTED_ECOSYSTEMS

    @property
    def qualified_name(self) -> str:
        """Name as vulnerability databases expect it (Maven: ``group:artifact``)."""
        if self.ecosystem == MAVEN and self.group:
            return f"{self.group}:{self.name}"
        return self.name


class PackageMetadata(TypedDict, total=False):
    """Registry data for a package (npm, PyPI, Maven Central)."""

    releaseDate: Optional[str]
    license: Optional[str]
    latestVersion: Optional[str]
    author: Optional[str]
    description: Optional[str]


class VulnerabilityAggregate(TypedDict, total=False):
    """Summary of known vulnerabilities for a package."""

    hasVulnerabilities: bool
    totalVulns: int
    fixedVersions: List[str]
    maxCvssScore: float
    categoricalSeverity: Optional[str]


class RepositoryMetadata(TypedDict, total=False):
    """Source repository data (GitHub)."""

    releaseDate: Optional[str]
    license: Optional[str]
    stars: int
