"""Rules that turn fetched source records into CERT-In properties.

Everything here is a pure function of its inputs so the fast (cached)
path and the full fetch path produce identical property sets.
"""

import re
from typing import Any, Iterable, List, Mapping, Optional

from certin_mapper.fingerprint import get_bom_ref

from .models import (
    ARCHIVE_PROPERTY,
    COMMENTS,
    COMPONENT_ORIGIN,
    COMPONENT_SUPPLIER,
    CRITICALITY,
    END_OF_LIFE_DATE,
    EXECUTABLE_PROPERTY,
    MAVEN,
    NA,
    NPM,
    PATCH_STATUS,
    RELEASE_DATE,
    STRUCTURED_PROPERTY,
    UNIQUE_IDENTIFIER,
    USAGE_RESTRICTIONS,
    PackageInfo,
    PackageMetadata,
    PropertySet,
    RepositoryMetadata,
    VulnerabilityAggregate,
)

# Highest first; anything not listed ranks below LOW
SEVERITY_ORDER = ("CRITICAL", "HIGH", "MEDIUM", "LOW")

UPDATE_AVAILABLE = "Update available"
UP_TO_DATE = "Up to date"

STRONG_COPYLEFT = "AGPL License - Strong copyleft restrictions"
COPYLEFT = "GPL License - Copyleft restrictions apply"
PERMISSIVE = "Permissive license - Minimal restrictions"

OPEN_SOURCE = "Open-source"
PROPRIETARY = "Proprietary"
VENDOR = "Vendor"
THIRD_PARTY = "Third-party"

POPULAR_STAR_THRESHOLD = 100

_PROPRIETARY_PATTERN = re.compile(r"proprietary", re.IGNORECASE)


def _fixed_versions(vuln_data: Optional[VulnerabilityAggregate]) -> List[str]:
    fixed = (vuln_data or {}).get("fixedVersions")
    return list(fixed) if isinstance(fixed, list) else []


def _stars(repo_data: Optional[RepositoryMetadata]) -> int:
    try:
        return int((repo_data or {}).get("stars") or 0)
    except (TypeError, ValueError):
        return 0


def compute_patch_status(
    vuln_data: Optional[VulnerabilityAggregate],
    package_info: Optional[PackageInfo],
    package_data: Optional[PackageMetadata],
) -> str:
    """
    Decide whether an update is available.

    Known vulnerabilities win (pointing at the first fixed version), then
    a newer registry release, otherwise the component is up to date.
    """
    if vuln_data and vuln_data.get("hasVulnerabilities"):
        fixed = _fixed_versions(vuln_data)
        return f"{UPDATE_AVAILABLE} (>= {fixed[0] if fixed else NA})"

    latest = (package_data or {}).get("latestVersion")
    installed = package_info.version if package_info else None
    if latest and installed and latest != installed:
        return f"{UPDATE_AVAILABLE} (latest {latest})"

    return UP_TO_DATE


def _severity_rank(severity: str) -> int:
    try:
        return SEVERITY_ORDER.index(severity)
    except ValueError:
        return len(SEVERITY_ORDER)


def determine_criticality_from_sbom(
    sbom_vulnerabilities: Optional[Iterable[Mapping[str, Any]]], component: Mapping[str, Any]
) -> Optional[str]:
    """
    Highest severity among the document's vulnerabilities affecting this component.

    Returns the severity title-cased ("High"), or None when no rated
    vulnerability references the component's bom-ref.
    """
    ref = get_bom_ref(component)
    if not ref or not sbom_vulnerabilities:
        return None

    best: Optional[str] = None
    for vuln in sbom_vulnerabilities:
        affects = vuln.get("affects")
        ratings = vuln.get("ratings")
        if not isinstance(affects, list) or not isinstance(ratings, list) or not ratings:
            continue
        if not any(isinstance(a, Mapping) and a.get("ref") == ref for a in affects):
            continue
        for rating in ratings:
            severity = str((rating or {}).get("severity") or "").upper()
            if not severity:
                continue
            if best is None or _severity_rank(severity) < _severity_rank(best):
                best = severity

    return best.capitalize() if best else None


def determine_criticality_from_cvss(vuln_data: Optional[VulnerabilityAggregate]) -> Optional[str]:
    """Band the maximum CVSS score reported by the vulnerability source."""
    try:
        score = float((vuln_data or {}).get("maxCvssScore") or 0)
    except (TypeError, ValueError):
        return None
    if score >= 9:
        return "Critical"
    if score >= 7:
        return "High"
    if score >= 4:
        return "Medium"
    if score > 0:
        return "Low"
    return None


def resolve_criticality(
    sbom_vulnerabilities: Optional[Iterable[Mapping[str, Any]]],
    component: Mapping[str, Any],
    vuln_data: Optional[VulnerabilityAggregate],
) -> Optional[str]:
    """In-document ratings, then the CVSS band, then the source's own rating."""
    return (
        determine_criticality_from_sbom(sbom_vulnerabilities, component)
        or determine_criticality_from_cvss(vuln_data)
        or (vuln_data or {}).get("categoricalSeverity")
        or None
    )


def determine_usage_restrictions(license_str: Optional[str]) -> str:
    if not license_str:
        return NA
    lowered = str(license_str).lower()
    if "agpl" in lowered:
        return STRONG_COPYLEFT
    if "gpl" in lowered:
        return COPYLEFT
    if "mit" in lowered or "apache" in lowered:
        return PERMISSIVE
    return NA


def determine_supplier(package_data: Optional[PackageMetadata], repo_data: Optional[RepositoryMetadata]) -> str:
    if _stars(repo_data) > 0:
        return OPEN_SOURCE
    if (package_data or {}).get("author"):
        return VENDOR
    return THIRD_PARTY


def determine_origin(package_data: Optional[PackageMetadata], repo_data: Optional[RepositoryMetadata]) -> str:
    if _stars(repo_data) > 0:
        return OPEN_SOURCE
    license_str = (package_data or {}).get("license")
    if license_str and _PROPRIETARY_PATTERN.search(str(license_str)):
        return PROPRIETARY
    return OPEN_SOURCE


def generate_unique_identifier(
    component: Mapping[str, Any], package_info: Optional[PackageInfo], supplier: str
) -> str:
    """
    Build a supplier-qualified package URL.

    An existing purl keeps its type and last path segment
    (``pkg:npm/lodash@4.17.21`` -> ``pkg:supplier/<supplier>/npm/lodash@4.17.21``).
    Otherwise one is synthesized from the ecosystem, name and version.
    """
    purl = component.get("purl")
    if purl:
        parts = str(purl).split("/")
        if len(parts) >= 2:
            purl_type = parts[0].replace("pkg:", "", 1)
            return f"pkg:supplier/{supplier}/{purl_type}/{parts[-1]}"

    if package_info and package_info.ecosystem and package_info.name:
        ecosystem = package_info.ecosystem.lower()
        version = component.get("version")
        suffix = f"@{version}" if version else ""
        if ecosystem == MAVEN and package_info.group:
            return f"pkg:supplier/{supplier}/{ecosystem}/{package_info.group}/{package_info.name}{suffix}"
        return f"pkg:supplier/{supplier}/{ecosystem}/{package_info.name}{suffix}"

    return component.get("name") or NA


def build_comments(
    package_data: Optional[PackageMetadata],
    vuln_data: Optional[VulnerabilityAggregate],
    repo_data: Optional[RepositoryMetadata],
) -> str:
    notes = []
    description = (package_data or {}).get("description")
    if description:
        notes.append(f"Description: {description}")
    total = (vuln_data or {}).get("totalVulns") or 0
    if total > 0:
        notes.append(f"{total} known vulnerabilities")
    stars = _stars(repo_data)
    if stars > POPULAR_STAR_THRESHOLD:
        notes.append(f"Popular project ({stars} stars)")
    return "; ".join(notes) if notes else NA


def append_recommendation(comments: str, vuln_data: Optional[VulnerabilityAggregate], patch_status: str) -> str:
    """Add the recommended (vulnerability-free) version to the notes."""
    fixed = _fixed_versions(vuln_data)
    if fixed:
        recommendation = f"Recommended version: {fixed[0]}"
    elif patch_status.startswith(UPDATE_AVAILABLE):
        recommendation = f"Recommended version: {NA}"
    else:
        return comments
    return recommendation if comments == NA else f"{comments}; {recommendation}"


def build_property_set(
    component: Mapping[str, Any],
    package_info: Optional[PackageInfo],
    package_data: Optional[PackageMetadata],
    vuln_data: Optional[VulnerabilityAggregate],
    repo_data: Optional[RepositoryMetadata],
    eol_date: Optional[str],
    sbom_vulnerabilities: Optional[Iterable[Mapping[str, Any]]] = None,
) -> PropertySet:
    """
    Merge the source records for one component into its CERT-In properties.

    Args:
        component: CycloneDX component dict
        package_info: Ecosystem/name/group/version of the component
        package_data: Registry record, or None
        vuln_data: Vulnerability summary, or None
        repo_data: Repository record, or None
        eol_date: End-of-life date from the lifecycle lookup, or None
        sbom_vulnerabilities: The document's vulnerabilities array

    Returns:
        PropertySet keyed by CERT-In property name
    """
    package_data = package_data or {}
    repo_data = repo_data or {}

    props: PropertySet = {}
    props[PATCH_STATUS] = compute_patch_status(vuln_data, package_info, package_data)
    props[RELEASE_DATE] = package_data.get("releaseDate") or repo_data.get("releaseDate") or NA
    props[END_OF_LIFE_DATE] = eol_date or NA
    props[CRITICALITY] = resolve_criticality(sbom_vulnerabilities, component, vuln_data)
    license_str = package_data.get("license") or repo_data.get("license") or None
    props[USAGE_RESTRICTIONS] = determine_usage_restrictions(license_str)
    props[COMMENTS] = build_comments(package_data, vuln_data, repo_data)
    props[EXECUTABLE_PROPERTY] = "Yes" if package_info and package_info.ecosystem == NPM else "No"
    props[ARCHIVE_PROPERTY] = "No"
    props[STRUCTURED_PROPERTY] = "Yes"
    props[COMPONENT_SUPPLIER] = determine_supplier(package_data, repo_data)
    props[COMPONENT_ORIGIN] = determine_origin(package_data, repo_data)
    props[UNIQUE_IDENTIFIER] = generate_unique_identifier(component, package_info, props[COMPONENT_SUPPLIER])
    props[COMMENTS] = append_recommendation(props[COMMENTS], vuln_data, props[PATCH_STATUS])
    return props


def degraded_property_set(component: Mapping[str, Any]) -> PropertySet:
    """Properties recorded when a component could not be enriched at all."""
    return {
        PATCH_STATUS: "Error fetching data",
        RELEASE_DATE: NA,
        END_OF_LIFE_DATE: NA,
        CRITICALITY: "Unknown",
        USAGE_RESTRICTIONS: NA,
        COMMENTS: "Error occurred while fetching component data",
        EXECUTABLE_PROPERTY: "Unknown",
        ARCHIVE_PROPERTY: "No",
        STRUCTURED_PROPERTY: "Yes",
        UNIQUE_IDENTIFIER: component.get("purl") or component.get("name") or NA,
        COMPONENT_SUPPLIER: "Unknown",
        COMPONENT_ORIGIN: "Unknown",
    }
