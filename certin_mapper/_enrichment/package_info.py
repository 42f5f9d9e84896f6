"""Work out which registry a component belongs to and where its source lives."""

from typing import Any, Dict, Mapping, Optional

from packageurl import PackageURL

from certin_mapper.logging_config import logger

from .models import MAVEN, NPM, PYPI, UNKNOWN, PackageInfo

# PURL types handled by a registry client
PURL_TYPE_TO_ECOSYSTEM: Dict[str, str] = {
    "npm": NPM,
    "pypi": PYPI,
    "maven": MAVEN,
}

REPOSITORY_REFERENCE_TYPES = ("vcs", "repository")


def parse_purl(purl_str: Optional[str]) -> Optional[PackageURL]:
    """Safely parse a PURL string."""
    if not purl_str:
        return None
    try:
        return PackageURL.from_string(purl_str)
    except ValueError as e:
        logger.debug(f"Failed to parse PURL '{purl_str}': {e}")
        return None


def extract_package_info(component: Mapping[str, Any]) -> PackageInfo:
    """
    Determine the ecosystem, name, group and version of a component.

    The PURL is authoritative when present. Without one, a component
    that carries a ``group`` is assumed to be a Maven artifact; anything
    else is of unknown ecosystem.

    Args:
        component: CycloneDX component dict

    Returns:
        PackageInfo (ecosystem ``unknown`` when no registry applies)
    """
    name = component.get("name") or ""
    version = component.get("version")
    group = component.get("group") or None

    purl = parse_purl(component.get("purl"))
    if purl is not None:
        ecosystem = PURL_TYPE_TO_ECOSYSTEM.get(purl.type, UNKNOWN)
        purl_version = purl.version or version
        if ecosystem == NPM and purl.namespace:
            # Scoped npm packages: pkg:npm/%40babel/core -> @babel/core
            return PackageInfo(NPM, f"{purl.namespace}/{purl.name}", None, purl_version)
        if ecosystem == MAVEN:
            return PackageInfo(MAVEN, purl.name, purl.namespace or group, purl_version)
        return PackageInfo(ecosystem, purl.name if ecosystem != UNKNOWN else name, group, purl_version)

    if group and name:
        return PackageInfo(MAVEN, name, group, version)

    return PackageInfo(UNKNOWN, name, group, version)


def find_repository_url(component: Mapping[str, Any]) -> Optional[str]:
    """Return the URL of the first VCS/repository external reference."""
    for ref in component.get("externalReferences") or []:
        if isinstance(ref, Mapping) and ref.get("type") in REPOSITORY_REFERENCE_TYPES and ref.get("url"):
            return ref["url"]
    return None


def _trim_url(repo_url: str) -> str:
    return repo_url.strip().split("#", 1)[0].split("?", 1)[0]


def repository_host(repo_url: Optional[str]) -> Optional[str]:
    """Return the lower-cased host of a repository URL, or None when it has none."""
    if not repo_url:
        return None
    url = _trim_url(repo_url)
    if url.startswith("git@") and ":" in url:
        authority = url[len("git@") :].split(":", 1)[0]
    elif "://" in url:
        authority = url.split("://", 1)[1].partition("/")[0].rpartition("@")[2]
    else:
        first = url.split("/", 1)[0]
        authority = first if "." in first else ""
    return authority.split(":", 1)[0].lower() or None


def repository_slug(repo_url: Optional[str]) -> Optional[str]:
    """
    Reduce a repository URL to ``owner/repo``.

    Handles ``git+https://``, ``git@host:owner/repo.git``, bare
    ``host/owner/repo`` and deep links such as ``.../tree/main``; returns
    None when the path has no owner and repository.
    """
    if not repo_url:
        return None
    url = _trim_url(repo_url)
    if url.startswith("git@") and ":" in url:
        path = url.split(":", 1)[1]
    elif "://" in url:
        path = url.split("://", 1)[1].partition("/")[2]
    else:
        path = url
    parts = [p for p in path.split("/") if p]
    if parts and "." in parts[0]:
        parts = parts[1:]
    if len(parts) < 2:
        return None
    repo = parts[1][: -len(".git")] if parts[1].endswith(".git") else parts[1]
    return f"{parts[0]}/{repo}" if repo else None


def repository_id(repo_url: Optional[str]) -> Optional[str]:
    """
    Identify a repository as ``host/owner/repo``.

    Different spellings of the same repository (``git@``, ``.git``
    suffix, deep links) share one identity, while the same ``owner/repo``
    on two hosts does not. URLs without an owner/repo path fall back to
    the trimmed URL itself.
    """
    if not repo_url or not repo_url.strip():
        return None
    slug = repository_slug(repo_url)
    if slug is None:
        return _trim_url(repo_url).rstrip("/") or None
    host = repository_host(repo_url)
    return f"{host}/{slug}" if host else slug


def is_github_url(repo_url: Optional[str]) -> bool:
    return bool(repo_url) and "github.com" in repo_url.lower()
