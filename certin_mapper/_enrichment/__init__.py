"""CERT-In property enrichment: orchestration, derivation and data sources."""

from typing import Optional

from certin_mapper._cache import ResultCache
from certin_mapper.config import Config

from .document import DocumentResolution, DocumentResolver, merge_properties, seed_properties
from .models import CERT_IN_PROPERTIES, PackageInfo
from .orchestrator import FetchOrchestrator, Resolution, ResolutionPath, ResolutionState
from .package_info import extract_package_info
from .sources import GitHubClient, LifecycleSource, OSVClient, PackageRegistryClient


def create_default_orchestrator(cache: ResultCache, config: Optional[Config] = None) -> FetchOrchestrator:
    """
    Create a FetchOrchestrator wired to the live data sources.

    - PackageRegistryClient - npm, PyPI and Maven Central metadata
    - OSVClient - vulnerabilities from OSV.dev
    - GitHubClient - stars, license and latest release of the source repository
    - LifecycleSource - local end-of-life table

    Args:
        cache: Result cache shared by every component of the run
        config: Timeout and GitHub token; defaults apply when omitted

    Returns:
        Configured FetchOrchestrator; close it (or use it as a context
        manager) to release the HTTP sessions
    """
    config = config or Config()
    return FetchOrchestrator(
        cache=cache,
        registry=PackageRegistryClient(timeout=config.http_timeout),
        vulnerabilities=OSVClient(timeout=config.http_timeout),
        repositories=GitHubClient(token=config.github_token, timeout=config.http_timeout),
        lifecycle=LifecycleSource(),
    )


__all__ = [
    "CERT_IN_PROPERTIES",
    "DocumentResolution",
    "DocumentResolver",
    "FetchOrchestrator",
    "PackageInfo",
    "Resolution",
    "ResolutionPath",
    "ResolutionState",
    "create_default_orchestrator",
    "extract_package_info",
    "merge_properties",
    "seed_properties",
]
