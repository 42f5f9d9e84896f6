"""Data source implementations consumed by the fetch orchestrator."""

from .github import GitHubClient
from .lifecycle import LifecycleSource
from .osv import OSVClient
from .registry import PackageRegistryClient

__all__ = [
    "GitHubClient",
    "LifecycleSource",
    "OSVClient",
    "PackageRegistryClient",
]
