"""Lifecycle lookup: end-of-life dates from the local lifecycle table.

No network calls; results are memoized per (ecosystem, name, version).
"""

from typing import Any, Dict, Mapping, Optional, Tuple

from certin_mapper.logging_config import logger

from ..lifecycle_data import get_lifecycle_dates
from ..models import PackageInfo
from ..package_info import extract_package_info


class LifecycleSource:
    """
    End-of-life lookup for runtimes and frameworks (Python, Django, React, Vue).

    Synchronous and local; unknown packages yield None.
    """

    def __init__(self) -> None:
        self._memo: Dict[Tuple[str, str, str], Optional[str]] = {}

    @property
    def name(self) -> str:
        return "lifecycle"

    def clear_cache(self) -> None:
        self._memo.clear()

    def fetch(self, component: Mapping[str, Any], package_info: Optional[PackageInfo]) -> Optional[str]:
        """
        Return the end-of-life date for the component's release cycle.

        Args:
            component: CycloneDX component dict
            package_info: Already extracted package info, if available

        Returns:
            ISO date string, or None when unknown
        """
        info = package_info or extract_package_info(component)
        version = info.version or component.get("version") or ""
        key = (info.ecosystem, info.name, version)
        if key in self._memo:
            return self._memo[key]

        dates = get_lifecycle_dates(info.name, version, info.ecosystem)
        eol = (dates or {}).get("end_of_life")

        if eol:
            logger.debug(f"Found end-of-life date for {info.name}@{version}: {eol}")
        self._memo[key] = eol
        return eol
