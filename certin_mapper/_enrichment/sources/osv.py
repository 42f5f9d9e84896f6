"""OSV.dev vulnerability client."""

import functools
from typing import Any, Dict, List, Optional

import requests

from certin_mapper.config import DEFAULT_HTTP_TIMEOUT
from certin_mapper.http_client import create_session, post_json, run_blocking
from certin_mapper.logging_config import logger
from certin_mapper.retry import with_transient_retry

from ..models import MAVEN, NPM, PYPI, VulnerabilityAggregate

OSV_QUERY_URL = "https://api.osv.dev/v1/query"

# Ecosystem names as OSV spells them
ECOSYSTEM_TO_OSV: Dict[str, str] = {
    NPM: "npm",
    PYPI: "PyPI",
    MAVEN: "Maven",
}

# GHSA database_specific severities -> display form
_SEVERITY_LABELS = {
    "CRITICAL": "Critical",
    "HIGH": "High",
    "MODERATE": "Medium",
    "MEDIUM": "Medium",
    "LOW": "Low",
}
_SEVERITY_RANK = ["Critical", "High", "Medium", "Low"]


def _numeric_score(value: Any) -> Optional[float]:
    """OSV severity scores are usually CVSS vectors; only bare numbers are usable."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def summarize_vulnerabilities(vulns: List[Dict[str, Any]]) -> VulnerabilityAggregate:
    """
    Reduce an OSV ``vulns`` list to a VulnerabilityAggregate.

    Fixed versions keep their first-seen order without duplicates.
    """
    fixed_versions: List[str] = []
    max_score = 0.0
    severities: List[str] = []

    for vuln in vulns:
        for affected in vuln.get("affected") or []:
            for range_ in affected.get("ranges") or []:
                for event in range_.get("events") or []:
                    fixed = event.get("fixed")
                    if fixed and fixed not in fixed_versions:
                        fixed_versions.append(fixed)

        for severity in vuln.get("severity") or []:
            score = _numeric_score(severity.get("score"))
            if score is not None:
                max_score = max(max_score, score)

        label = _SEVERITY_LABELS.get(str((vuln.get("database_specific") or {}).get("severity") or "").upper())
        if label:
            severities.append(label)

    categorical = min(severities, key=_SEVERITY_RANK.index) if severities else None

    return VulnerabilityAggregate(
        hasVulnerabilities=bool(vulns),
        totalVulns=len(vulns),
        fixedVersions=fixed_versions,
        maxCvssScore=max_score,
        categoricalSeverity=categorical,
    )


class OSVClient:
    """
    Queries OSV.dev for vulnerabilities affecting a package version.

    Returns None for ecosystems OSV is not queried for. A package OSV
    knows nothing about yields an aggregate with no vulnerabilities.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self._session = session or create_session()
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    @property
    def name(self) -> str:
        return "osv.dev"

    def close(self) -> None:
        self._session.close()

    async def fetch(
        self, ecosystem: str, name: str, version: Optional[str] = None
    ) -> Optional[VulnerabilityAggregate]:
        """
        Summarize known vulnerabilities.

        Args:
            ecosystem: "npm", "pypi" or "maven"
            name: Package name (Maven: ``group:artifact``)
            version: Installed version; without it every known vulnerability counts

        Returns:
            VulnerabilityAggregate, or None for unsupported ecosystems
        """
        osv_ecosystem = ECOSYSTEM_TO_OSV.get(ecosystem)
        if not osv_ecosystem:
            return None

        query: Dict[str, Any] = {"package": {"name": name, "ecosystem": osv_ecosystem}}
        if version:
            query["version"] = version

        fetcher = functools.partial(run_blocking, self._query, query)
        return await with_transient_retry(fetcher, max_retries=self._max_retries, delay=self._retry_delay)

    def _query(self, query: Dict[str, Any]) -> VulnerabilityAggregate:
        package = query["package"]
        logger.debug(f"Querying OSV for: {package['ecosystem']}/{package['name']}@{query.get('version', '*')}")
        vulns: List[Dict[str, Any]] = []
        body = dict(query)
        while True:
            data = post_json(self._session, OSV_QUERY_URL, self._timeout, body) or {}
            vulns.extend(data.get("vulns") or [])
            page_token = data.get("next_page_token")
            if not page_token:
                break
            body = {**query, "page_token": page_token}
        return summarize_vulnerabilities(vulns)
