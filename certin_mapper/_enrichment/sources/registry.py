"""Package registry client for npm, PyPI and Maven Central."""

import functools
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from certin_mapper.config import DEFAULT_HTTP_TIMEOUT
from certin_mapper.http_client import create_session, get_json, run_blocking
from certin_mapper.logging_config import logger
from certin_mapper.retry import with_transient_retry

from ..models import MAVEN, NPM, PYPI, PackageMetadata

NPM_REGISTRY_BASE = "https://registry.npmjs.org"
PYPI_API_BASE = "https://pypi.org/pypi"
MAVEN_SEARCH_URL = "https://search.maven.org/solrsearch/select"


def _date_part(value: Any) -> Optional[str]:
    """Reduce an ISO-8601 timestamp to its YYYY-MM-DD date."""
    if not value or not isinstance(value, str):
        return None
    return value[:10]


def _person_name(value: Any) -> Optional[str]:
    """npm authors are either "Name <email>" strings or {"name": ...} objects."""
    if isinstance(value, dict):
        return value.get("name") or None
    if isinstance(value, str) and value.strip():
        return value.split("<", 1)[0].strip() or value.strip()
    return None


def _license_name(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("type") or None
    if isinstance(value, list):
        names = [_license_name(v) for v in value]
        return " OR ".join(n for n in names if n) or None
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class PackageRegistryClient:
    """
    Fetches package metadata from the ecosystem's registry.

    Returns None for unsupported ecosystems and unknown packages.
    Network errors, rate limits and server errors are retried with
    linear backoff and raised once retries are exhausted.
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
        return "package-registry"

    def close(self) -> None:
        self._session.close()

    async def fetch(self, ecosystem: str, name: str, group: Optional[str] = None) -> Optional[PackageMetadata]:
        """
        Fetch registry metadata for a package.

        Args:
            ecosystem: "npm", "pypi" or "maven"
            name: Package name (npm scope included)
            group: Maven groupId

        Returns:
            PackageMetadata, or None when unsupported or not found
        """
        if ecosystem == NPM:
            fetcher = functools.partial(run_blocking, self._fetch_npm, name)
        elif ecosystem == PYPI:
            fetcher = functools.partial(run_blocking, self._fetch_pypi, name)
        elif ecosystem == MAVEN and group:
            fetcher = functools.partial(run_blocking, self._fetch_maven, group, name)
        else:
            return None

        return await with_transient_retry(fetcher, max_retries=self._max_retries, delay=self._retry_delay)

    def _fetch_npm(self, name: str) -> Optional[PackageMetadata]:
        logger.debug(f"Fetching npm metadata for: {name}")
        data = get_json(self._session, f"{NPM_REGISTRY_BASE}/{quote(name, safe='@')}", self._timeout)
        if data is None:
            logger.debug(f"Package not found on npm: {name}")
            return None
        return self._normalize_npm(data)

    def _normalize_npm(self, data: Dict[str, Any]) -> PackageMetadata:
        latest = (data.get("dist-tags") or {}).get("latest")
        times = data.get("time") or {}
        latest_manifest = (data.get("versions") or {}).get(latest) or {}
        return PackageMetadata(
            releaseDate=_date_part(times.get(latest)) if latest else None,
            license=_license_name(data.get("license") or latest_manifest.get("license")),
            latestVersion=latest,
            author=_person_name(data.get("author") or latest_manifest.get("author")),
            description=data.get("description") or None,
        )

    def _fetch_pypi(self, name: str) -> Optional[PackageMetadata]:
        logger.debug(f"Fetching PyPI metadata for: {name}")
        data = get_json(self._session, f"{PYPI_API_BASE}/{quote(name)}/json", self._timeout)
        if data is None:
            logger.debug(f"Package not found on PyPI: {name}")
            return None
        return self._normalize_pypi(data)

    def _normalize_pypi(self, data: Dict[str, Any]) -> PackageMetadata:
        info = data.get("info") or {}
        latest = info.get("version")
        files = (data.get("releases") or {}).get(latest) or data.get("urls") or []
        upload_time = None
        if files:
            upload_time = files[0].get("upload_time_iso_8601") or files[0].get("upload_time")

        # Newer uploads carry an SPDX expression; older ones a free-form field
        license_str = info.get("license_expression") or info.get("license") or None
        if license_str and len(license_str) > 200:
            license_str = license_str.splitlines()[0]

        author = info.get("author") or info.get("maintainer")
        if not author:
            email_field = info.get("author_email") or info.get("maintainer_email") or ""
            author = _person_name(email_field) if "<" in email_field else None

        return PackageMetadata(
            releaseDate=_date_part(upload_time),
            license=license_str,
            latestVersion=latest,
            author=author or None,
            description=info.get("summary") or None,
        )

    def _fetch_maven(self, group: str, name: str) -> Optional[PackageMetadata]:
        logger.debug(f"Fetching Maven Central metadata for: {group}:{name}")
        params = {"q": f'g:"{group}" AND a:"{name}"', "rows": 1, "wt": "json"}
        data = get_json(self._session, MAVEN_SEARCH_URL, self._timeout, params=params)
        docs = ((data or {}).get("response") or {}).get("docs") or []
        if not docs:
            logger.debug(f"Artifact not found on Maven Central: {group}:{name}")
            return None
        return self._normalize_maven(docs[0])

    def _normalize_maven(self, doc: Dict[str, Any]) -> PackageMetadata:
        timestamp = doc.get("timestamp")
        release_date = None
        if isinstance(timestamp, (int, float)):
            release_date = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).strftime("%Y-%m-%d")
        return PackageMetadata(
            releaseDate=release_date,
            license=None,
            latestVersion=doc.get("latestVersion") or doc.get("v"),
            author=None,
            description=None,
        )
