"""GitHub repository metadata client."""

import functools
from typing import Optional

import requests

from certin_mapper.config import DEFAULT_HTTP_TIMEOUT
from certin_mapper.http_client import create_session, get_json, run_blocking
from certin_mapper.logging_config import logger
from certin_mapper.retry import with_transient_retry

from ..models import RepositoryMetadata
from ..package_info import is_github_url, repository_slug

GITHUB_API_BASE = "https://api.github.com"
GITHUB_ACCEPT = "application/vnd.github+json"

# SPDX id GitHub reports when it cannot classify a license
_UNCLASSIFIED_LICENSE = "NOASSERTION"


class GitHubClient:
    """
    Fetches repository metadata (stars, license, latest release date) from GitHub.

    URLs that do not point at github.com resolve to None without a request.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self._session = session or create_session(token)
        self._session.headers["Accept"] = GITHUB_ACCEPT
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    @property
    def name(self) -> str:
        return "github"

    def close(self) -> None:
        self._session.close()

    async def fetch(self, repo_url: Optional[str]) -> Optional[RepositoryMetadata]:
        if not is_github_url(repo_url):
            return None
        slug = repository_slug(repo_url)
        if not slug:
            return None
        fetcher = functools.partial(run_blocking, self._fetch_repository, slug)
        return await with_transient_retry(fetcher, max_retries=self._max_retries, delay=self._retry_delay)

    def _fetch_repository(self, slug: str) -> Optional[RepositoryMetadata]:
        logger.debug(f"Fetching GitHub metadata for: {slug}")
        repo = get_json(self._session, f"{GITHUB_API_BASE}/repos/{slug}", self._timeout)
        if not repo:
            return None

        # Repositories without releases answer 404 here
        release = get_json(self._session, f"{GITHUB_API_BASE}/repos/{slug}/releases/latest", self._timeout) or {}

        license_id = (repo.get("license") or {}).get("spdx_id")
        if license_id == _UNCLASSIFIED_LICENSE:
            license_id = None

        published = release.get("published_at")
        return RepositoryMetadata(
            releaseDate=published[:10] if isinstance(published, str) else None,
            license=license_id,
            stars=int(repo.get("stargazers_count") or 0),
        )
