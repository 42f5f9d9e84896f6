"""HTTP client utilities with consistent user agent."""

import asyncio
import functools
from typing import Any, Optional

import requests

from certin_mapper import __version__

from .exceptions import APIError, NetworkError, ParsingError

USER_AGENT = f"certin-mapper/{__version__}"


def get_default_headers(token: Optional[str] = None, accept: Optional[str] = None) -> dict:
    """
    Get default HTTP headers with user agent.

    Args:
        token: Optional bearer token to include
        accept: Optional Accept header value

    Returns:
        Dictionary of HTTP headers
    """
    headers = {"User-Agent": USER_AGENT}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    if accept:
        headers["Accept"] = accept
    return headers


def create_session(token: Optional[str] = None) -> requests.Session:
    """Create a requests session carrying the default headers."""
    session = requests.Session()
    session.headers.update(get_default_headers(token))
    return session


async def run_blocking(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Run a blocking call (e.g. a requests call) in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


def request_json(
    session: requests.Session,
    method: str,
    url: str,
    timeout: float,
    params: Optional[dict] = None,
    json_body: Optional[Any] = None,
) -> Optional[Any]:
    """
    Send a request and decode its JSON response.

    Returns the decoded body on 200 and None on 404. Other statuses raise
    APIError; transport failures raise NetworkError; a malformed body
    raises ParsingError.
    """
    try:
        response = session.request(method, url, params=params, json=json_body, timeout=timeout)
    except requests.exceptions.Timeout as e:
        raise NetworkError(f"Timeout fetching {url}") from e
    except requests.exceptions.RequestException as e:
        raise NetworkError(f"Error fetching {url}: {e}") from e

    if response.status_code == 404:
        return None
    if response.status_code != 200:
        raise APIError(f"HTTP {response.status_code} from {url}", status_code=response.status_code)

    try:
        return response.json()
    except ValueError as e:
        raise ParsingError(f"Invalid JSON from {url}: {e}") from e


def get_json(session: requests.Session, url: str, timeout: float, params: Optional[dict] = None) -> Optional[Any]:
    """GET a JSON document (None on 404)."""
    return request_json(session, "GET", url, timeout, params=params)


def post_json(session: requests.Session, url: str, timeout: float, body: Any) -> Optional[Any]:
    """POST a JSON body and decode the JSON response (None on 404)."""
    return request_json(session, "POST", url, timeout, json_body=body)
