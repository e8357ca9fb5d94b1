# src/releasemirror/utils.py
import importlib.metadata
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry  # type: ignore

from releasemirror.constants import (
    APP_NAME,
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_DOWNLOAD_RETRIES,
    DOWNLOAD_TIMEOUT,
    GITHUB_API_TIMEOUT,
    GITHUB_API_VERSION,
    RATE_LIMIT_WARNING_THRESHOLD,
    RETRY_STATUS_FORCELIST,
)
from releasemirror.exceptions import HTTPError, NetworkError
from releasemirror.log_utils import logger

# Cache for the User-Agent string to avoid repeated metadata lookups
_USER_AGENT_CACHE = None


def get_user_agent() -> str:
    """
    Get the User-Agent string used for HTTP requests.

    Returns:
        The string `releasemirror/{version}`, where `{version}` is the installed package version or `unknown` if the version cannot be determined.
    """
    global _USER_AGENT_CACHE

    if _USER_AGENT_CACHE is None:
        try:
            app_version = importlib.metadata.version(APP_NAME)
        except importlib.metadata.PackageNotFoundError:
            app_version = "unknown"

        _USER_AGENT_CACHE = f"{APP_NAME}/{app_version}"

    return _USER_AGENT_CACHE


def get_effective_github_token(
    github_token: Optional[str], allow_env_token: bool = True
) -> Optional[str]:
    """
    Determine the GitHub token to use, preferring the explicit argument over the environment.

    Parameters:
        github_token (Optional[str]): Explicit token to use; leading and trailing whitespace are ignored.
        allow_env_token (bool): If True, fall back to the `GITHUB_TOKEN` environment variable when no explicit token is provided.

    Returns:
        Optional[str]: The chosen token with surrounding whitespace removed, or `None` if no token is available.
    """
    candidate = (github_token or "").strip()
    if candidate:
        return candidate
    if not allow_env_token:
        return None
    env_token = os.environ.get("GITHUB_TOKEN")
    return env_token.strip() if env_token else None


def _parse_rate_limit_header(header_value: Any) -> Optional[int]:
    """Parse an X-RateLimit-* header into an int, or None when absent or malformed."""
    if header_value is None:
        return None
    try:
        return int(str(header_value).strip())
    except (TypeError, ValueError):
        return None


def _log_rate_limit(response: requests.Response) -> None:
    headers = getattr(response, "headers", None)
    if headers is None or not hasattr(headers, "get"):
        return

    remaining = _parse_rate_limit_header(headers.get("X-RateLimit-Remaining"))
    if remaining is None:
        return

    logger.debug(f"GitHub API rate-limit remaining: {remaining}")
    if remaining <= RATE_LIMIT_WARNING_THRESHOLD:
        logger.warning(
            f"GitHub API rate limit running low: {remaining} requests remaining"
        )


def make_github_api_request(
    url: str,
    github_token: Optional[str] = None,
    allow_env_token: bool = True,
    params: Optional[Dict[str, Any]] = None,
    timeout: Optional[int] = None,
    _is_retry: bool = False,
) -> requests.Response:
    """
    Perform a GitHub API GET request with optional token authentication, retrying once without authentication if token-based auth returns 401.

    Parameters:
        url (str): GitHub API URL to request.
        github_token (Optional[str]): Explicit GitHub token to prefer for Authorization; trimmed before use.
        allow_env_token (bool): If True, allow falling back to the GITHUB_TOKEN environment variable when no explicit token is provided.
        params (Optional[Dict[str, Any]]): Query parameters to include in the request.
        timeout (Optional[int]): Request timeout in seconds; if omitted the module default is used.

    Returns:
        requests.Response: The HTTP response returned by GitHub.

    Raises:
        requests.HTTPError: For HTTP error responses (403 rate-limit exhaustion gets a descriptive message).
        requests.RequestException: For lower-level network or request errors.
    """
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
        "User-Agent": get_user_agent(),
    }

    effective_token = get_effective_github_token(github_token, allow_env_token)
    if effective_token:
        headers["Authorization"] = f"token {effective_token}"
        logger.debug("Using GitHub token for API authentication")
    else:
        logger.debug("No GitHub token available - using unauthenticated API requests")

    try:
        actual_timeout = timeout or GITHUB_API_TIMEOUT
        logger.debug(f"Making GitHub API request: {url} {params or ''}")
        response = requests.get(
            url, timeout=actual_timeout, headers=headers, params=params
        )
        response.raise_for_status()
    except requests.HTTPError as e:
        if (
            not _is_retry
            and e.response is not None
            and e.response.status_code == 401
            and effective_token
        ):
            logger.warning(
                f"GitHub token authentication failed for {url}. Retrying without authentication."
            )
            return make_github_api_request(
                url,
                github_token=None,
                allow_env_token=False,  # Don't try env token on retry
                params=params,
                timeout=timeout,
                _is_retry=True,
            )
        elif e.response is not None and e.response.status_code == 403:
            remaining = _parse_rate_limit_header(
                e.response.headers.get("X-RateLimit-Remaining")
            )
            if remaining == 0:
                reset_time = _parse_rate_limit_header(
                    e.response.headers.get("X-RateLimit-Reset")
                )
                reset_time_str = (
                    datetime.fromtimestamp(reset_time, timezone.utc).strftime(
                        "%Y-%m-%d %H:%M:%S UTC"
                    )
                    if reset_time is not None
                    else "unknown"
                )
                error_msg = (
                    f"GitHub API rate limit exceeded. Resets at {reset_time_str}. "
                    f"Set GITHUB_TOKEN environment variable for higher rate limits."
                )
            else:
                error_msg = "GitHub API access forbidden"
            raise requests.HTTPError(error_msg, response=e.response) from None
        else:
            raise

    _log_rate_limit(response)
    return response


def _build_download_session(retries: int) -> requests.Session:
    session = requests.Session()
    session.headers["User-Agent"] = get_user_agent()
    if retries > 0:
        retry_strategy: Retry = Retry(
            total=retries,
            connect=retries,
            read=retries,
            status=retries,
            backoff_factor=DEFAULT_BACKOFF_FACTOR,
            status_forcelist=list(RETRY_STATUS_FORCELIST),
            allowed_methods=frozenset({"GET", "HEAD"}),
            raise_on_status=False,
            respect_retry_after_header=True,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
    return session


@contextmanager
def open_download_stream(
    url: str,
    timeout: int = DOWNLOAD_TIMEOUT,
    retries: int = DEFAULT_DOWNLOAD_RETRIES,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[Iterator[bytes]]:
    """
    Open a streaming GET for a release asset and yield an iterator over its body.

    Transient statuses (408, 429, 5xx) and connection failures are retried by
    urllib3 up to `retries` times before the request is given up on. The
    response and session are closed when the context exits.

    Parameters:
        url (str): Asset download URL (redirects to object storage are followed).
        timeout (int): Per-request timeout in seconds.
        retries (int): Transport-level retry budget; 0 disables retries.
        chunk_size (int): Size of the byte chunks yielded.

    Yields:
        Iterator[bytes]: Non-empty chunks of the response body.

    Raises:
        HTTPError: The server answered with an error status.
        NetworkError: The connection failed, timed out, or broke mid-transfer.
    """
    session = _build_download_session(retries)
    response = None
    try:
        logger.debug(f"Opening download stream for {url}")
        try:
            response = session.get(url, stream=True, timeout=timeout)
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise HTTPError(
                f"HTTP {status} while downloading", status_code=status, url=url
            ) from e
        except requests.RequestException as e:
            raise NetworkError("Network error while downloading", url=url, details=str(e)) from e

        def _chunks() -> Iterator[bytes]:
            try:
                for chunk in response.iter_content(chunk_size=chunk_size):
                    if chunk:
                        yield chunk
            except requests.RequestException as e:
                raise NetworkError(
                    "Connection broken during download", url=url, details=str(e)
                ) from e

        yield _chunks()
    finally:
        if response is not None:
            response.close()
        session.close()
