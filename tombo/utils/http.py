"""
HTTP client utilities for tombo.

This module provides the asynchronous client used to talk to a
PyPI-compatible JSON API. It owns three concerns and nothing else:

* joining request paths onto a configurable base URL (:func:`join_url`);
* bounded retries with exponential backoff;
* classifying every failure into the :class:`~tombo.exceptions.PyPIError`
  taxonomy before it reaches retry logic or the caller.

The client holds no cache and no per-request state beyond its configuration.
"""

from __future__ import annotations

import httpx
import asyncio
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from urllib.parse import urlparse
from typing import Any, Dict, Mapping, Optional, cast

from tombo.utils.logger import get_logger
from tombo.__version__ import __version__
from tombo.exceptions import (
    InvalidResponseError,
    NetworkError,
    PackageNotFoundError,
    PyPIError,
    RateLimitError,
    RequestTimeoutError,
)
from tombo.constants import (
    DEFAULT_PYPI_URL,
    DEFAULT_REQUEST_TIMEOUT_MS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY_MS,
    MAX_RETRY_AFTER_SECONDS,
    USER_AGENT_TEMPLATE,
)

logger = get_logger("http")


def join_url(base: str, *parts: str) -> str:
    """Join path segments onto ``base`` with exactly one slash at each boundary.

    Empty segments are skipped, so a trailing slash on ``base`` or a
    leading slash on a part never produces ``//`` or drops a separator.

    Example::

        >>> join_url("https://pypi.org/pypi/", "/requests/", "json")
        'https://pypi.org/pypi/requests/json'
    """
    url = base.strip().rstrip("/")
    for part in parts:
        segment = part.strip().strip("/")
        if segment:
            url = f"{url}/{segment}"
    return url


def normalize_index_url(url: str) -> str:
    """Normalise a user-supplied index URL.

    Trailing slashes are removed and ``http`` is upgraded to ``https``.
    Anything that is not an absolute http(s) URL falls back to public PyPI.

    Example::

        >>> normalize_index_url("http://mirror.local/pypi/")
        'https://mirror.local/pypi'
        >>> normalize_index_url("not a url")
        'https://pypi.org/pypi'
    """
    candidate = url.strip().rstrip("/")
    if not is_valid_index_url(candidate):
        return DEFAULT_PYPI_URL
    if urlparse(candidate).scheme == "http":
        candidate = "https" + candidate[len("http"):]
    return candidate


def is_valid_index_url(url: str) -> bool:
    parsed = urlparse(url.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc) and " " not in url.strip()


def _parse_retry_after(headers: Mapping[str, str]) -> Optional[float]:
    """Read ``Retry-After`` as seconds; accepts delta-seconds or an HTTP date."""
    value = headers.get("Retry-After")
    if not isinstance(value, str) or not value.strip():
        return None

    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def _response_text(response: httpx.Response) -> Optional[str]:
    try:
        text = response.text
    except Exception:  # noqa: BLE001 - undecodable bodies are only diagnostics
        return None
    return text if isinstance(text, str) else None


class HTTPClient:
    """Asynchronous JSON client with retries and typed failures.

    Args:
        base_url: Root of the JSON API, e.g. ``https://pypi.org/pypi``.
        timeout: Per-request timeout in seconds.
        retry_attempts: Total attempts per request, first try included.
        retry_delay: Base backoff in seconds; retry *n* waits
            ``retry_delay * 2 ** (n - 1)``.
        user_agent: Custom User-Agent header value.
        verify_ssl: Whether to verify SSL certificates.
        max_retry_after: Cap in seconds on a server-provided ``Retry-After``.

    Example:
        >>> async with HTTPClient() as client:
        ...     data = await client.get("requests/json")
    """

    def __init__(
        self,
        base_url: str = DEFAULT_PYPI_URL,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_MS / 1000,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY_MS / 1000,
        user_agent: Optional[str] = None,
        verify_ssl: bool = True,
        max_retry_after: float = MAX_RETRY_AFTER_SECONDS,
    ) -> None:
        self.base_url = normalize_index_url(base_url)
        self.timeout = timeout
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay
        self.user_agent = user_agent or USER_AGENT_TEMPLATE.format(version=__version__)
        self.verify_ssl = verify_ssl
        self.max_retry_after = max_retry_after

        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "HTTPClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Create the underlying httpx client on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                http2=True,
                verify=self.verify_ssl,
                follow_redirects=True,
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the connection pool. Safe to call more than once."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def update_base_url(self, base_url: str) -> None:
        self.base_url = normalize_index_url(base_url)
        logger.debug("Base URL set to %s", self.base_url)

    def configure(
        self,
        *,
        timeout: Optional[float] = None,
        retry_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ) -> None:
        """Change request settings; they apply to the next request."""
        if timeout is not None:
            self.timeout = timeout
        if retry_attempts is not None:
            self.retry_attempts = max(1, retry_attempts)
        if retry_delay is not None:
            self.retry_delay = retry_delay

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def get(
        self,
        path: str,
        *,
        timeout: Optional[float] = None,
        retry_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """GET ``path`` relative to the base URL and return the JSON object.

        Raises:
            PackageNotFoundError: 404, without retrying.
            RateLimitError: 429 with no ``Retry-After``, or attempts exhausted.
            RequestTimeoutError: Final attempt timed out.
            NetworkError: Transport failure or unexpected status after retries.
            InvalidResponseError: 2xx body is not a JSON object.
        """
        url = join_url(self.base_url, path)
        response = await self._request_with_retry(
            "GET",
            url,
            timeout=timeout,
            retry_attempts=retry_attempts,
            retry_delay=retry_delay,
            headers=headers,
        )
        return self._decode_json(response, url)

    async def ping(self, *, timeout: Optional[float] = None) -> bool:
        """Single request against the base URL, no retries.

        Any answer below 500 means the index is reachable.
        """
        client = await self._ensure_client()
        try:
            response = await client.request(
                "GET",
                self.base_url,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug("Connectivity check to %s failed: %s", self.base_url, exc)
            return False
        return response.status_code < 500

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        *,
        timeout: Optional[float] = None,
        retry_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Send a request, retrying retryable failures with backoff."""
        attempts = max(1, retry_attempts if retry_attempts is not None else self.retry_attempts)
        base_delay = retry_delay if retry_delay is not None else self.retry_delay
        effective_timeout = timeout if timeout is not None else self.timeout

        for attempt in range(1, attempts + 1):
            try:
                return await self._send(method, url, timeout=effective_timeout, headers=headers)
            except PyPIError as exc:
                if not exc.retryable or attempt >= attempts:
                    raise
                delay = self._backoff(attempt, exc, base_delay)
                logger.warning(
                    "%s (attempt %d/%d), retrying in %.2fs: %s",
                    exc.code,
                    attempt,
                    attempts,
                    delay,
                    url,
                )
                await asyncio.sleep(delay)

        raise AssertionError("unreachable")  # pragma: no cover

    async def _send(
        self,
        method: str,
        url: str,
        *,
        timeout: float,
        headers: Optional[Dict[str, str]],
    ) -> httpx.Response:
        """One attempt: transport errors and bad statuses become PyPIErrors."""
        client = await self._ensure_client()

        try:
            response = await client.request(method, url, timeout=timeout, headers=headers)
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(
                f"Request timed out after {timeout:g}s",
                url=url,
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Network error: {exc}", url=url) from exc
        # Redirect loops, undecodable bodies and malformed URLs
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise NetworkError(f"Request failed: {exc}", url=url) from exc

        self._raise_for_status(response, url)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, url: str) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return

        if status == 404:
            raise PackageNotFoundError("Package not found", url=url, status_code=404)

        if status == 429:
            raise RateLimitError(
                "Rate limited by package index",
                url=url,
                status_code=429,
                retry_after=_parse_retry_after(response.headers),
            )

        if status >= 500:
            message = f"Server error ({status})"
        else:
            message = f"HTTP {status} error"
        raise NetworkError(
            message,
            url=url,
            status_code=status,
            response_body=_response_text(response),
        )

    def _backoff(self, attempt: int, error: PyPIError, base_delay: float) -> float:
        if isinstance(error, RateLimitError) and error.retry_after is not None:
            return min(error.retry_after, self.max_retry_after)
        return base_delay * (2 ** (attempt - 1))

    @staticmethod
    def _decode_json(response: httpx.Response, url: str) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise InvalidResponseError(
                "Invalid JSON response",
                url=url,
                status_code=response.status_code,
                response_body=_response_text(response),
            ) from exc

        if not isinstance(data, dict):
            raise InvalidResponseError(
                "Expected a JSON object",
                url=url,
                status_code=response.status_code,
            )

        return cast(Dict[str, Any], data)
