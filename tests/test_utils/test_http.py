from __future__ import annotations

import json
import httpx
import pytest
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock, MagicMock, patch

from tombo.utils.http import HTTPClient, _parse_retry_after, join_url
from tombo.exceptions import (
    InvalidResponseError,
    NetworkError,
    PackageNotFoundError,
    RateLimitError,
    RequestTimeoutError,
)


def _response(
    status_code: int = 200,
    payload: Any = None,
    headers: Optional[Dict[str, str]] = None,
    json_error: bool = False,
) -> MagicMock:
    """Build a mocked ``httpx.Response``."""
    response = MagicMock(spec=httpx.Response)
    response.status_code = status_code
    response.headers = headers or {}
    if json_error:
        response.json.side_effect = json.JSONDecodeError("Expecting value", "", 0)
    else:
        response.json.return_value = payload if payload is not None else {}
    return response


@pytest.mark.unit
class TestJoinUrl:
    """Tests for the slash-normalising URL join helper."""

    @pytest.mark.parametrize(
        "base, parts, expected",
        [
            ("https://pypi.org/pypi", ("requests", "json"), "https://pypi.org/pypi/requests/json"),
            ("https://pypi.org/pypi/", ("requests", "json"), "https://pypi.org/pypi/requests/json"),
            ("https://pypi.org/pypi", ("/requests/", "/json"), "https://pypi.org/pypi/requests/json"),
            ("https://pypi.org/pypi///", ("//requests",), "https://pypi.org/pypi/requests"),
            ("https://mirror.local", ("", "pkg", ""), "https://mirror.local/pkg"),
        ],
    )
    def test_exactly_one_slash_at_each_boundary(self, base: str, parts: tuple, expected: str) -> None:
        assert join_url(base, *parts) == expected

    def test_no_parts_strips_trailing_slash(self) -> None:
        assert join_url("https://pypi.org/pypi/") == "https://pypi.org/pypi"

    def test_empty_base_gives_relative_path(self) -> None:
        assert join_url("", "django", "json") == "/django/json"


@pytest.mark.unit
class TestParseRetryAfter:
    """Tests for Retry-After header parsing."""

    def test_delta_seconds(self) -> None:
        assert _parse_retry_after({"Retry-After": "7"}) == 7.0

    def test_negative_is_clamped_to_zero(self) -> None:
        assert _parse_retry_after({"Retry-After": "-3"}) == 0.0

    def test_missing_header(self) -> None:
        assert _parse_retry_after({}) is None

    def test_garbage_value(self) -> None:
        assert _parse_retry_after({"Retry-After": "soon"}) is None

    def test_http_date_in_the_past(self) -> None:
        assert _parse_retry_after({"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}) == 0.0

    def test_non_string_value_is_ignored(self) -> None:
        """Mocked header containers may hand back arbitrary objects."""
        assert _parse_retry_after(MagicMock()) is None


@pytest.mark.unit
class TestHTTPClientInit:
    """Tests for HTTPClient construction and reconfiguration."""

    def test_default_values(self) -> None:
        client = HTTPClient()

        assert client.base_url == "https://pypi.org/pypi"
        assert client.timeout == 10.0
        assert client.retry_attempts == 3
        assert client.retry_delay == 1.0
        assert client.verify_ssl is True
        assert "tombo" in client.user_agent
        assert client._client is None

    def test_trailing_slash_removed_from_base_url(self) -> None:
        assert HTTPClient("https://mirror.local/pypi/").base_url == "https://mirror.local/pypi"

    def test_retry_attempts_never_below_one(self) -> None:
        assert HTTPClient(retry_attempts=0).retry_attempts == 1

    def test_update_base_url(self) -> None:
        client = HTTPClient()
        client.update_base_url("https://other.example/simple/")
        assert client.base_url == "https://other.example/simple"

    def test_configure_changes_only_given_values(self) -> None:
        client = HTTPClient(timeout=5, retry_attempts=2, retry_delay=0.5)
        client.configure(timeout=20)

        assert client.timeout == 20
        assert client.retry_attempts == 2
        assert client.retry_delay == 0.5


@pytest.mark.unit
class TestHTTPClientContextManager:
    """Tests for the async context manager protocol."""

    @pytest.mark.asyncio
    async def test_context_manager_creates_and_closes_client(self) -> None:
        client = HTTPClient()
        async with client:
            assert isinstance(client._client, httpx.AsyncClient)
        assert client._client is None

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        client = HTTPClient()
        await client._ensure_client()
        await client.close()
        await client.close()
        assert client._client is None


@pytest.mark.unit
class TestHTTPClientGet:
    """Tests for successful requests and response decoding."""

    @pytest.mark.asyncio
    async def test_returns_json_object(self) -> None:
        async with HTTPClient("https://pypi.org/pypi") as client:
            with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
                mock_request.return_value = _response(200, {"info": {"name": "requests"}})
                data = await client.get("requests/json")

        assert data == {"info": {"name": "requests"}}
        args = mock_request.call_args
        assert args[0][0] == "GET"
        assert args[0][1] == "https://pypi.org/pypi/requests/json"

    @pytest.mark.asyncio
    async def test_invalid_json_raises_invalid_response(self) -> None:
        async with HTTPClient(retry_delay=0) as client:
            with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
                mock_request.return_value = _response(200, json_error=True)
                with pytest.raises(InvalidResponseError):
                    await client.get("requests/json")

        assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_json_array_raises_invalid_response(self) -> None:
        async with HTTPClient() as client:
            with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
                mock_request.return_value = _response(200, ["not", "an", "object"])
                with pytest.raises(InvalidResponseError, match="JSON object"):
                    await client.get("requests/json")


@pytest.mark.unit
class TestHTTPClientErrors:
    """Tests for status classification and the retry policy."""

    @pytest.mark.asyncio
    async def test_404_is_not_retried(self) -> None:
        async with HTTPClient(retry_attempts=3, retry_delay=0) as client:
            with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
                mock_request.return_value = _response(404)
                with pytest.raises(PackageNotFoundError) as exc_info:
                    await client.get("nope/json")

        assert mock_request.call_count == 1
        assert exc_info.value.status_code == 404
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_connection_errors_retry_with_exponential_backoff(self) -> None:
        """Two failures then success: two waits, the second double the first."""
        async with HTTPClient(retry_attempts=3, retry_delay=0.5) as client:
            with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request, patch(
                "tombo.utils.http.asyncio.sleep", new_callable=AsyncMock
            ) as mock_sleep:
                mock_request.side_effect = [
                    httpx.ConnectError("refused"),
                    httpx.ConnectError("refused"),
                    _response(200, {"ok": True}),
                ]
                data = await client.get("requests/json")

        assert data == {"ok": True}
        assert mock_request.call_count == 3
        assert mock_sleep.await_count == 2
        first, second = (c.args[0] for c in mock_sleep.await_args_list)
        assert first == pytest.approx(0.5)
        assert second >= 2 * first

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_network_error(self) -> None:
        async with HTTPClient(retry_attempts=2, retry_delay=0) as client:
            with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request, patch(
                "tombo.utils.http.asyncio.sleep", new_callable=AsyncMock
            ):
                mock_request.return_value = _response(503)
                with pytest.raises(NetworkError, match="Server error \\(503\\)"):
                    await client.get("requests/json")

        assert mock_request.call_count == 2

    @pytest.mark.asyncio
    async def test_timeout_is_network_class(self) -> None:
        async with HTTPClient(retry_attempts=1) as client:
            with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
                mock_request.side_effect = httpx.ReadTimeout("slow")
                with pytest.raises(NetworkError) as exc_info:
                    await client.get("requests/json")

        assert isinstance(exc_info.value, RequestTimeoutError)
        assert exc_info.value.code == "TIMEOUT"

    @pytest.mark.asyncio
    async def test_rate_limit_without_retry_after_fails_fast(self) -> None:
        async with HTTPClient(retry_attempts=3) as client:
            with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
                mock_request.return_value = _response(429)
                with pytest.raises(RateLimitError):
                    await client.get("requests/json")

        assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_rate_limit_waits_for_capped_retry_after(self) -> None:
        async with HTTPClient(retry_attempts=2, max_retry_after=5) as client:
            with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request, patch(
                "tombo.utils.http.asyncio.sleep", new_callable=AsyncMock
            ) as mock_sleep:
                mock_request.side_effect = [
                    _response(429, headers={"Retry-After": "120"}),
                    _response(200, {"ok": True}),
                ]
                assert await client.get("requests/json") == {"ok": True}

        mock_sleep.assert_awaited_once_with(5)

    @pytest.mark.asyncio
    async def test_other_4xx_is_network_error(self) -> None:
        async with HTTPClient(retry_attempts=1) as client:
            with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
                mock_request.return_value = _response(403)
                with pytest.raises(NetworkError, match="HTTP 403"):
                    await client.get("requests/json")


@pytest.mark.unit
class TestHTTPClientPing:
    """Tests for the connectivity check."""

    @pytest.mark.asyncio
    async def test_reachable_below_500(self) -> None:
        async with HTTPClient() as client:
            with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
                mock_request.return_value = _response(404)
                assert await client.ping() is True

    @pytest.mark.asyncio
    async def test_server_error_is_unreachable(self) -> None:
        async with HTTPClient() as client:
            with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
                mock_request.return_value = _response(502)
                assert await client.ping() is False

    @pytest.mark.asyncio
    async def test_transport_error_is_unreachable_without_retry(self) -> None:
        async with HTTPClient(retry_attempts=3) as client:
            with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
                mock_request.side_effect = httpx.ConnectError("down")
                assert await client.ping() is False

        assert mock_request.call_count == 1


def _redirect_loop(request: httpx.Request) -> httpx.Response:
    return httpx.Response(302, headers={"Location": str(request.url)})


@pytest.mark.unit
class TestHTTPClientErrorMapping:
    """Every httpx failure surfaces as a PyPIError subclass."""

    @pytest.mark.asyncio
    async def test_redirect_loop_is_network_error(self) -> None:
        client = HTTPClient(retry_attempts=2, retry_delay=0)
        client._client = httpx.AsyncClient(
            transport=httpx.MockTransport(_redirect_loop),
            follow_redirects=True,
        )
        try:
            with pytest.raises(NetworkError, match="Request failed") as exc_info:
                await client.get("requests/json")
        finally:
            await client.close()

        assert isinstance(exc_info.value.__cause__, httpx.TooManyRedirects)
        assert exc_info.value.url == "https://pypi.org/pypi/requests/json"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            httpx.DecodingError("bad gzip"),
            httpx.InvalidURL("no host"),
            httpx.UnsupportedProtocol("gopher"),
        ],
        ids=["decoding", "invalid-url", "protocol"],
    )
    async def test_other_httpx_errors_are_network_errors(self, error: Exception) -> None:
        async with HTTPClient(retry_attempts=1) as client:
            with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
                mock_request.side_effect = error
                with pytest.raises(NetworkError):
                    await client.get("requests/json")

    @pytest.mark.asyncio
    async def test_ping_redirect_loop_is_unreachable(self) -> None:
        client = HTTPClient()
        client._client = httpx.AsyncClient(
            transport=httpx.MockTransport(_redirect_loop),
            follow_redirects=True,
        )
        try:
            assert await client.ping() is False
        finally:
            await client.close()


@pytest.mark.unit
class TestBaseUrlNormalization:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("http://mirror.example/pypi/", "https://mirror.example/pypi"),
            ("https://mirror.example/pypi", "https://mirror.example/pypi"),
            ("mirror.example/pypi", "https://pypi.org/pypi"),
        ],
    )
    def test_constructor_and_update(self, url: str, expected: str) -> None:
        assert HTTPClient(url).base_url == expected

        client = HTTPClient()
        client.update_base_url(url)
        assert client.base_url == expected
