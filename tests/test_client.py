"""
Unit tests for ResilientClient.
"""

import asyncio
from unittest.mock import AsyncMock, call

import httpx
import pytest

from contentcache.services.client import (
    ResilientClient,
    RetryState,
    is_connection_error,
)
from contentcache.services.errors import (
    ConfigurationError,
    RequestTimeoutError,
    RetryExhaustedError,
    UpstreamPayloadError,
    UpstreamStatusError,
)


def make_client(handler, sleep=None, **kwargs) -> ResilientClient:
    return ResilientClient(
        base_url="https://api.example.test/v1",
        api_key="secret-token",
        api_version="2022-06-28",
        transport=httpx.MockTransport(handler),
        sleep=sleep or AsyncMock(),
        **kwargs,
    )


class TestConnectionClassification:
    """Two-tier error classification."""

    def test_transport_errors_are_connection_class(self):
        request = httpx.Request("GET", "https://x.test")

        assert is_connection_error(httpx.ConnectError("reset", request=request))
        assert is_connection_error(httpx.ReadTimeout("slow", request=request))
        assert is_connection_error(httpx.RemoteProtocolError("closed", request=request))
        assert is_connection_error(ConnectionResetError())
        assert is_connection_error(ConnectionRefusedError())

    def test_application_errors_are_not_connection_class(self):
        assert not is_connection_error(UpstreamStatusError("notion", 500, "oops"))
        assert not is_connection_error(UpstreamPayloadError("bad json"))
        assert not is_connection_error(ValueError("x"))

    def test_wrapped_socket_error_is_connection_class(self):
        try:
            try:
                raise ConnectionResetError("peer reset")
            except ConnectionResetError as e:
                raise RuntimeError("fetch failed") from e
        except RuntimeError as wrapped:
            assert is_connection_error(wrapped)


class TestRetryState:
    def test_attempts_are_bounded(self):
        state = RetryState(max_attempts=2)

        assert state.next_attempt() == 1
        assert not state.is_last_attempt
        assert state.next_attempt() == 2
        assert state.is_last_attempt


class TestResilientClient:
    """Retry, backoff and timeout behavior."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self):
        sleep = AsyncMock()
        client = make_client(lambda r: httpx.Response(200, json={"ok": True}), sleep)

        result = await client.get("/pages/abc")

        assert result == {"ok": True}
        sleep.assert_not_awaited()
        await client.close()

    @pytest.mark.asyncio
    async def test_sends_auth_version_and_no_cache_headers(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"results": []})

        client = make_client(handler)
        await client.post("/databases/db1/query", json_data={"sorts": []})

        request = seen[0]
        assert request.method == "POST"
        assert request.url == "https://api.example.test/v1/databases/db1/query"
        assert request.headers["Authorization"] == "Bearer secret-token"
        assert request.headers["Notion-Version"] == "2022-06-28"
        assert request.headers["Cache-Control"] == "no-cache"
        assert request.headers["Pragma"] == "no-cache"
        await client.close()

    @pytest.mark.asyncio
    async def test_connection_errors_then_success_uses_connection_backoff(self):
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise httpx.ConnectError("Connection reset by peer", request=request)
            return httpx.Response(200, json={"id": "page-1"})

        sleep = AsyncMock()
        client = make_client(handler, sleep, max_retries=3)

        result = await client.get("/pages/page-1")

        assert result == {"id": "page-1"}
        assert attempts == 3
        assert sleep.await_args_list == [call(6.0), call(12.0)]
        await client.close()

    @pytest.mark.asyncio
    async def test_always_failing_stops_after_max_retries(self):
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            return httpx.Response(500, text="internal error")

        sleep = AsyncMock()
        client = make_client(handler, sleep, max_retries=3)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await client.get("/pages/x")

        assert attempts == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, UpstreamStatusError)
        assert exc_info.value.last_error.status_code == 500
        assert "internal error" in exc_info.value.last_error.body
        # Application errors use the short base
        assert sleep.await_args_list == [call(2.0), call(4.0)]
        await client.close()

    @pytest.mark.asyncio
    async def test_malformed_payload_is_application_error(self):
        sleep = AsyncMock()
        client = make_client(
            lambda r: httpx.Response(200, content=b"<html>not json</html>"),
            sleep,
            max_retries=2,
        )

        with pytest.raises(RetryExhaustedError) as exc_info:
            await client.get("/pages/x")

        assert isinstance(exc_info.value.last_error, UpstreamPayloadError)
        assert sleep.await_args_list == [call(2.0)]
        await client.close()

    @pytest.mark.asyncio
    async def test_per_call_retry_override(self):
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            return httpx.Response(503)

        client = make_client(handler, max_retries=3)

        with pytest.raises(RetryExhaustedError):
            await client.get("/pages/x", max_retries=1)

        assert attempts == 1
        await client.close()

    @pytest.mark.asyncio
    async def test_missing_api_key_fails_without_request(self):
        handler = AsyncMock()
        client = ResilientClient(
            base_url="https://api.example.test/v1",
            api_key="",
            transport=httpx.MockTransport(handler),
        )

        with pytest.raises(ConfigurationError):
            await client.get("/pages/x")

        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_timeout_covers_whole_retry_sequence(self):
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            raise httpx.ConnectError("refused", request=request)

        # Real sleeps: the first backoff (6s) outlasts the call timeout
        client = make_client(handler, sleep=asyncio.sleep, timeout=0.1)

        with pytest.raises(RequestTimeoutError):
            await client.get("/pages/x")

        assert attempts == 1
        await client.close()

    @pytest.mark.asyncio
    async def test_timeout_aborts_in_flight_attempt(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json={})

        client = make_client(handler, timeout=0.05)

        with pytest.raises(RequestTimeoutError) as exc_info:
            await client.get("/pages/slow")

        assert exc_info.value.timeout == 0.05
        await client.close()

    def test_backoff_delay_doubles_per_attempt(self):
        client = make_client(lambda r: httpx.Response(200, json={}))
        request = httpx.Request("GET", "https://x.test")
        conn = httpx.ConnectError("reset", request=request)
        app = UpstreamStatusError("notion", 400)

        assert [client.backoff_delay(n, conn) for n in (1, 2, 3)] == [6.0, 12.0, 24.0]
        assert [client.backoff_delay(n, app) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]
