"""
ResilientClient - Async HTTP client for the upstream content API.

Every logical request gets:
- Auth and version headers, with intermediate HTTP caching disabled
- One timeout covering the whole retry sequence
- Up to ``max_retries`` attempts with exponential backoff whose base
  depends on the failure class (connection vs. application)
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx
from loguru import logger

from contentcache.services.errors import (
    ConfigurationError,
    RequestTimeoutError,
    RetryExhaustedError,
    UpstreamPayloadError,
    UpstreamStatusError,
)
from contentcache.settings import Settings

SleepFunction = Callable[[float], Awaitable[Any]]

CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    httpx.NetworkError,
    httpx.TimeoutException,
    httpx.RemoteProtocolError,
    ConnectionError,
    TimeoutError,
)


def is_connection_error(error: BaseException) -> bool:
    """Check if a failure comes from the transport rather than the remote application."""
    if isinstance(error, CONNECTION_ERRORS):
        return True
    # Socket errors surfaced through other wrappers keep the original as cause
    cause = error.__cause__ or error.__context__
    return cause is not None and isinstance(cause, CONNECTION_ERRORS)


@dataclass
class RetryState:
    """Attempt bookkeeping for one logical request."""

    max_attempts: int
    attempt: int = 0
    last_error: BaseException | None = None

    @property
    def is_last_attempt(self) -> bool:
        return self.attempt >= self.max_attempts

    def next_attempt(self) -> int:
        self.attempt += 1
        return self.attempt


class ResilientClient:
    """
    Upstream API client with retry, backoff, and whole-call timeout.

    Usage:
        client = ResilientClient(
            base_url="https://api.notion.com/v1",
            api_key="secret",
            api_version="2022-06-28",
        )

        pages = await client.post(f"/databases/{db_id}/query", json_data={...})
        page = await client.get(f"/pages/{page_id}")
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        api_version: str = "2022-06-28",
        service_id: str = "notion",
        max_retries: int = 3,
        timeout: float = 60.0,
        connection_backoff_base: float = 3.0,
        application_backoff_base: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunction = asyncio.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.service_id = service_id
        self.max_retries = max_retries
        self.timeout = timeout
        self.connection_backoff_base = connection_backoff_base
        self.application_backoff_base = application_backoff_base

        self._api_key = api_key
        self._api_version = api_version
        self._transport = transport
        self._sleep = sleep

        # HTTP client (lazy initialization)
        self._http_client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ResilientClient":
        """Create a client configured from application settings."""
        return cls(
            base_url=settings.notion_api_base,
            api_key=settings.notion_api_key,
            api_version=settings.notion_version,
            max_retries=settings.max_retries,
            timeout=settings.request_timeout,
            connection_backoff_base=settings.connection_backoff_base,
            application_backoff_base=settings.application_backoff_base,
            transport=transport,
        )

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._http_client

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Notion-Version": self._api_version,
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
        }
        if extra:
            headers.update(extra)
        return headers

    async def get(self, path: str, **kwargs: Any) -> Any:
        """GET ``path`` relative to the API base."""
        return await self.request("GET", path, **kwargs)

    async def post(
        self, path: str, json_data: dict[str, Any] | None = None, **kwargs: Any
    ) -> Any:
        """POST ``json_data`` to ``path`` relative to the API base."""
        return await self.request("POST", path, json_data=json_data, **kwargs)

    async def request(
        self,
        method: str,
        path: str,
        json_data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ) -> Any:
        """
        Make one logical request with retries.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: Path relative to the API base
            json_data: JSON body for POST/PATCH requests
            params: Query parameters
            headers: Additional headers
            timeout: Override the whole-call timeout
            max_retries: Override the attempt count

        Returns:
            Parsed JSON body

        Raises:
            ConfigurationError: If no API key is configured
            RequestTimeoutError: If the whole sequence exceeds the timeout
            RetryExhaustedError: If every attempt failed
        """
        if not self._api_key:
            raise ConfigurationError(
                "NOTION_API_KEY is not set", service_id=self.service_id
            )

        call_timeout = timeout or self.timeout
        state = RetryState(max_attempts=max_retries or self.max_retries)
        url = f"{self.base_url}{path}"

        try:
            return await asyncio.wait_for(
                self._request_with_retries(
                    state,
                    method=method,
                    url=url,
                    json_data=json_data,
                    params=params,
                    headers=self._headers(headers),
                ),
                timeout=call_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(
                f"{self.service_id} request {method} {path} timed out after "
                f"{call_timeout}s (attempt {state.attempt}/{state.max_attempts})"
            )
            raise RequestTimeoutError(self.service_id, call_timeout) from e

    async def _request_with_retries(
        self,
        state: RetryState,
        method: str,
        url: str,
        json_data: dict[str, Any] | None,
        params: dict[str, Any] | None,
        headers: dict[str, str],
    ) -> Any:
        """Attempt loop. Runs inside the whole-call timeout."""
        while state.attempt < state.max_attempts:
            attempt = state.next_attempt()
            logger.info(
                f"{self.service_id} request attempt {attempt}/{state.max_attempts}: "
                f"{method} {url}"
            )

            try:
                data = await self._execute_request(
                    method=method,
                    url=url,
                    json_data=json_data,
                    params=params,
                    headers=headers,
                )
                if attempt > 1:
                    logger.info(
                        f"{self.service_id} request succeeded on attempt "
                        f"{attempt}/{state.max_attempts}"
                    )
                return data

            except Exception as e:
                state.last_error = e
                logger.warning(
                    f"{self.service_id} attempt {attempt}/{state.max_attempts} "
                    f"failed: {e}"
                )

                if state.is_last_attempt:
                    logger.error(
                        f"{self.service_id} request {method} {url} failed after "
                        f"{state.max_attempts} attempts"
                    )
                    raise RetryExhaustedError(
                        self.service_id, state.max_attempts, e
                    ) from e

                delay = self.backoff_delay(attempt, e)
                kind = "connection error" if is_connection_error(e) else "other error"
                logger.info(
                    f"Waiting {delay:.1f}s before retry {attempt + 1} ({kind})"
                )
                await self._sleep(delay)

        raise RetryExhaustedError(self.service_id, state.attempt, state.last_error)

    def backoff_delay(self, attempt: int, error: BaseException) -> float:
        """Delay after failed ``attempt``: ``base * 2 ** attempt``."""
        base = (
            self.connection_backoff_base
            if is_connection_error(error)
            else self.application_backoff_base
        )
        return base * (2**attempt)

    async def _execute_request(
        self,
        method: str,
        url: str,
        json_data: dict[str, Any] | None,
        params: dict[str, Any] | None,
        headers: dict[str, str],
    ) -> Any:
        """Execute the actual HTTP request."""
        client = await self._get_http_client()

        response = await client.request(
            method=method,
            url=url,
            params=params,
            headers=headers,
            json=json_data,
        )

        if response.is_error:
            raise UpstreamStatusError(
                self.service_id, response.status_code, response.text
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamPayloadError(
                f"Malformed JSON from {self.service_id}: {e}",
                service_id=self.service_id,
            ) from e

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("ResilientClient closed")

    async def __aenter__(self) -> "ResilientClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
