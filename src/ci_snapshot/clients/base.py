"""Base async HTTP transport with retries, backoff and trace propagation.

All API clients inherit from this base to ensure consistent behavior:
- Async/await for non-blocking I/O
- Connection pooling shared by every concurrent fetch
- Bounded retries with exponential backoff plus jitter on network failures
- Strict accepted-status contract (200 unless the caller widens it)
- Trace context injected into every outgoing request

Usage:
    class MyAPIClient(BaseAsyncClient):
        async def get_data(self, token: str, path: str) -> bytes:
            return await self.get(path, headers={"Authorization": f"Bearer {token}"})

    async with MyAPIClient(base_url="https://ci.example.com") as client:
        body = await client.get_data(token, "/api/pipelines")
"""

import asyncio
import logging
import random
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import Any

import httpx
from httpx_sse import ServerSentEvent, aconnect_sse
from opentelemetry import propagate

from ci_snapshot.errors import TransportError


logger = logging.getLogger(__name__)

# Retry configuration
_DEFAULT_ALLOWED_STATUS_CODES = frozenset({200})
_MAX_ATTEMPTS = 3
_BASE_BACKOFF = 1.0  # seconds
_TIMEOUT = 10.0  # seconds, per attempt


class BaseAsyncClient:
    """Base async HTTP client with retry, backoff and connection pooling.

    Only network-level failures (connection errors, DNS failures, timeouts)
    are retried. A response with a status outside the accepted set is
    terminal for the call.

    Args:
        base_url: Base URL for all API requests
        headers: Default headers for all requests
        timeout: Timeout in seconds applied to every attempt (default: 10)
        max_attempts: Total attempts per call including the first (default: 3)
        backoff_base: Base delay in seconds for exponential backoff (default: 1)
        max_connections: Connection pool size (default: 10)
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = _TIMEOUT,
        max_attempts: int = _MAX_ATTEMPTS,
        backoff_base: float = _BASE_BACKOFF,
        max_connections: int = 10,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = headers or {}
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self.max_connections = max_connections
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "BaseAsyncClient":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            limits=httpx.Limits(
                max_keepalive_connections=self.max_connections,
                max_connections=self.max_connections,
            ),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _backoff(self, attempt: int) -> float:
        """Delay before the retry following ``attempt`` (0-based)."""
        return self.backoff_base * (2 ** attempt) + random.uniform(0, self.backoff_base)

    def _prepare(
        self,
        endpoint: str,
        headers: dict[str, str] | None,
    ) -> tuple[str, dict[str, str]]:
        if not self._client:
            raise RuntimeError("Client not initialized. Use async with context manager.")

        # Ensure endpoint starts with /
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"

        request_headers = dict(headers or {})
        # Propagate the active span (no-op when tracing is disabled)
        propagate.inject(request_headers)
        return endpoint, request_headers

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | list[tuple[str, Any]] | None = None,
        allowed_status_codes: Iterable[int] | None = None,
    ) -> bytes:
        """Make an HTTP request with retries and return the raw body.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path (relative to base_url)
            content: Request body
            headers: Per-request headers
            params: Query parameters
            allowed_status_codes: Accepted statuses (default: 200 only)

        Returns:
            Response body bytes

        Raises:
            TransportError: On a rejected status, or a network failure that
                persisted through every attempt
        """
        endpoint, request_headers = self._prepare(endpoint, headers)
        allowed = frozenset(allowed_status_codes or _DEFAULT_ALLOWED_STATUS_CODES)
        url = f"{self.base_url}{endpoint}"

        last_error: TransportError | None = None

        for attempt in range(self.max_attempts):
            logger.debug(
                "%s %s params=%s (attempt %d/%d)",
                method, url, params, attempt + 1, self.max_attempts,
            )

            try:
                # Deadline for the whole attempt, body included
                async with asyncio.timeout(self.timeout):
                    response = await self._client.request(
                        method=method,
                        url=endpoint,
                        params=params,
                        content=content,
                        headers=request_headers,
                    )
            except httpx.TimeoutException as e:
                last_error = TransportError(f"Request timeout for {url}: {e}", url=url)
                reason = "Timeout"
            except TimeoutError:
                last_error = TransportError(
                    f"Request timeout for {url}: no complete response within {self.timeout}s",
                    url=url,
                )
                reason = "Timeout"
            except httpx.TransportError as e:
                last_error = TransportError(f"Network error for {url}: {e}", url=url)
                reason = "Network error"
            except httpx.HTTPError as e:
                logger.error("Request to %s failed: %s", endpoint, e)
                raise TransportError(f"Request to {url} failed: {e}", url=url) from e
            else:
                logger.debug("Response: %d for %s", response.status_code, endpoint)

                if response.status_code not in allowed:
                    logger.error(
                        "API error: %d %s - %s",
                        response.status_code, endpoint, response.text[:500],
                    )
                    raise TransportError(
                        f"{url} responded with status code {response.status_code}",
                        url=url,
                        status_code=response.status_code,
                    )

                return response.content

            if attempt + 1 < self.max_attempts:
                backoff = self._backoff(attempt)
                logger.warning(
                    "%s for %s, retrying in %.1fs (attempt %d/%d)",
                    reason, endpoint, backoff, attempt + 1, self.max_attempts,
                )
                await asyncio.sleep(backoff)

        # Exhausted retries
        logger.error("Giving up on %s after %d attempts", endpoint, self.max_attempts)
        raise last_error or TransportError(f"Request to {url} failed after retries", url=url)

    @asynccontextmanager
    async def _stream_events(
        self,
        endpoint: str,
        headers: dict[str, str] | None = None,
    ) -> AsyncIterator[AsyncIterator[ServerSentEvent]]:
        """Open a server-sent-event stream and yield its event iterator.

        The stream is not retried; a failed connect, a dropped connection or
        a non-200 status raises TransportError. Reads have no httpx timeout,
        so the caller's idle window is the only bound on a quiet stream.
        """
        endpoint, request_headers = self._prepare(endpoint, headers)
        url = f"{self.base_url}{endpoint}"
        request_headers.setdefault("Accept", "text/event-stream")

        try:
            async with aconnect_sse(
                self._client,
                "GET",
                endpoint,
                headers=request_headers,
                timeout=httpx.Timeout(self.timeout, read=None),
            ) as event_source:
                status_code = event_source.response.status_code
                if status_code != 200:
                    raise TransportError(
                        f"{url} responded with status code {status_code}",
                        url=url,
                        status_code=status_code,
                    )
                yield event_source.aiter_sse()
        except httpx.TimeoutException as e:
            raise TransportError(f"Stream timeout for {url}: {e}", url=url) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Network error for {url}: {e}", url=url) from e

    async def get(
        self,
        endpoint: str,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | list[tuple[str, Any]] | None = None,
        allowed_status_codes: Iterable[int] | None = None,
    ) -> bytes:
        """Convenience method for GET requests."""
        return await self._request(
            "GET", endpoint,
            headers=headers,
            params=params,
            allowed_status_codes=allowed_status_codes,
        )

    async def post(
        self,
        endpoint: str,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        allowed_status_codes: Iterable[int] | None = None,
    ) -> bytes:
        """Convenience method for POST requests."""
        return await self._request(
            "POST", endpoint,
            content=content,
            headers=headers,
            allowed_status_codes=allowed_status_codes,
        )
