"""CI API client for pipelines, builds, releases and their logs.

Typed wrappers over BaseAsyncClient for every upstream resource the snapshot
needs. Every call runs in its own trace span and, apart from the login call,
carries the bearer token obtained once per run.

Usage:
    from ci_snapshot.clients.ci_api import CIApiClient

    async with CIApiClient("https://ci.example.com") as client:
        token = await client.get_token(client_id, client_secret)
        pipeline = await client.get_pipeline(token, "github.com/acme/app")
        builds = await client.get_pipeline_builds(token, "github.com/acme/app")
"""

import asyncio
import json
import logging
from typing import Any, TypeVar

from httpx_sse import SSEError
from opentelemetry import trace
from pydantic import BaseModel, ValidationError

from ci_snapshot import paths
from ci_snapshot.clients.base import BaseAsyncClient
from ci_snapshot.errors import AuthError, DecodeError, TransportError
from ci_snapshot.models import (
    Build,
    BuildsListResponse,
    Pipeline,
    PipelinesListResponse,
    Release,
    ReleasesListResponse,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Single page read for build/release lists
_LIST_PAGE_NUMBER = 1
_LIST_PAGE_SIZE = 10
_SSE_IDLE_TIMEOUT = 5.0  # seconds


def _decode(body: bytes, model: type[ModelT], url: str) -> ModelT | None:
    """Decode a JSON body into ``model``; a JSON ``null`` body yields None."""
    try:
        payload = json.loads(body)
    except ValueError as e:
        logger.error("Failed unmarshalling response from %s: %s", url, e)
        raise DecodeError(f"Invalid JSON response from {url}: {e}", body=body) from e

    if payload is None:
        return None

    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.error("Unexpected response shape from %s: %s", url, e)
        raise DecodeError(
            f"Unexpected {model.__name__} response from {url}: {e}", body=body
        ) from e


def _decode_required(body: bytes, model: type[ModelT], url: str) -> ModelT:
    result = _decode(body, model, url)
    if result is None:
        raise DecodeError(f"Empty {model.__name__} response from {url}", body=body)
    return result


class CIApiClient(BaseAsyncClient):
    """Async client for the CI API.

    Args:
        base_url: CI API base URL (without the ``/api`` suffix)
        timeout: Per-attempt request timeout in seconds (default: 10)
        max_attempts: Attempts per request including the first (default: 3)
        backoff_base: Base delay for exponential backoff (default: 1)
        max_connections: Connection pool size (default: 10)
        sse_idle_timeout: Seconds without an event before a stream read
            completes (default: 5)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        max_connections: int = 10,
        sse_idle_timeout: float = _SSE_IDLE_TIMEOUT,
    ) -> None:
        super().__init__(
            base_url=base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            max_attempts=max_attempts,
            backoff_base=backoff_base,
            max_connections=max_connections,
        )
        self.sse_idle_timeout = sse_idle_timeout

    @staticmethod
    def _auth_headers(token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def get_token(self, client_id: str, client_secret: str) -> str:
        """Exchange client credentials for a bearer token.

        Args:
            client_id: Client id as configured in the CI API
            client_secret: Matching client secret

        Returns:
            Bearer token for all subsequent calls

        Raises:
            AuthError: On a non-200 response or a body without a token
        """
        with tracer.start_as_current_span("CIApiClient.get_token"):
            body = json.dumps({"clientID": client_id, "clientSecret": client_secret})
            try:
                response_body = await self.post(
                    paths.LOGIN_PATH,
                    content=body.encode("utf-8"),
                    headers={"Content-Type": "application/json"},
                )
            except TransportError as e:
                raise AuthError(f"Token exchange failed: {e}") from e

            try:
                payload = json.loads(response_body)
            except ValueError as e:
                logger.error("Failed unmarshalling get token response: %s", e)
                raise AuthError(f"Token response is not valid JSON: {e}") from e

            token = payload.get("token") if isinstance(payload, dict) else None
            if not isinstance(token, str) or not token:
                raise AuthError("Token response does not contain a token")
            return token

    async def get_pipelines(
        self,
        token: str,
        page_number: int = 1,
        page_size: int = 12,
        filters: dict[str, list[str]] | None = None,
    ) -> PipelinesListResponse:
        """List pipelines, optionally filtered.

        Args:
            token: Bearer token
            page_number: 1-based page to read
            page_size: Items per page
            filters: Filter name → values, each sent as a repeated query
                parameter (e.g. ``{"search": ["app"], "since": ["1w"]}``)
        """
        with tracer.start_as_current_span("CIApiClient.get_pipelines"):
            params: list[tuple[str, Any]] = [
                ("page[number]", page_number),
                ("page[size]", page_size),
            ]
            for name, values in (filters or {}).items():
                params.extend((name, value) for value in values)

            body = await self.get(
                paths.PIPELINES_PATH,
                headers=self._auth_headers(token),
                params=params,
            )
            return _decode_required(body, PipelinesListResponse, paths.PIPELINES_PATH)

    async def get_pipeline(self, token: str, pipeline_path: str) -> Pipeline | None:
        """Get one pipeline; None when the API answers with a null document."""
        with tracer.start_as_current_span("CIApiClient.get_pipeline"):
            path = paths.pipeline_path(pipeline_path)
            body = await self.get(path, headers=self._auth_headers(token))
            return _decode(body, Pipeline, path)

    async def get_pipeline_builds(self, token: str, pipeline_path: str) -> BuildsListResponse:
        """Get the first page of a pipeline's builds."""
        with tracer.start_as_current_span("CIApiClient.get_pipeline_builds"):
            path = paths.builds_path(pipeline_path)
            body = await self.get(
                path,
                headers=self._auth_headers(token),
                params={"page[number]": _LIST_PAGE_NUMBER, "page[size]": _LIST_PAGE_SIZE},
            )
            return _decode_required(body, BuildsListResponse, path)

    async def get_pipeline_build(self, token: str, build_path: str) -> Build:
        """Get one build by its resource path."""
        with tracer.start_as_current_span("CIApiClient.get_pipeline_build"):
            body = await self.get(build_path, headers=self._auth_headers(token))
            return _decode_required(body, Build, build_path)

    async def get_pipeline_releases(
        self, token: str, pipeline_path: str
    ) -> ReleasesListResponse:
        """Get the first page of a pipeline's releases."""
        with tracer.start_as_current_span("CIApiClient.get_pipeline_releases"):
            path = paths.releases_path(pipeline_path)
            body = await self.get(
                path,
                headers=self._auth_headers(token),
                params={"page[number]": _LIST_PAGE_NUMBER, "page[size]": _LIST_PAGE_SIZE},
            )
            return _decode_required(body, ReleasesListResponse, path)

    async def get_pipeline_release(self, token: str, release_path: str) -> Release:
        """Get one release by its resource path."""
        with tracer.start_as_current_span("CIApiClient.get_pipeline_release"):
            body = await self.get(release_path, headers=self._auth_headers(token))
            return _decode_required(body, Release, release_path)

    async def get_bytes(self, token: str, path: str) -> bytes:
        """Get a resource body unmodified (logs, warnings, stats)."""
        with tracer.start_as_current_span("CIApiClient.get_bytes"):
            return await self.get(path, headers=self._auth_headers(token))

    async def get_event_stream(self, token: str, path: str, max_events: int) -> bytes:
        """Capture up to ``max_events`` events of a server-sent-event stream.

        Each event is rendered as ``event:<type>\\ndata:<payload>\\n\\n``.
        An event sent without an ``event:`` field has the SSE default type
        and is rendered as ``event:message``, not with an empty type.
        Reading stops when ``max_events`` events were collected, when the
        server closes the stream, or when no event arrives within
        ``sse_idle_timeout`` seconds. All three are normal completions.

        Args:
            token: Bearer token
            path: Stream resource path
            max_events: Upper bound on captured events

        Returns:
            Captured events as bytes (possibly empty)
        """
        with tracer.start_as_current_span("CIApiClient.get_event_stream"):
            captured = bytearray()
            count = 0
            if max_events <= 0:
                return bytes(captured)

            async with self._stream_events(path, headers=self._auth_headers(token)) as events:
                while count < max_events:
                    try:
                        event = await asyncio.wait_for(
                            anext(events), timeout=self.sse_idle_timeout
                        )
                    except TimeoutError:
                        logger.debug(
                            "No event on %s within %.1fs, closing stream",
                            path, self.sse_idle_timeout,
                        )
                        break
                    except StopAsyncIteration:
                        break
                    except SSEError as e:
                        raise DecodeError(
                            f"{path} is not an event stream: {e}", body=bytes(captured)
                        ) from e

                    captured += f"event:{event.event}\n".encode("utf-8")
                    captured += b"data:" + event.data.encode("utf-8") + b"\n\n"
                    count += 1

            logger.debug("Captured %d events from %s", count, path)
            return bytes(captured)
