"""httpx-based fetcher and sync endpoint."""

from __future__ import annotations

import logging

import httpx

from offsync.duration import parse_duration
from offsync.errors import NetworkError, UpstreamRejection
from offsync.types import Duration, Note, Request, Response

_logger = logging.getLogger(__name__)


class HttpxFetcher:
    """Network fetcher backed by an httpx AsyncClient."""

    def __init__(
        self,
        *,
        base_url: str = "",
        timeout: Duration = "30s",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=parse_duration(timeout),
            follow_redirects=True,
        )

    async def __call__(self, request: Request) -> Response:
        try:
            response = await self._client.request(
                request.method, request.url, headers=dict(request.headers)
            )
        except httpx.RequestError as e:
            raise NetworkError(f"{request.method} {request.url} failed: {e}") from e
        return Response(
            status=response.status_code,
            body=response.content,
            headers=dict(response.headers),
            url=str(response.url),
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()


class HttpSyncEndpoint:
    """POSTs one note payload per call to the remote sync URL."""

    def __init__(
        self,
        url: str = "http://localhost:3000/api/notes",
        *,
        timeout: Duration = "30s",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=parse_duration(timeout),
        )

    async def submit(self, note: Note) -> None:
        try:
            response = await self._client.post(self._url, json=note.to_payload())
        except httpx.RequestError as e:
            raise NetworkError(f"Sync endpoint unreachable: {e}") from e
        if not response.is_success:
            _logger.warning(
                "Sync endpoint rejected note %s with HTTP %d",
                note.id,
                response.status_code,
            )
            raise UpstreamRejection(response.status_code)

    async def aclose(self) -> None:
        """Close the HTTP client if this endpoint created it."""
        if self._owns_client:
            await self._client.aclose()
