"""Interception router: classify requests and dispatch to a caching strategy."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum

from offsync.strategies import Strategies
from offsync.transport import Fetcher
from offsync.types import Request, Response

_logger = logging.getLogger(__name__)

STATIC_EXTENSIONS = (
    ".js",
    ".css",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".woff",
    ".woff2",
    ".ttf",
)


class RequestCategory(str, Enum):
    API = "api"
    DOCUMENT = "document"
    STATIC = "static"
    OTHER = "other"


Handler = Callable[[Request], Awaitable[Response]]


class Router:
    """Routes intercepted GET requests to cache-first, network-first or SWR.

    Non-GET requests are never routed; ``handle`` passes them straight to
    the network.
    """

    def __init__(
        self,
        strategies: Strategies,
        fetch: Fetcher,
        *,
        api_prefix: str = "/api/",
        static_extensions: Sequence[str] = STATIC_EXTENSIONS,
    ) -> None:
        self._strategies = strategies
        self._fetch = fetch
        self._api_prefix = api_prefix
        self._static_extensions = tuple(ext.lower() for ext in static_extensions)
        self._handlers: dict[RequestCategory, Handler] = {
            RequestCategory.API: strategies.network_first,
            RequestCategory.DOCUMENT: strategies.network_first,
            RequestCategory.STATIC: strategies.cache_first,
            RequestCategory.OTHER: strategies.stale_while_revalidate,
        }

    def classify(self, request: Request) -> RequestCategory | None:
        """Pick the category of a request; first match wins. None for non-GET."""
        if request.method != "GET":
            return None
        path = request.path
        if path.startswith(self._api_prefix):
            return RequestCategory.API
        if request.mode == "navigate" or "text/html" in request.headers.get("accept", ""):
            return RequestCategory.DOCUMENT
        if path.lower().endswith(self._static_extensions):
            return RequestCategory.STATIC
        return RequestCategory.OTHER

    def route(self, request: Request) -> Handler | None:
        category = self.classify(request)
        return self._handlers[category] if category is not None else None

    async def handle(self, request: Request) -> Response:
        """Answer a request through its strategy, or the plain network."""
        handler = self.route(request)
        if handler is None:
            _logger.debug("Bypassing cache for %s %s", request.method, request.url)
            return await self._fetch(request)
        return await handler(request)

    async def join(self) -> None:
        """Wait for pending background revalidations."""
        await self._strategies.join()
