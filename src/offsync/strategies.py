"""Caching strategies: cache-first, network-first and stale-while-revalidate.

Every strategy always produces a response. Fetch failures with nothing
cached to fall back on yield the offline placeholder page.
"""

from __future__ import annotations

import asyncio
import logging

from offsync.errors import NetworkError, StorageError
from offsync.resource_cache import ResourceCache
from offsync.state import RuntimeState
from offsync.transport import Fetcher
from offsync.types import CacheGeneration, Request, Response

_logger = logging.getLogger(__name__)

OFFLINE_PAGE = b"""<!DOCTYPE html>
<html>
<head>
    <title>Offline</title>
    <style>
        body { font-family: Arial; text-align: center; padding: 50px; }
        h1 { color: #666; }
    </style>
</head>
<body>
    <h1>You're Offline</h1>
    <p>This app works offline! Your notes are safely stored locally.</p>
    <p>Reconnect to sync your changes.</p>
</body>
</html>
"""


def offline_response() -> Response:
    """The synthesized placeholder served when neither cache nor network can."""
    return Response(
        status=200,
        body=OFFLINE_PAGE,
        headers={"Content-Type": "text/html; charset=UTF-8"},
    )


class Strategies:
    """Caching strategies bound to a resource cache and a network fetcher.

    Collection names are resolved from the current generation when a request
    starts, so a request in flight during activation finishes against the
    generation it started with.
    """

    def __init__(
        self,
        cache: ResourceCache,
        fetch: Fetcher,
        state: RuntimeState,
    ) -> None:
        self._cache = cache
        self._fetch = fetch
        self._state = state
        self._background_tasks: set[asyncio.Task[None]] = set()

    def _generation(self) -> CacheGeneration:
        generation = self._state.generation
        if generation is None:
            raise RuntimeError("No active cache generation; run the lifecycle first")
        return generation

    def _is_current(self, name: str) -> bool:
        generation = self._state.generation
        return generation is not None and name in generation.names

    async def _lookup(self, request: Request, names: tuple[str, ...]) -> Response | None:
        """Cache lookup where a failing backend counts as a miss."""
        try:
            return await self._cache.match(request, names)
        except StorageError as e:
            _logger.warning("Cache lookup failed for %s: %s", request.url, e)
            return None

    async def _store(self, name: str, request: Request, response: Response) -> None:
        """Best-effort write of a successful response.

        Writes into a collection that is no longer part of the current
        generation are dropped, so a request that outlives activation never
        brings a superseded collection back.
        """
        if not self._is_current(name):
            _logger.debug("Dropping late write of %s into %s", request.url, name)
            return
        try:
            collection = await self._cache.open(name)
            await collection.put(request, response)
            if not self._is_current(name):
                # Activation ran during the write
                await self._cache.delete(name)
        except StorageError as e:
            _logger.warning("Could not cache %s in %s: %s", request.url, name, e)

    async def cache_first(self, request: Request) -> Response:
        """Serve from cache; on a miss fetch and cache successful responses."""
        generation = self._generation()
        cached = await self._lookup(request, (generation.runtime, generation.shell))
        if cached is not None:
            return cached

        try:
            response = await self._fetch(request)
        except NetworkError as e:
            _logger.warning("Cache first fetch failed for %s: %s", request.url, e)
            return offline_response()

        if response.ok:
            await self._store(generation.runtime, request, response)
        return response

    async def network_first(self, request: Request) -> Response:
        """Prefer the network; fall back to cache, then to the offline page."""
        generation = self._generation()
        try:
            response = await self._fetch(request)
        except NetworkError as e:
            _logger.warning("Network request failed for %s: %s", request.url, e)
        else:
            if response.ok:
                await self._store(generation.api, request, response)
                return response
            _logger.info(
                "HTTP %d for %s, trying cache", response.status, request.url
            )

        cached = await self._lookup(request, (generation.api, generation.shell))
        return cached if cached is not None else offline_response()

    async def stale_while_revalidate(self, request: Request) -> Response:
        """Serve the cached copy now and refresh it in the background."""
        generation = self._generation()
        cached = await self._lookup(request, (generation.runtime,))

        if cached is not None:
            self._revalidate_in_background(generation.runtime, request)
            return cached

        try:
            response = await self._fetch(request)
        except NetworkError as e:
            _logger.warning("Fetch failed with nothing cached for %s: %s", request.url, e)
            return offline_response()
        if response.ok:
            await self._store(generation.runtime, request, response)
        return response

    def _revalidate_in_background(self, name: str, request: Request) -> None:
        async def revalidate() -> None:
            try:
                response = await self._fetch(request)
                if response.ok:
                    await self._store(name, request, response)
            except Exception as e:
                _logger.warning("Background revalidation of %s failed: %s", request.url, e)

        task = asyncio.create_task(revalidate())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def join(self) -> None:
        """Wait for all background revalidations started so far."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks))
