"""Resource cache: named collections of cached responses."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass

from offsync.adapters.base import AsyncCacheStorage
from offsync.types import CacheEntry, Request, Response

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StorageEstimate:
    """Rough usage figures for the resource cache."""

    collections: int
    entries: int
    body_bytes: int


def _make_entry(request: Request, response: Response) -> CacheEntry:
    if not response.ok:
        raise ValueError(
            f"Refusing to cache {request.url}: HTTP {response.status} is not a success"
        )
    return CacheEntry(
        key=request.key,
        response=response,
        stored_at=int(time.time() * 1000),
    )


class CacheCollection:
    """One named collection, bound to a storage backend."""

    __slots__ = ("_storage", "name")

    def __init__(self, storage: AsyncCacheStorage, name: str) -> None:
        self._storage = storage
        self.name = name

    async def match(self, request: Request) -> Response | None:
        entry = await self._storage.match(self.name, request.key)
        return entry.response if entry is not None else None

    async def put(self, request: Request, response: Response) -> None:
        """Store a successful response. Non-2xx responses raise ValueError."""
        await self._storage.put(self.name, _make_entry(request, response))

    async def put_all(self, pairs: Iterable[tuple[Request, Response]]) -> None:
        """Store several successful responses in one backend write."""
        entries = [_make_entry(request, response) for request, response in pairs]
        await self._storage.put_all(self.name, entries)

    async def keys(self) -> list[str]:
        return await self._storage.entry_keys(self.name)


class ResourceCache:
    """Entry point to all cache collections of a storage backend."""

    def __init__(self, storage: AsyncCacheStorage) -> None:
        self._storage = storage

    async def open(self, name: str) -> CacheCollection:
        """Open a collection, creating it if needed."""
        await self._storage.create(name)
        return CacheCollection(self._storage, name)

    async def has(self, name: str) -> bool:
        return await self._storage.has(name)

    async def keys(self) -> list[str]:
        """Names of all existing collections."""
        return await self._storage.keys()

    async def delete(self, name: str) -> bool:
        deleted = await self._storage.delete(name)
        if deleted:
            _logger.debug("Deleted cache collection %s", name)
        return deleted

    async def match(self, request: Request, names: Iterable[str]) -> Response | None:
        """Return the first cached response found in the given collections."""
        key = request.key
        for name in names:
            entry = await self._storage.match(name, key)
            if entry is not None:
                _logger.debug("Cache hit for %s in %s", key, name)
                return entry.response
        _logger.debug("Cache miss for %s", key)
        return None

    async def estimate(self) -> StorageEstimate:
        """Count collections, entries and cached body bytes."""
        names = await self._storage.keys()
        entries = 0
        body_bytes = 0
        for name in names:
            for key in await self._storage.entry_keys(name):
                entry = await self._storage.match(name, key)
                if entry is not None:
                    entries += 1
                    body_bytes += len(entry.response.body)
        return StorageEstimate(
            collections=len(names), entries=entries, body_bytes=body_bytes
        )

    async def disconnect(self) -> None:
        await self._storage.disconnect()
