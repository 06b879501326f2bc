"""In-memory storage adapters (async only)."""

import asyncio
import copy
from collections import OrderedDict
from collections.abc import Container, Sequence
from dataclasses import dataclass, field
from typing import Any

from offsync.adapters.base import Record
from offsync.errors import StorageError
from offsync.types import CacheEntry


class AsyncMemoryCacheStorage:
    """Async in-memory cache storage with optional per-collection LRU eviction.

    ``max_items`` bounds every collection, or only those named in
    ``bounded`` when given.
    """

    def __init__(
        self,
        max_items: int | None = None,
        *,
        bounded: Container[str] | None = None,
    ) -> None:
        self._collections: dict[str, OrderedDict[str, CacheEntry]] = {}
        self._max_items = max_items
        self._bounded = bounded
        self._lock = asyncio.Lock()

    def _evict(self, name: str, entries: OrderedDict[str, CacheEntry]) -> None:
        if self._bounded is not None and name not in self._bounded:
            return
        while self._max_items and len(entries) > self._max_items:
            entries.popitem(last=False)

    async def keys(self) -> list[str]:
        async with self._lock:
            return list(self._collections)

    async def has(self, name: str) -> bool:
        async with self._lock:
            return name in self._collections

    async def create(self, name: str) -> None:
        async with self._lock:
            self._collections.setdefault(name, OrderedDict())

    async def delete(self, name: str) -> bool:
        async with self._lock:
            return self._collections.pop(name, None) is not None

    async def match(self, name: str, key: str) -> CacheEntry | None:
        async with self._lock:
            entries = self._collections.get(name)
            if entries is None:
                return None
            entry = entries.get(key)
            if entry:
                entries.move_to_end(key)  # LRU touch
            return entry

    async def put(self, name: str, entry: CacheEntry) -> None:
        async with self._lock:
            entries = self._collections.setdefault(name, OrderedDict())
            entries[entry.key] = entry
            entries.move_to_end(entry.key)
            self._evict(name, entries)

    async def put_all(self, name: str, entries: Sequence[CacheEntry]) -> None:
        # Single critical section, so the batch is visible all at once.
        async with self._lock:
            collection = self._collections.setdefault(name, OrderedDict())
            for entry in entries:
                collection[entry.key] = entry
                collection.move_to_end(entry.key)
            self._evict(name, collection)

    async def entry_keys(self, name: str) -> list[str]:
        async with self._lock:
            return list(self._collections.get(name, ()))

    async def disconnect(self) -> None:
        """Disconnect from the storage backend (no-op for memory)."""
        pass


@dataclass
class _Collection:
    key_field: str
    indexes: set[str] = field(default_factory=set)
    records: dict[str, Record] = field(default_factory=dict)


class AsyncMemoryRecordStore:
    """Async in-memory record store.

    Records are deep-copied on the way in and out, so callers never share
    a mutable reference with the store.
    """

    def __init__(self) -> None:
        self._versions: dict[str, int] = {}
        self._dbs: dict[str, dict[str, _Collection]] = {}
        self._lock = asyncio.Lock()

    def _collection(self, db: str, name: str) -> _Collection:
        try:
            return self._dbs[db][name]
        except KeyError:
            raise StorageError(f"No collection {name!r} in database {db!r}") from None

    async def get_version(self, db: str) -> int:
        async with self._lock:
            return self._versions.get(db, 0)

    async def set_version(self, db: str, version: int) -> None:
        async with self._lock:
            self._versions[db] = version

    async def create_collection(
        self,
        db: str,
        name: str,
        *,
        key_field: str,
        indexes: Sequence[str] = (),
    ) -> None:
        async with self._lock:
            collections = self._dbs.setdefault(db, {})
            collection = collections.setdefault(name, _Collection(key_field))
            if collection.key_field != key_field:
                raise StorageError(
                    f"Collection {name!r} already keyed by {collection.key_field!r}"
                )
            collection.indexes.update(indexes)

    async def collection_names(self, db: str) -> list[str]:
        async with self._lock:
            return list(self._dbs.get(db, {}))

    async def get_all(self, db: str, collection: str) -> list[Record]:
        async with self._lock:
            records = self._collection(db, collection).records
            return [copy.deepcopy(r) for r in records.values()]

    async def get(self, db: str, collection: str, key: str) -> Record | None:
        async with self._lock:
            record = self._collection(db, collection).records.get(key)
            return copy.deepcopy(record) if record is not None else None

    async def put(self, db: str, collection: str, record: Record) -> None:
        async with self._lock:
            target = self._collection(db, collection)
            try:
                key = record[target.key_field]
            except KeyError:
                raise StorageError(
                    f"Record is missing key field {target.key_field!r}"
                ) from None
            target.records[str(key)] = copy.deepcopy(record)

    async def delete(self, db: str, collection: str, key: str) -> None:
        async with self._lock:
            self._collection(db, collection).records.pop(key, None)

    async def query_by_index(
        self, db: str, collection: str, index: str, value: Any
    ) -> list[Record]:
        async with self._lock:
            target = self._collection(db, collection)
            if index not in target.indexes:
                raise StorageError(f"No index {index!r} on collection {collection!r}")
            return [
                copy.deepcopy(r)
                for r in target.records.values()
                if r.get(index) == value
            ]

    async def disconnect(self) -> None:
        """Disconnect from the storage backend (no-op for memory)."""
        pass
