"""Base adapter protocols for cache and record storage backends."""

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from offsync.types import CacheEntry

Record = dict[str, Any]


@runtime_checkable
class AsyncCacheStorage(Protocol):
    """Async storage for named collections of cached responses."""

    async def keys(self) -> list[str]:
        """List the names of all existing collections."""
        ...

    async def has(self, name: str) -> bool:
        """Check whether a collection exists."""
        ...

    async def create(self, name: str) -> None:
        """Create an empty collection if it does not exist."""
        ...

    async def delete(self, name: str) -> bool:
        """Delete a whole collection. Returns False if it did not exist."""
        ...

    async def match(self, name: str, key: str) -> CacheEntry | None:
        """Get an entry by request key."""
        ...

    async def put(self, name: str, entry: CacheEntry) -> None:
        """Store or overwrite a single entry."""
        ...

    async def put_all(self, name: str, entries: Sequence[CacheEntry]) -> None:
        """Store several entries in one write."""
        ...

    async def entry_keys(self, name: str) -> list[str]:
        """List the request keys stored in a collection."""
        ...

    async def disconnect(self) -> None:
        """Disconnect from the storage backend."""
        ...


@runtime_checkable
class AsyncRecordStore(Protocol):
    """Async durable record storage with secondary indexes."""

    async def get_version(self, db: str) -> int:
        """Get the schema version of a database (0 if it does not exist)."""
        ...

    async def set_version(self, db: str, version: int) -> None:
        """Record the schema version of a database."""
        ...

    async def create_collection(
        self,
        db: str,
        name: str,
        *,
        key_field: str,
        indexes: Sequence[str] = (),
    ) -> None:
        """Create a collection and its indexes. Idempotent."""
        ...

    async def collection_names(self, db: str) -> list[str]:
        """List collection names of a database."""
        ...

    async def get_all(self, db: str, collection: str) -> list[Record]:
        """Get every record of a collection."""
        ...

    async def get(self, db: str, collection: str, key: str) -> Record | None:
        """Get a record by primary key."""
        ...

    async def put(self, db: str, collection: str, record: Record) -> None:
        """Insert or replace a record, updating its index entries."""
        ...

    async def delete(self, db: str, collection: str, key: str) -> None:
        """Delete a record by primary key."""
        ...

    async def query_by_index(
        self, db: str, collection: str, index: str, value: Any
    ) -> list[Record]:
        """Get records whose indexed field equals value."""
        ...

    async def disconnect(self) -> None:
        """Disconnect from the storage backend."""
        ...
