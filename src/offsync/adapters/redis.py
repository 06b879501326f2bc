"""Redis storage adapters."""

from __future__ import annotations

import base64
import json
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from redis.exceptions import RedisError, WatchError

from offsync.adapters.base import Record
from offsync.errors import StorageError
from offsync.types import CacheEntry, Response


def _text(data: bytes | str) -> str:
    return data.decode("utf-8") if isinstance(data, bytes) else data


def _serialize_entry(entry: CacheEntry) -> str:
    """Serialize a cache entry to JSON."""
    response = entry.response
    return json.dumps(
        {
            "key": entry.key,
            "stored_at": entry.stored_at,
            "status": response.status,
            "headers": dict(response.headers),
            "url": response.url,
            "body": base64.b64encode(response.body).decode("ascii"),
        }
    )


def _deserialize_entry(data: bytes | str) -> CacheEntry:
    """Deserialize JSON to a cache entry."""
    obj = json.loads(_text(data))
    return CacheEntry(
        key=obj["key"],
        stored_at=obj["stored_at"],
        response=Response(
            status=obj["status"],
            headers=obj["headers"],
            url=obj["url"],
            body=base64.b64decode(obj["body"]),
        ),
    )


@asynccontextmanager
async def _storage_errors(action: str) -> AsyncIterator[None]:
    try:
        yield
    except RedisError as e:
        raise StorageError(f"Redis {action} failed: {e}") from e


class AsyncRedisCacheStorage:
    """Async Redis cache storage. One hash per collection."""

    def __init__(
        self,
        client: Any,  # redis.asyncio.Redis
        *,
        prefix: str = "offsync",
    ) -> None:
        self._client = client
        self._prefix = prefix

    @property
    def _names_key(self) -> str:
        return f"{self._prefix}:caches"

    def _collection_key(self, name: str) -> str:
        return f"{self._prefix}:cache:{name}"

    async def keys(self) -> list[str]:
        async with _storage_errors("keys"):
            names = await self._client.smembers(self._names_key)
        return sorted(_text(n) for n in names)

    async def has(self, name: str) -> bool:
        async with _storage_errors("has"):
            return bool(await self._client.sismember(self._names_key, name))

    async def create(self, name: str) -> None:
        async with _storage_errors("create"):
            await self._client.sadd(self._names_key, name)

    async def delete(self, name: str) -> bool:
        async with _storage_errors("delete"):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.srem(self._names_key, name)
                pipe.delete(self._collection_key(name))
                removed, _ = await pipe.execute()
        return bool(removed)

    async def match(self, name: str, key: str) -> CacheEntry | None:
        async with _storage_errors("match"):
            data = await self._client.hget(self._collection_key(name), key)
        if data is None:
            return None
        return _deserialize_entry(data)

    async def put(self, name: str, entry: CacheEntry) -> None:
        await self.put_all(name, [entry])

    async def put_all(self, name: str, entries: Sequence[CacheEntry]) -> None:
        """Store entries in a single MULTI/EXEC transaction."""
        async with _storage_errors("put"):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.sadd(self._names_key, name)
                if entries:
                    pipe.hset(
                        self._collection_key(name),
                        mapping={e.key: _serialize_entry(e) for e in entries},
                    )
                await pipe.execute()

    async def entry_keys(self, name: str) -> list[str]:
        async with _storage_errors("entry_keys"):
            keys = await self._client.hkeys(self._collection_key(name))
        return [_text(k) for k in keys]

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()


class AsyncRedisRecordStore:
    """Async Redis record store.

    Records live in one hash per collection; every index value is a set of
    primary keys. Writes use WATCH/MULTI so index sets never drift from the
    records they describe.
    """

    def __init__(
        self,
        client: Any,  # redis.asyncio.Redis
        *,
        prefix: str = "offsync",
    ) -> None:
        self._client = client
        self._prefix = prefix

    def _version_key(self, db: str) -> str:
        return f"{self._prefix}:db:{db}:version"

    def _schema_key(self, db: str) -> str:
        return f"{self._prefix}:db:{db}:collections"

    def _records_key(self, db: str, collection: str) -> str:
        return f"{self._prefix}:db:{db}:{collection}:records"

    def _index_key(self, db: str, collection: str, index: str, value: Any) -> str:
        return f"{self._prefix}:db:{db}:{collection}:idx:{index}:{json.dumps(value)}"

    async def _schema(self, db: str, collection: str) -> dict[str, Any]:
        async with _storage_errors("schema lookup"):
            data = await self._client.hget(self._schema_key(db), collection)
        if data is None:
            raise StorageError(f"No collection {collection!r} in database {db!r}")
        return json.loads(_text(data))

    async def get_version(self, db: str) -> int:
        async with _storage_errors("get_version"):
            data = await self._client.get(self._version_key(db))
        return int(data) if data is not None else 0

    async def set_version(self, db: str, version: int) -> None:
        async with _storage_errors("set_version"):
            await self._client.set(self._version_key(db), str(version))

    async def create_collection(
        self,
        db: str,
        name: str,
        *,
        key_field: str,
        indexes: Sequence[str] = (),
    ) -> None:
        schema_key = self._schema_key(db)
        records_key = self._records_key(db, name)
        async with _storage_errors("create_collection"):
            async with self._client.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(schema_key, records_key)
                        data = await pipe.hget(schema_key, name)
                        schema = (
                            json.loads(_text(data))
                            if data is not None
                            else {"key_field": key_field, "indexes": []}
                        )
                        if schema["key_field"] != key_field:
                            raise StorageError(
                                f"Collection {name!r} already keyed by "
                                f"{schema['key_field']!r}"
                            )
                        added = [i for i in indexes if i not in schema["indexes"]]
                        existing = await pipe.hvals(records_key) if added else []
                        schema["indexes"] = [*schema["indexes"], *added]

                        pipe.multi()
                        pipe.hset(schema_key, name, json.dumps(schema))
                        # Backfill sets for indexes added to a populated collection
                        for raw in existing:
                            record = json.loads(_text(raw))
                            for index in added:
                                pipe.sadd(
                                    self._index_key(db, name, index, record.get(index)),
                                    str(record[key_field]),
                                )
                        await pipe.execute()
                        return
                    except WatchError:
                        continue

    async def collection_names(self, db: str) -> list[str]:
        async with _storage_errors("collection_names"):
            names = await self._client.hkeys(self._schema_key(db))
        return [_text(n) for n in names]

    async def get_all(self, db: str, collection: str) -> list[Record]:
        await self._schema(db, collection)
        async with _storage_errors("get_all"):
            values = await self._client.hvals(self._records_key(db, collection))
        return [json.loads(_text(v)) for v in values]

    async def get(self, db: str, collection: str, key: str) -> Record | None:
        await self._schema(db, collection)
        async with _storage_errors("get"):
            data = await self._client.hget(self._records_key(db, collection), key)
        return json.loads(_text(data)) if data is not None else None

    async def put(self, db: str, collection: str, record: Record) -> None:
        schema = await self._schema(db, collection)
        try:
            key = str(record[schema["key_field"]])
        except KeyError:
            raise StorageError(
                f"Record is missing key field {schema['key_field']!r}"
            ) from None
        records_key = self._records_key(db, collection)
        async with _storage_errors("put"):
            async with self._client.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(records_key)
                        old = await pipe.hget(records_key, key)
                        pipe.multi()
                        self._unindex(pipe, db, collection, schema, key, old)
                        pipe.hset(records_key, key, json.dumps(record))
                        for index in schema["indexes"]:
                            pipe.sadd(
                                self._index_key(db, collection, index, record.get(index)),
                                key,
                            )
                        await pipe.execute()
                        return
                    except WatchError:
                        continue

    async def delete(self, db: str, collection: str, key: str) -> None:
        schema = await self._schema(db, collection)
        records_key = self._records_key(db, collection)
        async with _storage_errors("delete"):
            async with self._client.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(records_key)
                        old = await pipe.hget(records_key, key)
                        pipe.multi()
                        self._unindex(pipe, db, collection, schema, key, old)
                        pipe.hdel(records_key, key)
                        await pipe.execute()
                        return
                    except WatchError:
                        continue

    def _unindex(
        self,
        pipe: Any,
        db: str,
        collection: str,
        schema: dict[str, Any],
        key: str,
        old: bytes | str | None,
    ) -> None:
        if old is None:
            return
        previous = json.loads(_text(old))
        for index in schema["indexes"]:
            pipe.srem(self._index_key(db, collection, index, previous.get(index)), key)

    async def query_by_index(
        self, db: str, collection: str, index: str, value: Any
    ) -> list[Record]:
        schema = await self._schema(db, collection)
        if index not in schema["indexes"]:
            raise StorageError(f"No index {index!r} on collection {collection!r}")
        async with _storage_errors("query_by_index"):
            keys = await self._client.smembers(
                self._index_key(db, collection, index, value)
            )
            if not keys:
                return []
            values = await self._client.hmget(
                self._records_key(db, collection), *sorted(keys)
            )
        return [json.loads(_text(v)) for v in values if v is not None]

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()
