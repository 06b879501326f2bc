"""Storage adapters for offsync (async only)."""

from contextlib import suppress

from offsync.adapters.base import (
    AsyncCacheStorage,
    AsyncRecordStore,
)
from offsync.adapters.memory import AsyncMemoryCacheStorage, AsyncMemoryRecordStore

# Optional adapters - only available when dependencies are installed
with suppress(ImportError):
    from offsync.adapters.redis import AsyncRedisCacheStorage, AsyncRedisRecordStore

__all__ = [
    "AsyncCacheStorage",
    "AsyncMemoryCacheStorage",
    "AsyncMemoryRecordStore",
    "AsyncRecordStore",
    "AsyncRedisCacheStorage",
    "AsyncRedisRecordStore",
]
