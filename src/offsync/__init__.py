"""offsync - Offline-first resource caching and note sync for Python."""

from contextlib import suppress

# Adapters (async only)
from offsync.adapters import (
    AsyncCacheStorage,
    AsyncMemoryCacheStorage,
    AsyncMemoryRecordStore,
    AsyncRecordStore,
)

# Application facade
from offsync.app import OfflineNotes, build_app
from offsync.config import Settings, clear_settings_cache, get_settings

# Duration parsing
from offsync.duration import parse_duration

# Errors
from offsync.errors import (
    ManifestInstallError,
    NetworkError,
    OffsyncError,
    StorageError,
    UpstreamRejection,
)
from offsync.events import SYNC_TRIGGERED, ConnectivityMonitor, MessageChannel
from offsync.lifecycle import APP_SHELL, SYNC_TAG, LifecycleController
from offsync.reconciler import Reconciler
from offsync.resource_cache import CacheCollection, ResourceCache, StorageEstimate
from offsync.router import RequestCategory, Router
from offsync.state import RuntimeState
from offsync.store import Database, NoteStore, open_database
from offsync.strategies import OFFLINE_PAGE, Strategies, offline_response
from offsync.transport import Fetcher, SyncEndpoint
from offsync.triggers import SyncTriggers

# Core types
from offsync.types import (
    CacheEntry,
    CacheGeneration,
    Duration,
    GenerationState,
    Note,
    Request,
    Response,
    SyncReport,
    SyncState,
    SyncStatus,
    SyncTrigger,
)

# Optional imports - only available when dependencies are installed
with suppress(ImportError):
    from offsync.adapters import AsyncRedisCacheStorage, AsyncRedisRecordStore

with suppress(ImportError):
    from offsync.http import HttpSyncEndpoint, HttpxFetcher

__version__ = "0.1.0"

__all__ = [
    "APP_SHELL",
    "OFFLINE_PAGE",
    "SYNC_TAG",
    "SYNC_TRIGGERED",
    "AsyncCacheStorage",
    "AsyncMemoryCacheStorage",
    "AsyncMemoryRecordStore",
    "AsyncRecordStore",
    "AsyncRedisCacheStorage",
    "AsyncRedisRecordStore",
    "CacheCollection",
    "CacheEntry",
    "CacheGeneration",
    "ConnectivityMonitor",
    "Database",
    "Duration",
    "Fetcher",
    "GenerationState",
    "HttpSyncEndpoint",
    "HttpxFetcher",
    "LifecycleController",
    "ManifestInstallError",
    "MessageChannel",
    "NetworkError",
    "Note",
    "NoteStore",
    "OfflineNotes",
    "OffsyncError",
    "Reconciler",
    "Request",
    "RequestCategory",
    "ResourceCache",
    "Response",
    "Router",
    "RuntimeState",
    "Settings",
    "StorageError",
    "StorageEstimate",
    "Strategies",
    "SyncEndpoint",
    "SyncReport",
    "SyncState",
    "SyncStatus",
    "SyncTrigger",
    "SyncTriggers",
    "UpstreamRejection",
    "build_app",
    "clear_settings_cache",
    "get_settings",
    "offline_response",
    "open_database",
    "parse_duration",
]
