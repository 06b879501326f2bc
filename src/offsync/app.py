"""Application facade wiring the cache and sync engine for a notes UI."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Literal

from offsync.adapters.base import AsyncCacheStorage, AsyncRecordStore
from offsync.adapters.memory import AsyncMemoryCacheStorage, AsyncMemoryRecordStore
from offsync.config import Settings, get_settings
from offsync.errors import StorageError
from offsync.events import Connectivity, ConnectivityMonitor, MessageChannel
from offsync.lifecycle import LifecycleController
from offsync.reconciler import Reconciler
from offsync.resource_cache import ResourceCache, StorageEstimate
from offsync.router import Router
from offsync.state import RuntimeState
from offsync.store import NoteStore
from offsync.strategies import Strategies
from offsync.transport import Fetcher, SyncEndpoint
from offsync.triggers import SyncTriggers
from offsync.types import (
    CacheGeneration,
    Note,
    Request,
    Response,
    SyncReport,
    SyncStatus,
    SyncTrigger,
)

_logger = logging.getLogger(__name__)

Level = Literal["info", "success", "warning", "error"]
Notifier = Callable[[str, Level], None]
Closer = Callable[[], Awaitable[None]]


class OfflineNotes:
    """What the notes UI talks to: notes CRUD, sync, connectivity and fetches.

    User-facing outcomes go to ``notifier`` as non-blocking notifications.
    """

    def __init__(
        self,
        *,
        store: NoteStore,
        cache: ResourceCache,
        router: Router,
        lifecycle: LifecycleController,
        reconciler: Reconciler,
        triggers: SyncTriggers,
        connectivity: ConnectivityMonitor,
        channel: MessageChannel,
        notifier: Notifier | None = None,
        closers: Sequence[Closer] = (),
    ) -> None:
        self.store = store
        self.cache = cache
        self.router = router
        self.lifecycle = lifecycle
        self.reconciler = reconciler
        self.triggers = triggers
        self.connectivity = connectivity
        self.channel = channel
        self._notifier = notifier
        # Release hooks for resources this facade owns, run in order on close
        self._closers = list(closers)
        reconciler.add_listener(self._on_sync_report)
        self._unsubscribe = connectivity.subscribe(self._on_connectivity)

    def notify(self, message: str, level: Level = "info") -> None:
        _logger.debug("Notification (%s): %s", level, message)
        if self._notifier is None:
            return
        try:
            self._notifier(message, level)
        except Exception:
            _logger.exception("Notifier failed")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Install/activate the cache generation and start the sync timer."""
        await self.lifecycle.start()
        self.triggers.start()

    async def close(self) -> None:
        """Stop the sync timer and release owned clients and backends."""
        await self.triggers.stop()
        self._unsubscribe()
        await self.router.join()
        closers, self._closers = self._closers, []
        for closer in closers:
            await closer()

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    async def save_note(
        self, title: str, content: str, *, note_id: str | None = None
    ) -> Note | None:
        title = title.strip()
        if not title and not content:
            self.notify("Please add a title or content", "warning")
            return None
        try:
            note = await self.store.save(title or "Untitled", content, note_id=note_id)
        except StorageError:
            self.notify("Could not save note", "error")
            raise
        self.notify("Note saved successfully!", "success")
        return note

    async def delete_note(self, note_id: str) -> None:
        try:
            await self.store.delete(note_id)
        except StorageError:
            self.notify("Could not delete note", "error")
            raise
        self.notify("Note deleted", "success")

    async def get_note(self, note_id: str) -> Note | None:
        return await self.store.get(note_id)

    async def list_notes(self) -> list[Note]:
        return await self.store.list_all()

    async def cached_count(self) -> int:
        return len(await self.store.list_all())

    async def storage_estimate(self) -> StorageEstimate:
        return await self.cache.estimate()

    # -------------------------------------------------------------------------
    # Sync and connectivity
    # -------------------------------------------------------------------------

    async def sync_now(self) -> SyncReport:
        """The user's sync button."""
        return await self.triggers.sync_now()

    async def set_online(self, online: bool) -> None:
        await self.connectivity.set_online(online)

    async def _on_connectivity(self, event: Connectivity) -> None:
        if event == "online":
            self.notify("Back online!", "success")
        else:
            self.notify("You are offline - changes will sync when online", "warning")

    async def _on_sync_report(self, report: SyncReport) -> None:
        manual = report.trigger is SyncTrigger.MANUAL
        if report.status is SyncStatus.OFFLINE:
            if manual:
                self.notify("You are offline", "warning")
        elif report.status is SyncStatus.UP_TO_DATE:
            if manual:
                self.notify("All notes are up to date", "info")
        elif report.status is SyncStatus.FAILED:
            self.notify("Failed to sync with server", "warning")
        elif report.status is SyncStatus.PARTIAL:
            self.notify(
                f"Synced with server; {len(report.pending)} notes still pending",
                "warning",
            )
        else:
            self.notify("Synced with server", "success")

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    async def handle(self, request: Request) -> Response:
        """Answer an intercepted request."""
        return await self.router.handle(request)


async def build_app(
    *,
    fetch: Fetcher | None = None,
    endpoint: SyncEndpoint | None = None,
    settings: Settings | None = None,
    cache_storage: AsyncCacheStorage | None = None,
    record_store: AsyncRecordStore | None = None,
    online: bool = True,
    notifier: Notifier | None = None,
) -> OfflineNotes:
    """Wire a complete OfflineNotes from settings.

    Backends default to Redis when ``redis_url`` is set, else memory. The
    fetcher and sync endpoint default to the httpx implementations. Whatever
    is created here is released by ``OfflineNotes.close``; passed-in objects
    stay open.
    """
    settings = settings or get_settings()
    generation = CacheGeneration(settings.cache_version, settings.cache_prefix)
    closers: list[Closer] = []

    if cache_storage is None or record_store is None:
        if settings.redis_url:
            from redis import asyncio as aioredis

            from offsync.adapters.redis import AsyncRedisCacheStorage, AsyncRedisRecordStore

            client = aioredis.from_url(settings.redis_url)
            closers.append(client.aclose)
            if cache_storage is None:
                cache_storage = AsyncRedisCacheStorage(client, prefix=settings.cache_prefix)
            if record_store is None:
                record_store = AsyncRedisRecordStore(client, prefix=settings.cache_prefix)
        else:
            if cache_storage is None:
                cache_storage = AsyncMemoryCacheStorage(
                    settings.runtime_cache_max_items, bounded={generation.runtime}
                )
                closers.append(cache_storage.disconnect)
            if record_store is None:
                record_store = AsyncMemoryRecordStore()
                closers.append(record_store.disconnect)

    if fetch is None or endpoint is None:
        from offsync.http import HttpSyncEndpoint, HttpxFetcher

        if fetch is None:
            fetcher = HttpxFetcher()
            closers.append(fetcher.aclose)
            fetch = fetcher
        if endpoint is None:
            sync_endpoint = HttpSyncEndpoint(
                settings.sync_url, timeout=settings.submit_timeout
            )
            closers.append(sync_endpoint.aclose)
            endpoint = sync_endpoint

    state = RuntimeState(online=online)
    channel = MessageChannel()
    connectivity = ConnectivityMonitor(state)
    cache = ResourceCache(cache_storage)
    store = await NoteStore.open(
        record_store, name=settings.db_name, version=settings.db_version
    )
    strategies = Strategies(cache, fetch, state)
    router = Router(strategies, fetch, api_prefix=settings.api_prefix)
    lifecycle = LifecycleController(
        cache,
        fetch,
        state,
        version=settings.cache_version,
        manifest=settings.shell_manifest,
        prefix=settings.cache_prefix,
        channel=channel,
    )
    reconciler = Reconciler(
        store, endpoint, state, submit_timeout=settings.submit_timeout
    )
    triggers = SyncTriggers(
        reconciler,
        interval=settings.sync_interval,
        connectivity=connectivity,
        channel=channel,
    )
    return OfflineNotes(
        store=store,
        cache=cache,
        router=router,
        lifecycle=lifecycle,
        reconciler=reconciler,
        triggers=triggers,
        connectivity=connectivity,
        channel=channel,
        notifier=notifier,
        closers=closers,
    )
