"""Sync triggers: periodic timer, connectivity, messages and manual sync."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from offsync.duration import parse_duration
from offsync.events import (
    SYNC_TRIGGERED,
    Connectivity,
    ConnectivityMonitor,
    Message,
    MessageChannel,
)
from offsync.reconciler import Reconciler
from offsync.types import Duration, SyncReport, SyncTrigger

_logger = logging.getLogger(__name__)


class SyncTriggers:
    """Funnels every trigger source into ``Reconciler.reconcile``.

    Delivery is at least once; duplicate triggers are absorbed by the
    reconciler joining the pass already in flight.
    """

    def __init__(
        self,
        reconciler: Reconciler,
        *,
        interval: Duration = "30s",
        connectivity: ConnectivityMonitor | None = None,
        channel: MessageChannel | None = None,
    ) -> None:
        self._reconciler = reconciler
        self._interval = parse_duration(interval)
        if self._interval <= 0:
            raise ValueError("Sync interval must be positive")
        self._connectivity = connectivity
        self._channel = channel
        self._timer: asyncio.Task[None] | None = None
        self._unsubscribe: list[Callable[[], None]] = []

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        """Start the periodic timer and subscribe to event sources."""
        if self.running:
            return
        if self._connectivity is not None:
            self._unsubscribe.append(self._connectivity.subscribe(self.on_connectivity))
        if self._channel is not None:
            self._unsubscribe.append(self._channel.subscribe(self.on_message))
        self._timer = asyncio.create_task(self._run_timer())

    async def stop(self) -> None:
        """Cancel the timer and unsubscribe."""
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()
        if self._timer is not None:
            self._timer.cancel()
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
            self._timer = None

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            if not self._reconciler.online:
                continue
            try:
                await self._reconciler.reconcile(SyncTrigger.TIMER)
            except Exception:
                _logger.exception("Periodic sync failed")

    async def on_connectivity(self, event: Connectivity) -> None:
        if event == "online":
            await self._reconciler.reconcile(SyncTrigger.CONNECTIVITY)

    async def on_message(self, message: Message) -> None:
        if message.get("type") == SYNC_TRIGGERED:
            await self._reconciler.reconcile(SyncTrigger.MESSAGE)

    async def sync_now(self) -> SyncReport:
        """Explicit user-invoked sync."""
        return await self._reconciler.reconcile(SyncTrigger.MANUAL)
