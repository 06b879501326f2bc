"""Change queue reconciliation against the remote sync endpoint.

Pending work is every note whose ``sync_state`` index says PENDING. A pass
submits each one, marks acknowledged notes synced and leaves everything
else pending for the next trigger. There is no backoff scheduler: retries
happen when the next trigger fires.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from offsync.duration import parse_duration
from offsync.errors import NetworkError, UpstreamRejection
from offsync.state import RuntimeState
from offsync.store import NoteStore
from offsync.transport import SyncEndpoint
from offsync.types import Duration, SyncReport, SyncState, SyncStatus, SyncTrigger

_logger = logging.getLogger(__name__)

SyncListener = Callable[[SyncReport], Awaitable[None]]


class Reconciler:
    """Drains pending notes to the remote endpoint.

    Overlapping calls to ``reconcile`` share the pass already in flight,
    so redundant triggers never submit the same change twice at once.
    """

    def __init__(
        self,
        store: NoteStore,
        endpoint: SyncEndpoint,
        state: RuntimeState,
        *,
        submit_timeout: Duration | None = "10s",
    ) -> None:
        self._store = store
        self._endpoint = endpoint
        self._state = state
        self._submit_timeout = (
            parse_duration(submit_timeout) if submit_timeout is not None else None
        )
        self._in_flight: asyncio.Future[SyncReport] | None = None
        self._listeners: list[SyncListener] = []

    @property
    def online(self) -> bool:
        return self._state.online

    @property
    def in_progress(self) -> bool:
        return self._in_flight is not None

    def add_listener(self, listener: SyncListener) -> None:
        """Call listener with the report after every pass."""
        self._listeners.append(listener)

    async def reconcile(self, trigger: SyncTrigger = SyncTrigger.MANUAL) -> SyncReport:
        """Run a reconciliation pass, or join the one already running."""
        if self._in_flight is not None:
            _logger.debug("Sync pass in progress; %s trigger joins it", trigger.value)
            return await asyncio.shield(self._in_flight)

        future: asyncio.Future[SyncReport] = asyncio.get_running_loop().create_future()
        self._in_flight = future
        try:
            report = await self._run_pass(trigger)
        except asyncio.CancelledError:
            # Joined callers were not cancelled; they get a failed pass instead
            future.set_result(
                SyncReport(SyncStatus.FAILED, trigger=trigger, error="sync pass cancelled")
            )
            raise
        except BaseException as e:
            future.set_exception(e)
            future.exception()  # Mark retrieved
            raise
        else:
            future.set_result(report)
        finally:
            self._in_flight = None

        for listener in list(self._listeners):
            try:
                await listener(report)
            except Exception:
                _logger.exception("Sync listener failed")
        return report

    async def _run_pass(self, trigger: SyncTrigger) -> SyncReport:
        if not self._state.online:
            _logger.info("Cannot sync while offline")
            return SyncReport(SyncStatus.OFFLINE, trigger=trigger, error="offline")

        pending = await self._store.pending()
        if not pending:
            _logger.debug("Nothing to sync")
            return SyncReport(SyncStatus.UP_TO_DATE, trigger=trigger)

        _logger.info("Syncing %d pending notes (%s)", len(pending), trigger.value)
        synced: list[str] = []
        remaining: list[str] = []
        for index, note in enumerate(pending):
            try:
                await asyncio.wait_for(
                    self._endpoint.submit(note), timeout=self._submit_timeout
                )
            except UpstreamRejection as e:
                _logger.warning("Note %s rejected by remote: %s", note.id, e)
                remaining.append(note.id)
                continue
            except asyncio.TimeoutError:
                _logger.warning(
                    "Submitting note %s timed out after %ss", note.id, self._submit_timeout
                )
                remaining.append(note.id)
                continue
            except NetworkError as e:
                _logger.error("Sync failed: %s", e)
                remaining.extend(n.id for n in pending[index:])
                return SyncReport(
                    SyncStatus.FAILED,
                    trigger=trigger,
                    synced=tuple(synced),
                    pending=tuple(remaining),
                    error=str(e),
                )

            if await self._store.mark_synced(note):
                synced.append(note.id)
                continue
            current = await self._store.get(note.id)
            if current is not None and current.sync_state is SyncState.PENDING:
                _logger.debug("Note %s changed since submission; still pending", note.id)
                remaining.append(note.id)

        status = SyncStatus.PARTIAL if remaining else SyncStatus.SYNCED
        _logger.info("Sync pass done: %d synced, %d pending", len(synced), len(remaining))
        return SyncReport(
            status, trigger=trigger, synced=tuple(synced), pending=tuple(remaining)
        )
