"""Tests for sync triggers and event sources."""

import asyncio
from collections.abc import AsyncIterator

import pytest
from conftest import FakeEndpoint, FakeFetcher, ok

from offsync import (
    SYNC_TAG,
    SYNC_TRIGGERED,
    ConnectivityMonitor,
    LifecycleController,
    MessageChannel,
    NoteStore,
    Reconciler,
    ResourceCache,
    RuntimeState,
    SyncReport,
    SyncStatus,
    SyncTrigger,
    SyncTriggers,
)


@pytest.fixture
def connectivity(state: RuntimeState) -> ConnectivityMonitor:
    return ConnectivityMonitor(state)


@pytest.fixture
def channel() -> MessageChannel:
    return MessageChannel()


@pytest.fixture
def reports() -> list[SyncReport]:
    return []


@pytest.fixture
def reconciler(
    note_store: NoteStore,
    endpoint: FakeEndpoint,
    state: RuntimeState,
    reports: list[SyncReport],
) -> Reconciler:
    reconciler = Reconciler(note_store, endpoint, state)

    async def record(report: SyncReport) -> None:
        reports.append(report)

    reconciler.add_listener(record)
    return reconciler


@pytest.fixture
async def triggers(
    reconciler: Reconciler,
    connectivity: ConnectivityMonitor,
    channel: MessageChannel,
) -> AsyncIterator[SyncTriggers]:
    """Started triggers with a timer long enough to never fire in a test."""
    triggers = SyncTriggers(
        reconciler, interval="1h", connectivity=connectivity, channel=channel
    )
    triggers.start()
    yield triggers
    await triggers.stop()


class TestEventSources:
    """Tests for connectivity and message delivery."""

    async def test_connectivity_is_edge_triggered(
        self, connectivity: ConnectivityMonitor
    ) -> None:
        events: list[str] = []

        async def listener(event: str) -> None:
            events.append(event)

        connectivity.subscribe(listener)
        await connectivity.set_online(True)
        await connectivity.set_online(False)
        await connectivity.set_online(False)
        await connectivity.set_online(True)

        assert events == ["offline", "online"]

    async def test_unsubscribe(self, channel: MessageChannel) -> None:
        received: list[dict] = []

        async def client(message: dict) -> None:
            received.append(message)

        unsubscribe = channel.subscribe(client)
        await channel.post({"type": "a"})
        unsubscribe()
        await channel.post({"type": "b"})

        assert received == [{"type": "a"}]

    async def test_failing_listener_is_isolated(
        self, channel: MessageChannel, caplog: pytest.LogCaptureFixture
    ) -> None:
        received: list[dict] = []

        async def broken(message: dict) -> None:
            raise RuntimeError("client crashed")

        async def healthy(message: dict) -> None:
            received.append(message)

        channel.subscribe(broken)
        channel.subscribe(healthy)
        await channel.post({"type": "ping"})

        assert received == [{"type": "ping"}]
        assert "Listener failed" in caplog.text


class TestSyncTriggers:
    """Tests for SyncTriggers."""

    async def test_message_triggers_sync(
        self,
        triggers: SyncTriggers,
        channel: MessageChannel,
        note_store: NoteStore,
        endpoint: FakeEndpoint,
        reports: list[SyncReport],
    ) -> None:
        note = await note_store.save("T", "C")

        await channel.post({"type": SYNC_TRIGGERED})
        await channel.post({"type": "SOMETHING_ELSE"})

        assert [n.id for n in endpoint.received] == [note.id]
        assert [r.trigger for r in reports] == [SyncTrigger.MESSAGE]

    async def test_reconnect_triggers_sync(
        self,
        triggers: SyncTriggers,
        connectivity: ConnectivityMonitor,
        note_store: NoteStore,
        endpoint: FakeEndpoint,
        reports: list[SyncReport],
    ) -> None:
        """Test that notes saved offline are sent once connectivity returns."""
        await connectivity.set_online(False)
        note = await note_store.save("Written offline", "")
        assert endpoint.attempts == 0

        await connectivity.set_online(True)

        assert [n.id for n in endpoint.received] == [note.id]
        assert [r.trigger for r in reports] == [SyncTrigger.CONNECTIVITY]

    async def test_sync_now(
        self, triggers: SyncTriggers, note_store: NoteStore
    ) -> None:
        await note_store.save("T", "C")

        report = await triggers.sync_now()

        assert report.trigger is SyncTrigger.MANUAL
        assert report.status is SyncStatus.SYNCED

    async def test_stop_unsubscribes(
        self,
        triggers: SyncTriggers,
        channel: MessageChannel,
        endpoint: FakeEndpoint,
        note_store: NoteStore,
    ) -> None:
        await triggers.stop()
        assert not triggers.running
        await note_store.save("T", "C")

        await channel.post({"type": SYNC_TRIGGERED})

        assert endpoint.attempts == 0

    def test_interval_must_be_positive(self, reconciler: Reconciler) -> None:
        with pytest.raises(ValueError, match="positive"):
            SyncTriggers(reconciler, interval=0)


class TestTimer:
    """Tests for the periodic timer."""

    async def test_timer_syncs_periodically(
        self,
        reconciler: Reconciler,
        note_store: NoteStore,
        endpoint: FakeEndpoint,
        reports: list[SyncReport],
    ) -> None:
        async def received() -> None:
            while not endpoint.received:
                await asyncio.sleep(0.01)

        triggers = SyncTriggers(reconciler, interval="20ms")
        await note_store.save("T", "C")
        triggers.start()
        assert triggers.running
        try:
            await asyncio.wait_for(received(), timeout=2)
        finally:
            await triggers.stop()

        assert reports[0].trigger is SyncTrigger.TIMER

    async def test_timer_skips_while_offline(
        self,
        reconciler: Reconciler,
        state: RuntimeState,
        note_store: NoteStore,
        endpoint: FakeEndpoint,
        reports: list[SyncReport],
    ) -> None:
        state.set_online(False)
        await note_store.save("T", "C")
        triggers = SyncTriggers(reconciler, interval="20ms")
        triggers.start()
        try:
            await asyncio.sleep(0.1)
        finally:
            await triggers.stop()

        assert reports == []
        assert endpoint.attempts == 0


class TestBackgroundSyncRelay:
    """Tests for the lifecycle relaying background sync to the reconciler."""

    async def test_sync_event_reaches_reconciler(
        self,
        triggers: SyncTriggers,
        channel: MessageChannel,
        cache: ResourceCache,
        state: RuntimeState,
        note_store: NoteStore,
        endpoint: FakeEndpoint,
    ) -> None:
        controller = LifecycleController(
            cache,
            FakeFetcher({"/": ok("shell")}),
            state,
            version="v1",
            manifest=("/",),
            channel=channel,
        )
        note = await note_store.save("T", "C")

        await controller.handle_sync_event(SYNC_TAG)

        assert [n.id for n in endpoint.received] == [note.id]
