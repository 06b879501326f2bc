"""Tests for the persistent store and the notes repository."""

from types import SimpleNamespace

import pytest

import offsync.types
from offsync import (
    AsyncMemoryRecordStore,
    NoteStore,
    StorageError,
    SyncState,
    open_database,
)
from offsync.store import NOTE_INDEXES, NOTES


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Controllable wall clock for note timestamps, in seconds."""
    now = [1_700_000_000.0]
    monkeypatch.setattr(offsync.types, "time", SimpleNamespace(time=lambda: now[0]))
    return now


class TestOpenDatabase:
    """Tests for versioned database opening."""

    async def test_upgrade_runs_on_version_bump(
        self, record_store: AsyncMemoryRecordStore
    ) -> None:
        """Test that the upgrade callback sees the previous version."""
        seen: list[int] = []

        async def upgrade(db, old_version: int) -> None:
            seen.append(old_version)
            await db.create_collection("things", key_field="id")

        await open_database(record_store, "db", 1, upgrade)
        await open_database(record_store, "db", 1, upgrade)
        db = await open_database(record_store, "db", 2, upgrade)

        assert seen == [0, 1]
        assert await record_store.get_version("db") == 2
        assert await db.collection_names() == ["things"]

    async def test_downgrade_is_rejected(
        self, record_store: AsyncMemoryRecordStore
    ) -> None:
        await open_database(record_store, "db", 3)
        with pytest.raises(StorageError, match="cannot open as 2"):
            await open_database(record_store, "db", 2)

    async def test_version_must_be_positive(
        self, record_store: AsyncMemoryRecordStore
    ) -> None:
        with pytest.raises(StorageError):
            await open_database(record_store, "db", 0)


class TestNoteStore:
    """Tests for NoteStore."""

    async def test_open_creates_schema(
        self, note_store: NoteStore, record_store: AsyncMemoryRecordStore
    ) -> None:
        """Test that opening creates the notes collection and its indexes."""
        assert await record_store.collection_names("NotePadDB") == [NOTES]
        for index in NOTE_INDEXES:
            assert await record_store.query_by_index("NotePadDB", NOTES, index, "x") == []

    async def test_save_creates_pending_note(self, note_store: NoteStore) -> None:
        note = await note_store.save("Title", "Body")

        stored = await note_store.get(note.id)
        assert stored == note
        assert stored.sync_state is SyncState.PENDING

    async def test_save_with_known_id_edits(self, note_store: NoteStore) -> None:
        """Test that saving under an existing id keeps the id and creation time."""
        original = await note_store.save("Title", "Body")
        await note_store.mark_synced(original)

        edited = await note_store.save("Title", "New body", note_id=original.id)

        assert edited.id == original.id
        assert edited.created_at == original.created_at
        assert edited.updated_at > original.updated_at
        assert edited.sync_state is SyncState.PENDING
        assert [n.id for n in await note_store.list_all()] == [original.id]

    async def test_save_with_unknown_id_creates(self, note_store: NoteStore) -> None:
        note = await note_store.save("T", "C", note_id="note_custom")
        assert note.id == "note_custom"
        assert await note_store.get("note_custom") == note

    async def test_list_all_newest_first(
        self, note_store: NoteStore, clock: list[float]
    ) -> None:
        a = await note_store.save("a", "")
        clock[0] += 1
        b = await note_store.save("b", "")
        clock[0] += 1
        await note_store.save("a", "edited", note_id=a.id)

        assert [n.id for n in await note_store.list_all()] == [a.id, b.id]

    async def test_pending_oldest_first(
        self, note_store: NoteStore, clock: list[float]
    ) -> None:
        """Test that pending notes come back in edit order, synced ones excluded."""
        a = await note_store.save("a", "")
        clock[0] += 1
        b = await note_store.save("b", "")
        clock[0] += 1
        c = await note_store.save("c", "")
        await note_store.mark_synced(b)

        assert [n.id for n in await note_store.pending()] == [a.id, c.id]

    async def test_delete_is_local(self, note_store: NoteStore) -> None:
        note = await note_store.save("T", "C")
        await note_store.delete(note.id)

        assert await note_store.get(note.id) is None
        assert await note_store.pending() == []
        await note_store.delete(note.id)

    async def test_mark_synced_is_idempotent(self, note_store: NoteStore) -> None:
        note = await note_store.save("T", "C")

        assert await note_store.mark_synced(note) is True
        assert await note_store.mark_synced(note) is False
        stored = await note_store.get(note.id)
        assert stored is not None
        assert stored.sync_state is SyncState.SYNCED

    async def test_mark_synced_ignores_stale_snapshot(
        self, note_store: NoteStore
    ) -> None:
        """Test that an acknowledgment for an older version leaves the edit pending."""
        snapshot = await note_store.save("T", "v1")
        await note_store.save("T", "v2", note_id=snapshot.id)

        assert await note_store.mark_synced(snapshot) is False
        [pending] = await note_store.pending()
        assert pending.content == "v2"

    async def test_mark_synced_after_delete(self, note_store: NoteStore) -> None:
        note = await note_store.save("T", "C")
        await note_store.delete(note.id)

        assert await note_store.mark_synced(note) is False
        assert await note_store.get(note.id) is None

    async def test_notes_survive_reopen(
        self, record_store: AsyncMemoryRecordStore
    ) -> None:
        """Test that a second handle on the same backend sees earlier writes."""
        first = await NoteStore.open(record_store)
        note = await first.save("T", "C")

        second = await NoteStore.open(record_store)
        assert await second.get(note.id) == note
