"""Persistent store: versioned databases and the notes repository."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import replace
from typing import Any

from offsync.adapters.base import AsyncRecordStore, Record
from offsync.errors import StorageError
from offsync.types import Note, SyncState

_logger = logging.getLogger(__name__)

NOTES = "notes"
NOTE_INDEXES = ("title", "updated_at", "sync_state")

UpgradeCallback = Callable[["Database", int], Awaitable[None]]


class Database:
    """Handle to one named database on a record store backend."""

    __slots__ = ("_backend", "name", "version")

    def __init__(self, backend: AsyncRecordStore, name: str, version: int) -> None:
        self._backend = backend
        self.name = name
        self.version = version

    async def create_collection(
        self, name: str, *, key_field: str, indexes: Sequence[str] = ()
    ) -> None:
        await self._backend.create_collection(
            self.name, name, key_field=key_field, indexes=indexes
        )

    async def collection_names(self) -> list[str]:
        return await self._backend.collection_names(self.name)

    async def get_all(self, collection: str) -> list[Record]:
        return await self._backend.get_all(self.name, collection)

    async def get(self, collection: str, key: str) -> Record | None:
        return await self._backend.get(self.name, collection, key)

    async def put(self, collection: str, record: Record) -> None:
        await self._backend.put(self.name, collection, record)

    async def delete(self, collection: str, key: str) -> None:
        await self._backend.delete(self.name, collection, key)

    async def query_by_index(
        self, collection: str, index: str, value: Any
    ) -> list[Record]:
        return await self._backend.query_by_index(self.name, collection, index, value)


async def open_database(
    backend: AsyncRecordStore,
    name: str,
    version: int,
    upgrade: UpgradeCallback | None = None,
) -> Database:
    """Open a database, running the upgrade callback on a version bump.

    The callback receives the handle and the previously stored version
    (0 for a new database) and must create its collections idempotently.
    """
    if version < 1:
        raise StorageError(f"Database version must be positive, got {version}")
    current = await backend.get_version(name)
    if version < current:
        raise StorageError(
            f"Database {name!r} is at version {current}, cannot open as {version}"
        )
    db = Database(backend, name, version)
    if version > current:
        _logger.info("Upgrading database %s from v%d to v%d", name, current, version)
        if upgrade is not None:
            await upgrade(db, current)
        await backend.set_version(name, version)
    return db


async def upgrade_notes_schema(db: Database, old_version: int) -> None:
    """Create the notes collection and its indexes."""
    _ = old_version  # Single schema version so far
    await db.create_collection(NOTES, key_field="id", indexes=NOTE_INDEXES)


class NoteStore:
    """Notes repository on top of a persistent store database."""

    def __init__(self, db: Database) -> None:
        self._db = db
        # Serializes read-modify-write sequences on notes
        self._lock = asyncio.Lock()

    @classmethod
    async def open(
        cls,
        backend: AsyncRecordStore,
        *,
        name: str = "NotePadDB",
        version: int = 1,
    ) -> NoteStore:
        return cls(await open_database(backend, name, version, upgrade_notes_schema))

    async def save(
        self,
        title: str,
        content: str,
        *,
        note_id: str | None = None,
    ) -> Note:
        """Create a note, or edit an existing one when note_id is known.

        Either way the stored note is pending until the next successful sync.
        """
        async with self._lock:
            existing = await self._get(note_id) if note_id else None
            if existing is None:
                note = Note.create(title, content, note_id=note_id)
            else:
                note = existing.edit(title=title, content=content)
            await self._db.put(NOTES, note.to_record())
        _logger.debug("Saved note %s", note.id)
        return note

    async def get(self, note_id: str) -> Note | None:
        return await self._get(note_id)

    async def _get(self, note_id: str) -> Note | None:
        record = await self._db.get(NOTES, note_id)
        return Note.from_record(record) if record is not None else None

    async def list_all(self) -> list[Note]:
        """All notes, most recently updated first."""
        records = await self._db.get_all(NOTES)
        notes = [Note.from_record(r) for r in records]
        return sorted(notes, key=lambda n: n.updated_at, reverse=True)

    async def delete(self, note_id: str) -> None:
        """Delete a note locally. Nothing is propagated to the remote."""
        async with self._lock:
            await self._db.delete(NOTES, note_id)
        _logger.debug("Deleted note %s", note_id)

    async def pending(self) -> list[Note]:
        """Notes waiting for reconciliation, oldest edit first."""
        records = await self._db.query_by_index(
            NOTES, "sync_state", SyncState.PENDING.value
        )
        notes = [Note.from_record(r) for r in records]
        return sorted(notes, key=lambda n: n.updated_at)

    async def mark_synced(self, snapshot: Note) -> bool:
        """Mark the stored note synced if it still matches the acknowledged snapshot.

        Returns False when the note was deleted or edited after the snapshot
        was taken, or is already synced. Applying the same acknowledgment
        twice is a no-op.
        """
        async with self._lock:
            current = await self._get(snapshot.id)
            if current is None or current.updated_at != snapshot.updated_at:
                return False
            if current.sync_state is SyncState.SYNCED:
                return False
            await self._db.put(
                NOTES, replace(current, sync_state=SyncState.SYNCED).to_record()
            )
        return True
