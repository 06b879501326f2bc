"""Core types for the offsync cache-and-sync engine."""

import secrets
import time
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import timedelta
from enum import Enum
from typing import Any
from urllib.parse import urlsplit, urlunsplit

# Duration type alias
Duration = str | int | timedelta  # "30s", "5m" or milliseconds


def _lower_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    return {k.lower(): v for k, v in (headers or {}).items()}


def normalize_url(url: str) -> str:
    """Normalize a URL for use as a cache key.

    Scheme and host are lower-cased, the fragment is dropped and an empty
    path becomes "/". Relative URLs keep only path and query.
    """
    parts = urlsplit(url.strip())
    path = parts.path or "/"
    if not parts.netloc:
        return f"{path}?{parts.query}" if parts.query else path
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), path, parts.query, "")
    )


@dataclass(frozen=True, slots=True)
class Request:
    """An intercepted resource request."""

    url: str
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    mode: str = "cors"  # "navigate" for document navigations

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", _lower_headers(self.headers))

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def key(self) -> str:
        """Cache key: method plus normalized URL. GET only."""
        if self.method != "GET":
            raise ValueError(f"Only GET requests are cacheable, got {self.method}")
        return f"GET {normalize_url(self.url)}"


@dataclass(frozen=True, slots=True)
class Response:
    """An immutable response snapshot."""

    status: int
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)
    url: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", _lower_headers(self.headers))

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A cached response keyed by normalized request identity."""

    key: str
    response: Response
    stored_at: int  # Unix timestamp ms


class SyncState(str, Enum):
    """Reconciliation status of a locally owned note."""

    PENDING = "pending"
    SYNCED = "synced"


def generate_note_id() -> str:
    """Return a fresh, never reused note id."""
    return f"note_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


@dataclass(frozen=True, slots=True)
class Note:
    """A user note. Updates produce new values, never mutate in place."""

    id: str
    title: str
    content: str
    created_at: int  # Unix timestamp ms
    updated_at: int
    sync_state: SyncState = SyncState.PENDING

    @classmethod
    def create(cls, title: str, content: str, *, note_id: str | None = None) -> "Note":
        now = int(time.time() * 1000)
        return cls(
            id=note_id or generate_note_id(),
            title=title,
            content=content,
            created_at=now,
            updated_at=now,
        )

    def edit(self, *, title: str | None = None, content: str | None = None) -> "Note":
        """Return an edited copy; any edit resets the note to pending."""
        # Strictly increasing so a racing sync acknowledgment cannot match.
        updated_at = max(int(time.time() * 1000), self.updated_at + 1)
        return replace(
            self,
            title=self.title if title is None else title,
            content=self.content if content is None else content,
            updated_at=updated_at,
            sync_state=SyncState.PENDING,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "sync_state": self.sync_state.value,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Note":
        return cls(
            id=record["id"],
            title=record["title"],
            content=record["content"],
            created_at=record["created_at"],
            updated_at=record["updated_at"],
            sync_state=SyncState(record["sync_state"]),
        )

    def to_payload(self) -> dict[str, Any]:
        """Wire payload for the remote sync endpoint."""
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "timestamp": self.updated_at,
        }


class SyncStatus(str, Enum):
    """Outcome of a reconciliation pass."""

    OFFLINE = "offline"
    UP_TO_DATE = "up_to_date"
    SYNCED = "synced"
    PARTIAL = "partial"
    FAILED = "failed"


class SyncTrigger(str, Enum):
    """What asked for a reconciliation pass."""

    TIMER = "timer"
    CONNECTIVITY = "connectivity"
    MANUAL = "manual"
    MESSAGE = "message"


@dataclass(frozen=True, slots=True)
class SyncReport:
    """Result of one reconciliation pass."""

    status: SyncStatus
    trigger: SyncTrigger = SyncTrigger.MANUAL
    synced: tuple[str, ...] = ()
    pending: tuple[str, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (SyncStatus.UP_TO_DATE, SyncStatus.SYNCED)


class GenerationState(str, Enum):
    """Lifecycle state of a cache generation."""

    INSTALLING = "installing"
    ACTIVE = "active"
    SUPERSEDED = "superseded"


@dataclass(slots=True)
class CacheGeneration:
    """The cache collections tied to one version identifier."""

    version: str
    prefix: str = "notepad"
    state: GenerationState = GenerationState.INSTALLING

    @property
    def shell(self) -> str:
        return f"{self.prefix}-{self.version}"

    @property
    def runtime(self) -> str:
        return f"{self.prefix}-runtime-{self.version}"

    @property
    def api(self) -> str:
        return f"{self.prefix}-api-{self.version}"

    @property
    def names(self) -> tuple[str, str, str]:
        return (self.shell, self.runtime, self.api)
