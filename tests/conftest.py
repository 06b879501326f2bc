"""Shared pytest fixtures."""

import asyncio
from collections.abc import AsyncIterator

import pytest

from offsync import (
    AsyncMemoryCacheStorage,
    AsyncMemoryRecordStore,
    CacheGeneration,
    GenerationState,
    NetworkError,
    Note,
    NoteStore,
    Request,
    ResourceCache,
    Response,
    RuntimeState,
    Strategies,
    UpstreamRejection,
)


def ok(body: bytes | str, status: int = 200) -> Response:
    """Build a response snapshot from a body."""
    if isinstance(body, str):
        body = body.encode()
    return Response(status=status, body=body)


class FakeFetcher:
    """Network stand-in: canned responses per URL, recorded calls."""

    def __init__(self, responses: dict[str, Response | Exception] | None = None) -> None:
        self.responses: dict[str, Response | Exception] = dict(responses or {})
        self.calls: list[Request] = []
        self.offline = False
        self.gate: asyncio.Event | None = None

    async def __call__(self, request: Request) -> Response:
        self.calls.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.offline:
            raise NetworkError(f"offline: {request.url}")
        result = self.responses.get(request.url)
        if result is None:
            return Response(status=404, body=b"not found", url=request.url)
        if isinstance(result, Exception):
            raise result
        return result


class FakeEndpoint:
    """Remote sync endpoint stand-in."""

    def __init__(self) -> None:
        self.received: list[Note] = []
        self.attempts = 0
        self.reject: dict[str, int] = {}  # note id -> status
        self.hang: set[str] = set()  # note ids that never get an answer
        self.fail_on_attempt: int | None = None  # transport failure at attempt N
        self.gate: asyncio.Event | None = None

    async def submit(self, note: Note) -> None:
        self.attempts += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_on_attempt is not None and self.attempts >= self.fail_on_attempt:
            raise NetworkError("remote unreachable")
        if note.id in self.hang:
            await asyncio.Event().wait()
        if note.id in self.reject:
            raise UpstreamRejection(self.reject[note.id])
        self.received.append(note)


@pytest.fixture
def fetcher() -> FakeFetcher:
    """Create a fresh FakeFetcher for each test."""
    return FakeFetcher()


@pytest.fixture
def endpoint() -> FakeEndpoint:
    """Create a fresh FakeEndpoint for each test."""
    return FakeEndpoint()


@pytest.fixture
def cache_storage() -> AsyncMemoryCacheStorage:
    """Create a fresh in-memory cache storage for each test."""
    return AsyncMemoryCacheStorage()


@pytest.fixture
def record_store() -> AsyncMemoryRecordStore:
    """Create a fresh in-memory record store for each test."""
    return AsyncMemoryRecordStore()


@pytest.fixture
def cache(cache_storage: AsyncMemoryCacheStorage) -> ResourceCache:
    return ResourceCache(cache_storage)


@pytest.fixture
def generation() -> CacheGeneration:
    return CacheGeneration("v1", state=GenerationState.ACTIVE)


@pytest.fixture
def state(generation: CacheGeneration) -> RuntimeState:
    """Online runtime state with an active v1 generation."""
    return RuntimeState(online=True, generation=generation)


@pytest.fixture
async def note_store(record_store: AsyncMemoryRecordStore) -> NoteStore:
    return await NoteStore.open(record_store)


@pytest.fixture
async def strategies(
    cache: ResourceCache, fetcher: FakeFetcher, state: RuntimeState
) -> AsyncIterator[Strategies]:
    strategies = Strategies(cache, fetcher, state)
    yield strategies
    await strategies.join()
