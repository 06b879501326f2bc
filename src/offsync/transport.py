"""Transport protocols: the network fetcher and the remote sync endpoint."""

from typing import Protocol, runtime_checkable

from offsync.types import Note, Request, Response


@runtime_checkable
class Fetcher(Protocol):
    """Performs a network request.

    Returns a response for any HTTP status and raises NetworkError when no
    response could be obtained.
    """

    async def __call__(self, request: Request) -> Response:
        ...


@runtime_checkable
class SyncEndpoint(Protocol):
    """Accepts one note per call.

    Returns on a 2xx acknowledgment, raises UpstreamRejection on any other
    status and NetworkError when the remote is unreachable.
    """

    async def submit(self, note: Note) -> None:
        ...
