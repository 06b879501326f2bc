"""Error taxonomy for offsync."""

from collections.abc import Sequence


class OffsyncError(Exception):
    """Base class for all offsync errors."""


class StorageError(OffsyncError):
    """A persistent store could not be opened or a transaction failed."""


class NetworkError(OffsyncError):
    """A fetch or connect attempt failed before a response arrived."""


class UpstreamRejection(NetworkError):
    """The remote answered with a non-success status."""

    def __init__(self, status: int, message: str | None = None) -> None:
        super().__init__(message or f"HTTP {status}")
        self.status = status


class ManifestInstallError(OffsyncError):
    """One or more app shell resources could not be installed."""

    def __init__(self, keys: Sequence[str], message: str | None = None) -> None:
        self.keys = list(keys)
        super().__init__(
            message or f"Failed to install app shell: {', '.join(self.keys)}"
        )
