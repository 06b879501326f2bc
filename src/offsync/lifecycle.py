"""Cache lifecycle: install the app shell, activate, collect old generations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from offsync.errors import ManifestInstallError, NetworkError
from offsync.events import SYNC_TRIGGERED, MessageChannel
from offsync.resource_cache import ResourceCache
from offsync.state import RuntimeState
from offsync.transport import Fetcher
from offsync.types import CacheGeneration, GenerationState, Request, Response

_logger = logging.getLogger(__name__)

APP_SHELL = (
    "/",
    "/index.html",
    "/styles.css",
    "/app.js",
    "/manifest.json",
)
SYNC_TAG = "sync-pending-notes"


class LifecycleController:
    """Drives one cache generation through install and activation.

    The version string is the only upgrade signal: a controller whose
    version matches the current generation does nothing on ``start``.
    """

    def __init__(
        self,
        cache: ResourceCache,
        fetch: Fetcher,
        state: RuntimeState,
        *,
        version: str,
        manifest: Sequence[str] = APP_SHELL,
        prefix: str = "notepad",
        channel: MessageChannel | None = None,
        install_attempts: int = 3,
    ) -> None:
        if install_attempts < 1:
            raise ValueError("install_attempts must be at least 1")
        self._cache = cache
        self._fetch = fetch
        self._state = state
        self._manifest = tuple(manifest)
        self._channel = channel
        self._install_attempts = install_attempts
        self.generation = CacheGeneration(version=version, prefix=prefix)
        self._installed = False

    async def start(self) -> bool:
        """Install and activate, unless this version is already current.

        Returns True if a new generation was activated.
        """
        current = self._state.generation
        if current is not None and current.version == self.generation.version:
            _logger.info(
                "Cache version %s unchanged; keeping current generation",
                self.generation.version,
            )
            return False
        await self.install()
        await self.activate()
        return True

    async def _fetch_shell_resource(self, url: str) -> tuple[Request, Response] | None:
        request = Request(url)
        try:
            response = await self._fetch(request)
        except NetworkError as e:
            _logger.warning("Failed to fetch app shell resource %s: %s", url, e)
            return None
        if not response.ok:
            _logger.warning(
                "App shell resource %s returned HTTP %d", url, response.status
            )
            return None
        return request, response

    async def install(self) -> None:
        """Fetch the whole manifest and commit it to the shell collection.

        All or nothing: if any resource fails nothing is committed, and a
        commit that is still incomplete after the retries is rolled back.
        """
        self.generation.state = GenerationState.INSTALLING
        _logger.info("Installing cache generation %s", self.generation.version)

        results = await asyncio.gather(
            *(self._fetch_shell_resource(url) for url in self._manifest)
        )
        failed = [url for url, result in zip(self._manifest, results) if result is None]
        if failed:
            raise ManifestInstallError(failed)

        pairs = [result for result in results if result is not None]
        expected = {request.key for request, _ in pairs}
        missing = expected
        for attempt in range(1, self._install_attempts + 1):
            shell = await self._cache.open(self.generation.shell)
            await shell.put_all(pairs)
            missing = expected - set(await shell.keys())
            if not missing:
                break
            _logger.warning(
                "App shell write incomplete on attempt %d, missing %s",
                attempt,
                sorted(missing),
            )
        else:
            await self._cache.delete(self.generation.shell)
            raise ManifestInstallError(
                sorted(missing), "App shell could not be committed completely"
            )

        self._installed = True
        _logger.info(
            "Cached %d app shell resources in %s", len(pairs), self.generation.shell
        )

    async def activate(self) -> list[str]:
        """Make this generation current and delete every other collection.

        Returns the names of the deleted collections.
        """
        if not self._installed:
            raise RuntimeError("Cannot activate a generation that is not installed")

        previous = self._state.set_generation(self.generation)
        self.generation.state = GenerationState.ACTIVE
        if previous is not None and previous is not self.generation:
            previous.state = GenerationState.SUPERSEDED

        reserved = set(self.generation.names)
        deleted = []
        for name in await self._cache.keys():
            if name not in reserved:
                _logger.info("Deleting old cache: %s", name)
                if await self._cache.delete(name):
                    deleted.append(name)
        _logger.info("Cache generation %s active", self.generation.version)
        return deleted

    async def handle_sync_event(self, tag: str) -> bool:
        """Relay a background sync event to clients as SYNC_TRIGGERED."""
        if tag != SYNC_TAG:
            _logger.debug("Ignoring sync event with tag %s", tag)
            return False
        if self._channel is None:
            _logger.warning("Background sync requested but no client channel is set")
            return False
        _logger.info("Background sync triggered; notifying clients")
        await self._channel.post({"type": SYNC_TRIGGERED})
        return True
