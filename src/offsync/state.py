"""Process-wide runtime state shared by the router and the reconciler."""

from offsync.types import CacheGeneration


class RuntimeState:
    """Connectivity flag and current cache generation.

    Created once at startup. ``set_online`` is called only by the
    connectivity monitor and ``set_generation`` only by the lifecycle
    controller; everything else reads.
    """

    __slots__ = ("_generation", "_online")

    def __init__(
        self,
        *,
        online: bool = True,
        generation: CacheGeneration | None = None,
    ) -> None:
        self._online = online
        self._generation = generation

    @property
    def online(self) -> bool:
        return self._online

    @property
    def generation(self) -> CacheGeneration | None:
        return self._generation

    def set_online(self, online: bool) -> bool:
        """Update the connectivity flag. Returns True if it changed."""
        changed = online != self._online
        self._online = online
        return changed

    def set_generation(self, generation: CacheGeneration) -> CacheGeneration | None:
        """Install a new current generation and return the previous one."""
        previous, self._generation = self._generation, generation
        return previous
