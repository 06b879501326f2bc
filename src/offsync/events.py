"""Connectivity signal and cross-process message channel."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Literal

from offsync.state import RuntimeState

_logger = logging.getLogger(__name__)

SYNC_TRIGGERED = "SYNC_TRIGGERED"

Connectivity = Literal["online", "offline"]
ConnectivityListener = Callable[[Connectivity], Awaitable[None]]
Message = dict[str, Any]
MessageListener = Callable[[Message], Awaitable[None]]


async def _deliver(listeners: list[Callable[[Any], Awaitable[None]]], event: Any) -> None:
    """Call every listener; a failing listener is logged and never stops the rest."""
    results = await asyncio.gather(
        *(listener(event) for listener in listeners), return_exceptions=True
    )
    for result in results:
        if isinstance(result, Exception):
            _logger.error("Listener failed for %r", event, exc_info=result)


class ConnectivityMonitor:
    """Edge-triggered online/offline events backed by the runtime state."""

    def __init__(self, state: RuntimeState) -> None:
        self._state = state
        self._listeners: list[ConnectivityListener] = []

    @property
    def online(self) -> bool:
        return self._state.online

    def subscribe(self, listener: ConnectivityListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    async def set_online(self, online: bool) -> None:
        """Record connectivity. Listeners only hear about actual transitions."""
        if not self._state.set_online(online):
            return
        event: Connectivity = "online" if online else "offline"
        _logger.info("Connectivity changed: %s", event)
        await _deliver(list(self._listeners), event)


class MessageChannel:
    """In-process stand-in for the worker <-> client message channel."""

    def __init__(self) -> None:
        self._listeners: list[MessageListener] = []

    def subscribe(self, listener: MessageListener) -> Callable[[], None]:
        """Register a client; returns a function that unregisters it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    async def post(self, message: Message) -> None:
        """Deliver a message to every subscribed client."""
        await _deliver(list(self._listeners), dict(message))
