"""Connectivity monitor port — tells the sync layer whether the backend is reachable."""

import logging
from abc import ABC
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

ConnectivityListener = Callable[[bool], Awaitable[None]]


class ConnectivityMonitor(ABC):
    """Port for online/offline detection.

    Concrete monitors decide *how* reachability is observed and report it
    through ``_set_online``; listeners are only awaited on an actual
    transition, in registration order.
    """

    def __init__(self, online: bool = True) -> None:
        self._online = online
        self._listeners: list[ConnectivityListener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def add_listener(self, listener: ConnectivityListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: ConnectivityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def start(self) -> None:
        """Begin observing connectivity. No-op for monitors driven externally."""

    async def stop(self) -> None:
        """Stop observing connectivity."""

    async def check_now(self) -> bool:
        """Re-check reachability immediately; returns the resulting state."""
        return self._online

    async def report_unreachable(self) -> None:
        """Record that a request just failed to reach the backend.

        Flips the monitor offline so that the next observed recovery is a
        real offline → online transition.
        """
        await self._set_online(False)

    async def _set_online(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        for listener in list(self._listeners):
            try:
                await listener(online)
            except Exception:
                logger.exception("Connectivity listener failed")
