"""Abstract key/value store interface — port for durable on-device state."""

from abc import ABC, abstractmethod
from typing import Any


class LocalStore(ABC):
    """Port for the durable local storage backing the mirror and the queue.

    Values are JSON-compatible. Implementations raise LocalPersistenceError
    when a value cannot be read or written.
    """

    @abstractmethod
    def read(self, key: str) -> Any | None:
        """Return the value stored under ``key`` or None if nothing is stored."""
        ...

    @abstractmethod
    def write(self, key: str, value: Any) -> None:
        """Replace the value stored under ``key``; durable once this returns."""
        ...
