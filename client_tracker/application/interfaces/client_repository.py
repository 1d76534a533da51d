"""Abstract repository interface (port) for Client persistence."""

from abc import ABC, abstractmethod

from client_tracker.domain.entities import Client


class ClientRepository(ABC):
    """Port for client persistence — implemented in the infrastructure layer."""

    @abstractmethod
    async def get_by_id(self, client_id: str) -> Client | None:
        """Retrieve a single client by its UUID."""
        ...

    @abstractmethod
    async def get_all(
        self,
        *,
        status: str | None = None,
        priority: str | None = None,
        sort: list[str] | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Client]:
        """Retrieve a filtered, sorted, paginated list of clients.

        ``sort`` holds field names; a leading ``-`` means descending.
        """
        ...

    @abstractmethod
    async def create(self, client: Client) -> Client:
        """Persist a new client and return it."""
        ...

    @abstractmethod
    async def update(self, client: Client) -> Client:
        """Persist every mutable field of an existing client."""
        ...

    @abstractmethod
    async def delete(self, client_id: str) -> bool:
        """Delete a client. Returns True if deleted, False if not found."""
        ...
