"""Application service (use case) for Client operations on the backend."""

from client_tracker.application.interfaces import ClientRepository
from client_tracker.application.schemas.client import (
    ClientCreate,
    ClientUpdate,
    DocumentCreate,
    NoteCreate,
    ServiceCreate,
)
from client_tracker.domain.entities import Client
from client_tracker.domain.exceptions import EntityNotFoundError

DEFAULT_SORT = ["-created_at"]
_CLEARABLE = {"phone", "address", "service_needs", "location_details"}


class ClientService:
    """Orchestrates client CRUD logic. Depends on the repository port (DI)."""

    def __init__(self, repository: ClientRepository):
        self._repository = repository

    async def get_client(self, client_id: str) -> Client:
        client = await self._repository.get_by_id(client_id)
        if client is None:
            raise EntityNotFoundError("Client", client_id)
        return client

    async def list_clients(
        self,
        *,
        status: str | None = None,
        priority: str | None = None,
        sort: str | None = None,
        page: int = 1,
        limit: int = 100,
    ) -> list[Client]:
        """List clients; ``sort`` is a comma list, ``-`` prefix for descending."""
        sort_fields = [s.strip() for s in (sort or "").split(",") if s.strip()]
        return await self._repository.get_all(
            status=status,
            priority=priority,
            sort=sort_fields or DEFAULT_SORT,
            skip=(page - 1) * limit,
            limit=limit,
        )

    async def create_client(self, data: ClientCreate) -> Client:
        client = Client(**data.model_dump(exclude_none=True))
        return await self._repository.create(client)

    async def update_client(self, client_id: str, data: ClientUpdate) -> Client:
        client = await self.get_client(client_id)
        changes = data.model_dump(exclude_unset=True)
        # Only optional contact details may be cleared
        client.update({k: v for k, v in changes.items() if v is not None or k in _CLEARABLE})
        return await self._repository.update(client)

    async def delete_client(self, client_id: str) -> bool:
        exists = await self._repository.get_by_id(client_id)
        if exists is None:
            raise EntityNotFoundError("Client", client_id)
        return await self._repository.delete(client_id)

    # ── Embedded sub-records ────────────────────────────────────────

    async def add_note(self, client_id: str, data: NoteCreate) -> Client:
        client = await self.get_client(client_id)
        client.add_note(data.content)
        return await self._repository.update(client)

    async def add_service(self, client_id: str, data: ServiceCreate) -> Client:
        client = await self.get_client(client_id)
        client.add_service(data.model_dump(mode="json", exclude_none=True))
        return await self._repository.update(client)

    async def add_document(self, client_id: str, data: DocumentCreate) -> Client:
        client = await self.get_client(client_id)
        client.add_document(data.model_dump(mode="json", exclude_none=True))
        return await self._repository.update(client)
