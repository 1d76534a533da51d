"""Unit tests for the backend ClientService."""

import pytest

from client_tracker.application.interfaces import ClientRepository
from client_tracker.application.schemas import (
    ClientCreate,
    ClientUpdate,
    DocumentCreate,
    NoteCreate,
    ServiceCreate,
)
from client_tracker.application.services import ClientService
from client_tracker.domain.entities import Client, ClientPriority, ClientStatus
from client_tracker.domain.exceptions import EntityNotFoundError


class FakeClientRepository(ClientRepository):
    """In-memory fake repository for unit testing."""

    def __init__(self):
        self._clients: dict[str, Client] = {}
        self.last_query: dict | None = None

    async def get_by_id(self, client_id: str) -> Client | None:
        return self._clients.get(client_id)

    async def get_all(self, *, status=None, priority=None, sort=None, skip=0, limit=100):
        self.last_query = {"status": status, "priority": priority, "sort": sort, "skip": skip, "limit": limit}
        clients = [
            c
            for c in self._clients.values()
            if (status is None or c.status == status) and (priority is None or c.priority == priority)
        ]
        return clients[skip : skip + limit]

    async def create(self, client: Client) -> Client:
        self._clients[client.id] = client
        return client

    async def update(self, client: Client) -> Client:
        if client.id not in self._clients:
            raise ValueError(f"Client {client.id} not found")
        self._clients[client.id] = client
        return client

    async def delete(self, client_id: str) -> bool:
        return self._clients.pop(client_id, None) is not None


@pytest.fixture
def repository() -> FakeClientRepository:
    return FakeClientRepository()


@pytest.fixture
def service(repository: FakeClientRepository) -> ClientService:
    return ClientService(repository)


@pytest.mark.asyncio
async def test_create_client_normalizes_input(service: ClientService):
    client = await service.create_client(ClientCreate(name="  Acme  ", email="Ops@Acme.COM"))

    assert client.id
    assert client.name == "Acme"
    assert client.email == "ops@acme.com"
    assert client.status is ClientStatus.NEW
    assert client.priority is ClientPriority.MEDIUM


def test_invalid_email_is_rejected():
    with pytest.raises(ValueError):
        ClientCreate(name="Acme", email="not-an-email")


@pytest.mark.asyncio
async def test_get_client_not_found(service: ClientService):
    with pytest.raises(EntityNotFoundError):
        await service.get_client("missing")


@pytest.mark.asyncio
async def test_list_clients_translates_page_and_sort(
    service: ClientService, repository: FakeClientRepository
):
    await service.list_clients(status="Active", sort="name, -created_at", page=3, limit=20)

    assert repository.last_query == {
        "status": "Active",
        "priority": None,
        "sort": ["name", "-created_at"],
        "skip": 40,
        "limit": 20,
    }


@pytest.mark.asyncio
async def test_list_clients_defaults_to_newest_first(
    service: ClientService, repository: FakeClientRepository
):
    await service.list_clients()
    assert repository.last_query["sort"] == ["-created_at"]


@pytest.mark.asyncio
async def test_update_client_applies_only_given_fields(service: ClientService):
    created = await service.create_client(
        ClientCreate(name="Acme", email="a@b.com", phone="555-0100")
    )

    updated = await service.update_client(
        created.id, ClientUpdate(status="Active", phone=None, name=None)
    )

    assert updated.status is ClientStatus.ACTIVE
    assert updated.phone is None
    assert updated.name == "Acme"
    assert updated.email == "a@b.com"


@pytest.mark.asyncio
async def test_delete_client(service: ClientService):
    created = await service.create_client(ClientCreate(name="Acme", email="a@b.com"))

    assert await service.delete_client(created.id) is True
    with pytest.raises(EntityNotFoundError):
        await service.delete_client(created.id)


@pytest.mark.asyncio
async def test_sub_records_get_their_own_ids(service: ClientService):
    created = await service.create_client(ClientCreate(name="Acme", email="a@b.com"))

    await service.add_note(created.id, NoteCreate(content="Gate code 1234"))
    await service.add_service(created.id, ServiceCreate(type="Pruning", cost=250))
    client = await service.add_document(
        created.id, DocumentCreate(name="quote.pdf", file_url="/files/quote.pdf")
    )

    assert client.notes[0]["content"] == "Gate code 1234"
    assert client.services[0]["status"] == "Scheduled"
    assert client.services[0]["cost"] == 250
    assert client.documents[0]["uploaded_at"]
    ids = {client.notes[0]["id"], client.services[0]["id"], client.documents[0]["id"]}
    assert len(ids) == 3


@pytest.mark.asyncio
async def test_add_note_to_missing_client(service: ClientService):
    with pytest.raises(EntityNotFoundError):
        await service.add_note("missing", NoteCreate(content="x"))
