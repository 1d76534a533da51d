"""Concrete repository implementation for Client backed by SQLAlchemy."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from client_tracker.application.interfaces import ClientRepository
from client_tracker.domain.entities import Client, ClientPriority, ClientStatus
from client_tracker.infrastructure.database.models import ClientModel

_SORTABLE = {
    "name": ClientModel.name,
    "email": ClientModel.email,
    "status": ClientModel.status,
    "priority": ClientModel.priority,
    "inquiry_date": ClientModel.inquiry_date,
    "created_at": ClientModel.created_at,
    "updated_at": ClientModel.updated_at,
}


class SQLAlchemyClientRepository(ClientRepository):
    """Implements the ClientRepository port using SQLAlchemy async sessions."""

    def __init__(self, session: AsyncSession):
        self._session = session

    def _to_entity(self, model: ClientModel) -> Client:
        """Map ORM model → domain entity."""
        return Client(
            id=model.id,
            name=model.name,
            email=model.email,
            phone=model.phone,
            address=model.address,
            service_needs=model.service_needs,
            location_details=model.location_details,
            status=ClientStatus(model.status),
            priority=ClientPriority(model.priority),
            inquiry_date=model.inquiry_date,
            notes=list(model.notes or []),
            services=list(model.services or []),
            documents=list(model.documents or []),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: Client) -> ClientModel:
        """Map domain entity → ORM model (for creation)."""
        model = ClientModel(id=entity.id, created_at=entity.created_at)
        self._copy_fields(entity, model)
        return model

    @staticmethod
    def _copy_fields(entity: Client, model: ClientModel) -> None:
        model.name = entity.name
        model.email = entity.email
        model.phone = entity.phone
        model.address = entity.address
        model.service_needs = entity.service_needs
        model.location_details = entity.location_details
        model.status = ClientStatus(entity.status).value
        model.priority = ClientPriority(entity.priority).value
        model.inquiry_date = entity.inquiry_date
        # New list objects so the JSON columns are flagged as modified
        model.notes = list(entity.notes)
        model.services = list(entity.services)
        model.documents = list(entity.documents)
        model.updated_at = entity.updated_at

    async def get_by_id(self, client_id: str) -> Client | None:
        result = await self._session.get(ClientModel, client_id)
        return self._to_entity(result) if result else None

    async def get_all(
        self,
        *,
        status: str | None = None,
        priority: str | None = None,
        sort: list[str] | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Client]:
        stmt = select(ClientModel)

        if status is not None:
            stmt = stmt.where(ClientModel.status == status)
        if priority is not None:
            stmt = stmt.where(ClientModel.priority == priority)

        order_by = []
        for field_name in sort or ["-created_at"]:
            column = _SORTABLE.get(field_name.lstrip("-"))
            if column is None:
                continue
            order_by.append(column.desc() if field_name.startswith("-") else column.asc())
        if order_by:
            stmt = stmt.order_by(*order_by)

        stmt = stmt.offset(skip).limit(limit)
        result = await self._session.execute(stmt)
        return [self._to_entity(row) for row in result.scalars().all()]

    async def create(self, client: Client) -> Client:
        model = self._to_model(client)
        self._session.add(model)
        await self._session.flush()
        return self._to_entity(model)

    async def update(self, client: Client) -> Client:
        model = await self._session.get(ClientModel, client.id)
        if model is None:
            raise ValueError(f"Client {client.id} not found in database")
        self._copy_fields(client, model)
        await self._session.flush()
        return self._to_entity(model)

    async def delete(self, client_id: str) -> bool:
        model = await self._session.get(ClientModel, client_id)
        if model is None:
            return False
        await self._session.delete(model)
        await self._session.flush()
        return True
