"""FastAPI dependency injection — wires infrastructure to application layer."""

from collections.abc import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from client_tracker.application.services import ClientService
from client_tracker.infrastructure.database.session import get_db_session
from client_tracker.infrastructure.database.repositories import SQLAlchemyClientRepository


async def get_client_service(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[ClientService, None]:
    """Provides a ClientService instance with its repository wired up."""
    repository = SQLAlchemyClientRepository(session)
    yield ClientService(repository)
