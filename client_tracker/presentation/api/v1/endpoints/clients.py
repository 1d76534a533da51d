"""Client CRUD endpoints, including embedded notes, services and documents."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from client_tracker.application.schemas.client import (
    ClientCreate,
    ClientResponse,
    ClientUpdate,
    DocumentCreate,
    NoteCreate,
    ServiceCreate,
)
from client_tracker.application.services import ClientService
from client_tracker.domain.entities import Client, ClientPriority, ClientStatus
from client_tracker.domain.exceptions import EntityNotFoundError
from client_tracker.infrastructure.dependencies import get_client_service

router = APIRouter(prefix="/clients", tags=["Clients"])


def _dump(client: Client, selection: dict[str, set[str]] | None = None) -> dict[str, Any]:
    body = ClientResponse.model_validate(client, from_attributes=True)
    return body.model_dump(mode="json", **(selection or {}))


def _client_envelope(
    client: Client, selection: dict[str, set[str]] | None = None
) -> dict[str, Any]:
    return {"status": "success", "data": {"client": _dump(client, selection)}}


def _field_selection(fields: str | None) -> dict[str, set[str]]:
    """Dump options for a ``fields`` query: ``name,status`` keeps only those,
    ``-notes,-documents`` drops those. The id is always returned and unknown
    names are ignored.
    """
    names = [name.strip() for name in (fields or "").split(",") if name.strip()]
    included = {name for name in names if not name.startswith("-")}
    if included:
        return {"include": included | {"id"}}
    excluded = {name[1:] for name in names} - {"id"}
    return {"exclude": excluded} if excluded else {}


def _not_found(exc: EntityNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.get("")
async def list_clients(
    status_filter: ClientStatus | None = Query(None, alias="status"),
    priority: ClientPriority | None = Query(None),
    sort: str | None = Query(None, description="Comma list of fields, '-' for descending"),
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    fields: str | None = Query(None, description="Comma list of fields to return, '-' to omit"),
    service: ClientService = Depends(get_client_service),
) -> dict[str, Any]:
    """Retrieve a filtered, sorted, paginated list of clients."""
    clients = await service.list_clients(
        status=status_filter.value if status_filter else None,
        priority=priority.value if priority else None,
        sort=sort,
        page=page,
        limit=limit,
    )
    selection = _field_selection(fields)
    return {
        "status": "success",
        "results": len(clients),
        "data": {
            "clients": [_dump(c, selection) for c in clients]
        },
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_client(
    data: ClientCreate,
    service: ClientService = Depends(get_client_service),
) -> dict[str, Any]:
    """Create a new client."""
    client = await service.create_client(data)
    return _client_envelope(client)


@router.get("/{client_id}")
async def get_client(
    client_id: str,
    fields: str | None = Query(None, description="Comma list of fields to return, '-' to omit"),
    service: ClientService = Depends(get_client_service),
) -> dict[str, Any]:
    """Retrieve a single client by ID."""
    try:
        client = await service.get_client(client_id)
    except EntityNotFoundError as e:
        raise _not_found(e)
    return _client_envelope(client, _field_selection(fields))


@router.patch("/{client_id}")
async def update_client(
    client_id: str,
    data: ClientUpdate,
    service: ClientService = Depends(get_client_service),
) -> dict[str, Any]:
    """Update the given fields of an existing client."""
    try:
        client = await service.update_client(client_id, data)
    except EntityNotFoundError as e:
        raise _not_found(e)
    return _client_envelope(client)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(
    client_id: str,
    service: ClientService = Depends(get_client_service),
) -> Response:
    """Delete a client by ID."""
    try:
        await service.delete_client(client_id)
    except EntityNotFoundError as e:
        raise _not_found(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{client_id}/notes")
async def add_note(
    client_id: str,
    data: NoteCreate,
    service: ClientService = Depends(get_client_service),
) -> dict[str, Any]:
    try:
        client = await service.add_note(client_id, data)
    except EntityNotFoundError as e:
        raise _not_found(e)
    return _client_envelope(client)


@router.post("/{client_id}/services")
async def add_service(
    client_id: str,
    data: ServiceCreate,
    service: ClientService = Depends(get_client_service),
) -> dict[str, Any]:
    try:
        client = await service.add_service(client_id, data)
    except EntityNotFoundError as e:
        raise _not_found(e)
    return _client_envelope(client)


@router.post("/{client_id}/documents")
async def add_document(
    client_id: str,
    data: DocumentCreate,
    service: ClientService = Depends(get_client_service),
) -> dict[str, Any]:
    try:
        client = await service.add_document(client_id, data)
    except EntityNotFoundError as e:
        raise _not_found(e)
    return _client_envelope(client)
