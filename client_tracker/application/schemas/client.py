"""Pydantic DTOs (Data Transfer Objects) for the Client feature."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from client_tracker.domain.entities import ClientPriority, ClientStatus

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

ServiceStatus = Literal["Scheduled", "In Progress", "Completed", "Cancelled"]


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _lower(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


class ClientCreate(BaseModel):
    """Schema for creating a new client."""

    name: str = Field(..., min_length=1, max_length=200, examples=["Oak St Job"])
    email: str = Field(..., max_length=254, pattern=EMAIL_PATTERN, examples=["a@b.com"])
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=500)
    service_needs: str | None = None
    location_details: str | None = None
    status: ClientStatus = ClientStatus.NEW
    priority: ClientPriority = ClientPriority.MEDIUM
    inquiry_date: datetime | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: Any) -> Any:
        return _lower(value)


class ClientUpdate(BaseModel):
    """Schema for updating an existing client — all fields optional."""

    name: str | None = Field(None, min_length=1, max_length=200)
    email: str | None = Field(None, max_length=254, pattern=EMAIL_PATTERN)
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=500)
    service_needs: str | None = None
    location_details: str | None = None
    status: ClientStatus | None = None
    priority: ClientPriority | None = None
    inquiry_date: datetime | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: Any) -> Any:
        return _lower(value)


class NoteCreate(BaseModel):
    content: str = Field(..., min_length=1)


class ServiceCreate(BaseModel):
    type: str = Field(..., min_length=1, max_length=100, examples=["Tree Removal"])
    description: str | None = None
    date: datetime | None = None
    cost: float | None = Field(None, ge=0)
    status: ServiceStatus = "Scheduled"


class DocumentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    file_url: str = Field(..., min_length=1)
    file_type: str | None = None


class ClientResponse(BaseModel):
    """Schema returned to the client."""

    id: str
    name: str
    email: str
    phone: str | None
    address: str | None
    service_needs: str | None
    location_details: str | None
    status: ClientStatus
    priority: ClientPriority
    inquiry_date: datetime
    notes: list[dict[str, Any]]
    services: list[dict[str, Any]]
    documents: list[dict[str, Any]]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
