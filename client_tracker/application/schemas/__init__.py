from .client import (
    ClientCreate,
    ClientResponse,
    ClientUpdate,
    DocumentCreate,
    NoteCreate,
    ServiceCreate,
)

__all__ = [
    "ClientCreate",
    "ClientResponse",
    "ClientUpdate",
    "DocumentCreate",
    "NoteCreate",
    "ServiceCreate",
]
