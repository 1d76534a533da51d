"""Domain-specific exceptions — framework-independent."""


class EntityNotFoundError(Exception):
    """Raised when a requested entity does not exist."""

    def __init__(self, entity_type: str, entity_id: int | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id '{entity_id}' not found")


class RemoteRequestError(Exception):
    """Base class for failures of a request sent to the tracker API.

    ``transient`` tells the sync layer whether the same request may succeed
    on a later attempt (and is therefore eligible for the offline queue).
    """

    transient: bool = False

    def __init__(self, status_code: int, message: str, resource: str = ""):
        self.status_code = status_code
        self.message = message
        self.resource = resource
        super().__init__(f"[{status_code}] {resource or '-'}: {message}")


class ConnectivityError(RemoteRequestError):
    """No response reached us from the backend (network down, DNS, timeout)."""

    transient = True

    def __init__(self, message: str, resource: str = ""):
        super().__init__(0, message, resource)


class ServerError(RemoteRequestError):
    """The backend was reachable but failed on its side (5xx)."""

    transient = True


class ClientError(RemoteRequestError):
    """The backend rejected the request for a reason a retry will not change (4xx)."""

    transient = False


class LocalPersistenceError(Exception):
    """Raised when the durable local store cannot be read or written."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Local storage failure for '{key}': {reason}")
