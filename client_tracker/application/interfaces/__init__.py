from .client_repository import ClientRepository
from .connectivity_monitor import ConnectivityListener, ConnectivityMonitor
from .local_store import LocalStore
from .remote_client import RemoteClient

__all__ = [
    "ClientRepository",
    "ConnectivityListener",
    "ConnectivityMonitor",
    "LocalStore",
    "RemoteClient",
]
