from .change_notifier import ChangeNotifier
from .client_service import ClientService
from .local_mirror import LocalMirror
from .offline_client_service import OfflineClientService
from .offline_queue import OfflineQueue
from .sync_coordinator import SyncCoordinator

__all__ = [
    "ChangeNotifier",
    "ClientService",
    "LocalMirror",
    "OfflineClientService",
    "OfflineQueue",
    "SyncCoordinator",
]
