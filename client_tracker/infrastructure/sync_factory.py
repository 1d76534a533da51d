"""Wires the offline client service from settings — the client-side counterpart of dependencies.py."""

import httpx

from client_tracker.application.services import (
    ChangeNotifier,
    OfflineClientService,
    SyncCoordinator,
)
from client_tracker.config import Settings, get_settings
from client_tracker.infrastructure.api import TrackerApiClient
from client_tracker.infrastructure.connectivity import HttpConnectivityMonitor
from client_tracker.infrastructure.logging.log_config import setup_logging
from client_tracker.infrastructure.storage import JsonFileStore


def build_offline_client_service(
    settings: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> OfflineClientService:
    """Provides an OfflineClientService talking to ``settings.api_base_url``.

    ``http_client`` is shared by the API client and the connectivity monitor
    when given; otherwise each request uses a short-lived client.
    """
    settings = settings or get_settings()
    setup_logging(settings)
    base_url = settings.api_base_url.rstrip("/")

    remote = TrackerApiClient(
        base_url=base_url,
        token=settings.api_token or None,
        timeout=settings.api_timeout,
        http_client=http_client,
    )
    connectivity = HttpConnectivityMonitor(
        health_url=f"{base_url}/health",
        interval=settings.connectivity_check_interval,
        timeout=settings.api_timeout,
        http_client=http_client,
    )
    coordinator = SyncCoordinator(
        remote,
        JsonFileStore(settings.offline_storage_dir),
        connectivity,
        notifier=ChangeNotifier(),
    )
    return OfflineClientService(coordinator, remote)
