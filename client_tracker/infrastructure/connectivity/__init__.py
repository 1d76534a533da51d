from .http_connectivity_monitor import HttpConnectivityMonitor

__all__ = ["HttpConnectivityMonitor"]
