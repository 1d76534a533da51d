"""Abstract remote client interface — port for talking to the tracker API.

The sync layer only depends on this contract; the httpx implementation
lives in the infrastructure layer and tests substitute in-memory fakes.
"""

from abc import ABC, abstractmethod
from typing import Any


class RemoteClient(ABC):
    """Port — sends one request to the backend and classifies its outcome."""

    @abstractmethod
    async def send(
        self,
        resource: str,
        *,
        method: str = "GET",
        payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a request to ``resource`` (a path such as ``/clients/42``).

        Returns:
            The ``data`` section of the success envelope (``{}`` when the
            backend replies without a body).

        Raises:
            ConnectivityError: no response was received, including timeouts.
            ServerError: the backend answered with a 5xx or a malformed body.
            ClientError: the backend answered with a 4xx; retrying is pointless.
        """
        ...
