"""Tracker API client — implements the RemoteClient interface.

Talks to the client tracker REST API with httpx and maps every outcome onto
the three-way failure taxonomy the sync layer relies on:

    no response (network, DNS, timeout)   → ConnectivityError  (transient)
    5xx or an unreadable success body     → ServerError        (transient)
    4xx                                   → ClientError        (definitive)
"""

import logging
from collections.abc import Callable
from typing import Any

import httpx

from client_tracker.application.interfaces import RemoteClient
from client_tracker.domain.exceptions import ClientError, ConnectivityError, ServerError

logger = logging.getLogger(__name__)

TokenSource = Callable[[], str | None]


class TrackerApiClient(RemoteClient):
    """Infrastructure adapter — connects to the client tracker API.

    ``token`` is either a fixed bearer token or a callable returning the
    current one (so a login flow can rotate it without rebuilding the client).
    """

    def __init__(
        self,
        base_url: str,
        token: str | TokenSource | None = None,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._http_client = http_client

    def _get_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self._token() if callable(self._token) else self._token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Return the injected client or create a new one."""
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout)

    async def send(
        self,
        resource: str,
        *,
        method: str = "GET",
        payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}/{resource.lstrip('/')}"
        client = await self._get_client()
        should_close = self._http_client is None

        try:
            try:
                response = await client.request(
                    method,
                    url,
                    headers=self._get_headers(),
                    json=payload,
                    params=params,
                )
            except httpx.TransportError as exc:
                # TimeoutException is a TransportError: a timeout is a connectivity failure
                raise ConnectivityError(
                    f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__,
                    resource,
                ) from exc

            logger.debug("%s %s → %d", method, resource, response.status_code)
            if response.status_code >= 400:
                self._raise_request_error(response, resource)
            return self._parse_envelope(response, resource)

        finally:
            if should_close:
                await client.aclose()

    @staticmethod
    def _parse_envelope(response: httpx.Response, resource: str) -> dict[str, Any]:
        """Return the ``data`` section of a success envelope."""
        if response.status_code == 204 or not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as exc:
            raise ServerError(response.status_code, "Response is not valid JSON", resource) from exc
        if not isinstance(body, dict):
            raise ServerError(response.status_code, "Unexpected response envelope", resource)
        if body.get("status") not in (None, "success"):
            raise ServerError(
                response.status_code,
                str(body.get("message") or "Request reported failure"),
                resource,
            )
        data = body.get("data")
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _raise_request_error(response: httpx.Response, resource: str) -> None:
        """Raise ServerError (5xx) or ClientError (4xx) from an httpx Response."""
        try:
            body = response.json()
            message = body.get("message") or body.get("detail") or response.text
        except (ValueError, AttributeError):
            message = response.text
        message = str(message) or response.reason_phrase

        if response.status_code >= 500:
            raise ServerError(response.status_code, message, resource)
        raise ClientError(response.status_code, message, resource)
