"""HTTP connectivity monitor — polls the tracker API health endpoint."""

import asyncio
import logging

import httpx

from client_tracker.application.interfaces import ConnectivityMonitor

logger = logging.getLogger(__name__)


class HttpConnectivityMonitor(ConnectivityMonitor):
    """Asyncio poller that reports the API as online while its health check answers.

    Any HTTP response below 500 counts as reachable; a transport failure,
    a timeout or a 5xx counts as offline. Runs as an asyncio.Task between
    ``start()`` and ``stop()``.
    """

    def __init__(
        self,
        health_url: str,
        interval: float = 15.0,
        timeout: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
        online: bool = True,
    ) -> None:
        super().__init__(online=online)
        self._health_url = health_url
        self._interval = interval
        self._timeout = timeout
        self._http_client = http_client
        self._running = False
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        """Probe once, then keep probing in the background."""
        if self._running:
            return
        self._running = True
        await self.check_now()
        self._task = asyncio.create_task(self._loop())
        logger.info("Connectivity monitor started (every %.0fs)", self._interval)

    async def stop(self) -> None:
        """Gracefully stop the polling loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Connectivity monitor stopped")

    async def check_now(self) -> bool:
        await self._set_online(await self._probe())
        return self.is_online

    async def _loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            try:
                await self.check_now()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Connectivity check failed")

    async def _probe(self) -> bool:
        client = self._http_client or httpx.AsyncClient(timeout=self._timeout)
        should_close = self._http_client is None
        try:
            response = await client.get(self._health_url)
        except httpx.TransportError as exc:
            logger.debug("Health check unreachable: %s", exc)
            return False
        finally:
            if should_close:
                await client.aclose()
        return response.status_code < 500
