"""Explicitly owned HTTP client handles for every external service.

ServiceClients opens one httpx.AsyncClient per service (Graph, ClickUp,
Fireflies) and closes them together. It is created by whoever owns the
process lifetime (the FastAPI lifespan, or a CLI command) and handed to
the adapters by reference; nothing holds client handles at module level.

Usage:
    async with ServiceClients(settings) as clients:
        teams = TeamsMessagingAdapter(clients.graph)
        ...
"""

from __future__ import annotations

from types import TracebackType

import httpx
import structlog

from src.orchestrator.config import Settings

logger = structlog.get_logger(__name__)


class ServiceClients:
    """Owner of the per-service httpx clients.

    Args:
        settings: Application settings (base URLs, tokens, timeout).
        transport: Optional transport shared by all clients. Tests pass an
            httpx.MockTransport here.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._graph: httpx.AsyncClient | None = None
        self._clickup: httpx.AsyncClient | None = None
        self._fireflies: httpx.AsyncClient | None = None

    @property
    def is_open(self) -> bool:
        return self._graph is not None

    async def open(self) -> ServiceClients:
        """Create the client handles. Calling open() twice is a no-op."""
        if self.is_open:
            return self

        settings = self._settings
        timeout = httpx.Timeout(settings.EXTERNAL_CALL_TIMEOUT)

        self._graph = httpx.AsyncClient(
            base_url=settings.GRAPH_BASE_URL,
            headers={"Authorization": f"Bearer {settings.GRAPH_TOKEN}"},
            timeout=timeout,
            transport=self._transport,
        )
        self._clickup = httpx.AsyncClient(
            base_url=settings.CLICKUP_BASE_URL,
            headers={"Authorization": settings.CLICKUP_TOKEN},
            timeout=timeout,
            transport=self._transport,
        )
        self._fireflies = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {settings.FIREFLIES_API_KEY}"},
            timeout=timeout,
            transport=self._transport,
        )
        logger.info("clients.opened", timeout_seconds=settings.EXTERNAL_CALL_TIMEOUT)
        return self

    async def aclose(self) -> None:
        """Close every open client handle."""
        for client in (self._graph, self._clickup, self._fireflies):
            if client is not None:
                await client.aclose()
        was_open = self.is_open
        self._graph = None
        self._clickup = None
        self._fireflies = None
        if was_open:
            logger.info("clients.closed")

    async def __aenter__(self) -> ServiceClients:
        return await self.open()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    @property
    def graph(self) -> httpx.AsyncClient:
        return self._require(self._graph, "graph")

    @property
    def clickup(self) -> httpx.AsyncClient:
        return self._require(self._clickup, "clickup")

    @property
    def fireflies(self) -> httpx.AsyncClient:
        return self._require(self._fireflies, "fireflies")

    @staticmethod
    def _require(client: httpx.AsyncClient | None, name: str) -> httpx.AsyncClient:
        if client is None:
            raise RuntimeError(f"ServiceClients is not open (requested {name} client)")
        return client
