"""Shared outbound HTTP connection pool, one keep-alive client per origin."""

import asyncio
import logging
import time
from typing import Any
from urllib.parse import urlsplit

import httpx

from solarsync_engine.common.config import SolarSyncSettings

logger = logging.getLogger(__name__)


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for a URL."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"Not an absolute URL: {url!r}")
    return f"{parts.scheme}://{parts.netloc}".lower()


class ConnectionPool:
    """Keeps an ``httpx.AsyncClient`` per remote origin.

    Every vendor adapter shares one pool, so concurrent syncs against the same
    vendor host reuse the same bounded set of keep-alive connections.
    """

    def __init__(
        self,
        settings: SolarSyncSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self._transport = transport
        self._clients: dict[str, httpx.AsyncClient] = {}
        self._lock = asyncio.Lock()

    def _build_client(self, origin: str) -> httpx.AsyncClient:
        limits = httpx.Limits(
            max_connections=self.settings.http_max_connections,
            max_keepalive_connections=self.settings.http_max_keepalive,
            keepalive_expiry=self.settings.http_keepalive_expiry,
        )
        return httpx.AsyncClient(
            base_url=origin,
            limits=limits,
            timeout=self.settings.http_timeout,
            transport=self._transport,
        )

    async def client_for(self, url: str) -> httpx.AsyncClient:
        origin = origin_of(url)
        client = self._clients.get(origin)
        if client is not None:
            return client
        async with self._lock:
            client = self._clients.get(origin)
            if client is None:
                client = self._build_client(origin)
                self._clients[origin] = client
                logger.debug("Opened pooled client for %s", origin)
            return client

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request through the client pooled for ``url``'s origin."""
        client = await self.client_for(url)
        started = time.monotonic()
        response = await client.request(method, url, **kwargs)
        logger.debug(
            "%s %s -> %s in %.0fms",
            method, url.split("?")[0], response.status_code,
            (time.monotonic() - started) * 1000,
        )
        return response

    def stats(self) -> dict[str, dict[str, Any]]:
        return {
            origin: {
                "origin": origin,
                "max_connections": self.settings.http_max_connections,
                "closed": client.is_closed,
            }
            for origin, client in self._clients.items()
        }

    async def close(self) -> None:
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()
