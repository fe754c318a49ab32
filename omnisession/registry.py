"""Lazily constructed, keyed client instances.

Replaces module-level client globals: each key (a backend name, a tenant)
maps to one client built on first use by an async factory. Clients can be
invalidated individually, e.g. after a credential rotation, and are closed
together on shutdown.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from omnisession.observability.logging import get_logger

logger = get_logger(__name__)

K = TypeVar("K")
V = TypeVar("V")


async def _close_client(client: object) -> None:
    """Call aclose() or close() on a client, awaiting if needed."""
    closer = getattr(client, "aclose", None) or getattr(client, "close", None)
    if closer is None:
        return
    result = closer()
    if inspect.isawaitable(result):
        await result


class ClientRegistry(Generic[K, V]):
    """One client per key, created on first access.

    Concurrent first accesses for the same key share a single factory call.

    Usage:
        pools = ClientRegistry(lambda name: connect_pool(name))
        pool = await pools.get("sessions")
        ...
        await pools.aclose()
    """

    def __init__(self, factory: Callable[[K], Awaitable[V]]) -> None:
        self._factory = factory
        self._clients: dict[K, V] = {}
        self._locks: dict[K, asyncio.Lock] = {}

    async def get(self, key: K) -> V:
        """Return the client for a key, building it if necessary."""
        if key in self._clients:
            return self._clients[key]

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            if key not in self._clients:
                self._clients[key] = await self._factory(key)
                logger.info("client_created", key=str(key))
        return self._clients[key]

    def set(self, key: K, client: V) -> None:
        """Install a prebuilt client, e.g. a test double."""
        self._clients[key] = client

    def __contains__(self, key: object) -> bool:
        return key in self._clients

    def __len__(self) -> int:
        return len(self._clients)

    async def invalidate(self, key: K) -> bool:
        """Close and forget the client for a key.

        Returns:
            True if a client was registered under the key
        """
        client = self._clients.pop(key, None)
        self._locks.pop(key, None)
        if client is None:
            return False
        await _close_client(client)
        logger.info("client_invalidated", key=str(key))
        return True

    async def aclose(self) -> None:
        """Close every client and empty the registry."""
        for key in list(self._clients):
            await self.invalidate(key)
