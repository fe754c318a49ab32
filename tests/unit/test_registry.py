"""Tests for ClientRegistry."""

import asyncio

import pytest

from omnisession.registry import ClientRegistry


class AsyncClient:
    def __init__(self, key: str) -> None:
        self.key = key
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True


class SyncClient:
    def __init__(self) -> None:
        self.closed = False

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def built() -> list[str]:
    return []


@pytest.fixture
def registry(built) -> ClientRegistry[str, AsyncClient]:
    async def factory(key: str) -> AsyncClient:
        built.append(key)
        await asyncio.sleep(0)
        return AsyncClient(key)

    return ClientRegistry(factory)


class TestClientRegistry:
    @pytest.mark.asyncio
    async def test_builds_once_per_key(self, registry, built):
        first = await registry.get("tenant-a")
        second = await registry.get("tenant-a")
        other = await registry.get("tenant-b")

        assert first is second
        assert other is not first
        assert built == ["tenant-a", "tenant-b"]

    @pytest.mark.asyncio
    async def test_concurrent_first_access_shares_factory_call(self, registry, built):
        clients = await asyncio.gather(*(registry.get("tenant-a") for _ in range(10)))

        assert len({id(client) for client in clients}) == 1
        assert built == ["tenant-a"]

    @pytest.mark.asyncio
    async def test_invalidate_closes_and_rebuilds(self, registry, built):
        first = await registry.get("tenant-a")

        assert await registry.invalidate("tenant-a") is True
        assert first.closed is True
        assert "tenant-a" not in registry

        second = await registry.get("tenant-a")
        assert second is not first
        assert built == ["tenant-a", "tenant-a"]

    @pytest.mark.asyncio
    async def test_invalidate_unknown_key(self, registry):
        assert await registry.invalidate("missing") is False

    @pytest.mark.asyncio
    async def test_aclose_closes_everything(self, registry):
        a = await registry.get("a")
        registry.set("b", SyncClient())
        b = await registry.get("b")

        await registry.aclose()

        assert a.closed and b.closed
        assert len(registry) == 0
