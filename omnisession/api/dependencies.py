"""Dependency injection for API routes.

Stores, directories and the connection pool are built lazily on first use
and cached in client registries keyed by backend name. Everything can be
overridden through `app.dependency_overrides` in tests.
"""

from typing import Annotated

from fastapi import Depends

from omnisession.config import Settings, get_settings
from omnisession.db.pool import PostgresPool
from omnisession.directory.assistants import AssistantDirectory
from omnisession.directory.stores.inmemory import (
    InMemoryAssistantDirectory,
    InMemoryUserDirectory,
)
from omnisession.directory.stores.postgres import (
    PostgresAssistantDirectory,
    PostgresUserDirectory,
)
from omnisession.directory.users import UserDirectory
from omnisession.observability.logging import get_logger
from omnisession.registry import ClientRegistry
from omnisession.sessions.identity import IdentityResolver, parse_channel
from omnisession.sessions.lifecycle import SessionLifecycle
from omnisession.sessions.queries import SessionQueries
from omnisession.sessions.store import SessionStore
from omnisession.sessions.stores.inmemory import InMemorySessionStore
from omnisession.sessions.stores.postgres import PostgresSessionStore

logger = get_logger(__name__)

POOL_KEY = "primary"


async def _connect_pool(_key: str) -> PostgresPool:
    pool = PostgresPool.from_config(get_settings().storage.postgres)
    await pool.connect()
    return pool


_pools: ClientRegistry[str, PostgresPool] = ClientRegistry(_connect_pool)


async def _build_session_store(backend: str) -> SessionStore:
    if backend == "postgres":
        store: SessionStore = PostgresSessionStore(await _pools.get(POOL_KEY))
    else:
        store = InMemorySessionStore()
    logger.info("session_store_initialized", store_type=backend)
    return store


async def _build_assistant_directory(backend: str) -> AssistantDirectory:
    if backend == "postgres":
        return PostgresAssistantDirectory(await _pools.get(POOL_KEY))
    return InMemoryAssistantDirectory()


async def _build_user_directory(backend: str) -> UserDirectory:
    if backend == "postgres":
        return PostgresUserDirectory(await _pools.get(POOL_KEY))
    return InMemoryUserDirectory()


_session_stores: ClientRegistry[str, SessionStore] = ClientRegistry(_build_session_store)
_assistant_directories: ClientRegistry[str, AssistantDirectory] = ClientRegistry(
    _build_assistant_directory
)
_user_directories: ClientRegistry[str, UserDirectory] = ClientRegistry(_build_user_directory)


SettingsDep = Annotated[Settings, Depends(get_settings)]


async def get_postgres_pool() -> PostgresPool:
    """Get the shared PostgreSQL connection pool, connecting on first access."""
    return await _pools.get(POOL_KEY)


async def get_session_store(settings: SettingsDep) -> SessionStore:
    """Get the SessionStore for the configured backend."""
    return await _session_stores.get(settings.storage.backend)


async def get_assistant_directory(settings: SettingsDep) -> AssistantDirectory:
    """Get the AssistantDirectory for the configured backend."""
    return await _assistant_directories.get(settings.storage.backend)


async def get_user_directory(settings: SettingsDep) -> UserDirectory:
    """Get the UserDirectory for the configured backend."""
    return await _user_directories.get(settings.storage.backend)


SessionStoreDep = Annotated[SessionStore, Depends(get_session_store)]
AssistantDirectoryDep = Annotated[AssistantDirectory, Depends(get_assistant_directory)]
UserDirectoryDep = Annotated[UserDirectory, Depends(get_user_directory)]


def get_resolver(
    assistants: AssistantDirectoryDep,
    settings: SettingsDep,
) -> IdentityResolver:
    """Build the identity resolver from the [sessions] section."""
    return IdentityResolver(
        assistants,
        default_channel=parse_channel(settings.sessions.default_channel),
        composite_id_channels=settings.sessions.composite_id_channels,
    )


ResolverDep = Annotated[IdentityResolver, Depends(get_resolver)]


def get_lifecycle(
    store: SessionStoreDep,
    users: UserDirectoryDep,
    settings: SettingsDep,
) -> SessionLifecycle:
    """Build the lifecycle controller for the configured store."""
    return SessionLifecycle(store, users, settings.sessions)


def get_queries(
    store: SessionStoreDep,
    assistants: AssistantDirectoryDep,
    users: UserDirectoryDep,
    resolver: ResolverDep,
) -> SessionQueries:
    """Build the read-side session operations."""
    return SessionQueries(store, assistants, users, resolver)


LifecycleDep = Annotated[SessionLifecycle, Depends(get_lifecycle)]
QueriesDep = Annotated[SessionQueries, Depends(get_queries)]


async def reset_dependencies() -> None:
    """Close and drop all cached clients, then reload settings on next use.

    Called on application shutdown and between tests.
    """
    await _session_stores.aclose()
    await _assistant_directories.aclose()
    await _user_directories.aclose()
    await _pools.aclose()
    get_settings.cache_clear()
