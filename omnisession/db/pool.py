"""Shared asyncpg pool for the session store and the directories."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg
import structlog

from omnisession.config.models.storage import PostgresConfig
from omnisession.db.errors import ConnectionError

logger = structlog.get_logger(__name__)

APPLICATION_NAME = "omnisession"


def dsn_from_env() -> str:
    """DSN from OMNISESSION_DATABASE_URL / DATABASE_URL, else POSTGRES_* parts."""
    explicit = os.environ.get("OMNISESSION_DATABASE_URL") or os.environ.get("DATABASE_URL")
    if explicit:
        return explicit

    parts = {
        "host": os.environ.get("POSTGRES_HOST", "localhost"),
        "port": os.environ.get("POSTGRES_PORT", "5432"),
        "user": os.environ.get("POSTGRES_USER", "omnisession"),
        "password": os.environ.get("POSTGRES_PASSWORD", "omnisession"),
        "db": os.environ.get("POSTGRES_DB", "omnisession"),
    }
    return "postgresql://{user}:{password}@{host}:{port}/{db}".format(**parts)


class PostgresPool:
    """Lazily connected asyncpg pool.

    Connections are tagged with application_name so the index migration's
    `CREATE INDEX CONCURRENTLY` is easy to spot in pg_stat_activity.

    Usage:
        pool = PostgresPool.from_config(settings.storage.postgres)
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT count(*) FROM sessions")
        await pool.close()
    """

    def __init__(
        self,
        dsn: str | None = None,
        min_size: int = 5,
        max_size: int = 20,
        max_inactive_connection_lifetime: float = 300.0,
        command_timeout: float = 60.0,
    ) -> None:
        self._dsn = dsn or dsn_from_env()
        self._pool_kwargs = {
            "min_size": min_size,
            "max_size": max_size,
            "max_inactive_connection_lifetime": max_inactive_connection_lifetime,
            "command_timeout": command_timeout,
        }
        self._pool: asyncpg.Pool | None = None

    @classmethod
    def from_config(cls, config: PostgresConfig) -> "PostgresPool":
        """Build a pool from the [storage.postgres] section."""
        return cls(
            dsn=config.dsn,
            min_size=config.min_pool_size,
            max_size=config.max_pool_size,
            max_inactive_connection_lifetime=config.max_inactive_connection_lifetime,
            command_timeout=config.command_timeout,
        )

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Open the pool; a no-op when already open.

        Raises:
            ConnectionError: the server is unreachable or rejects the login
        """
        if self._pool is not None:
            return

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self._dsn,
                server_settings={"application_name": APPLICATION_NAME},
                **self._pool_kwargs,
            )
        except (OSError, asyncpg.PostgresError) as e:
            logger.error("postgres_pool_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to PostgreSQL: {e}", cause=e) from e

        logger.info(
            "postgres_pool_connected",
            min_size=self._pool_kwargs["min_size"],
            max_size=self._pool_kwargs["max_size"],
        )

    async def close(self) -> None:
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        await pool.close()
        logger.info("postgres_pool_closed")

    async def aclose(self) -> None:
        """Close hook used by the client registry."""
        await self.close()

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Borrow a connection, opening the pool on first use.

        asyncpg errors propagate; the stores map them onto the StoreError
        hierarchy themselves.
        """
        if self._pool is None:
            await self.connect()
        async with self._pool.acquire() as connection:
            yield connection

    async def health_check(self) -> bool:
        """True when the pool is open and answers SELECT 1."""
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetchval("SELECT 1") == 1
        except (OSError, asyncpg.PostgresError) as e:
            logger.warning("postgres_health_check_failed", error=str(e))
            return False
