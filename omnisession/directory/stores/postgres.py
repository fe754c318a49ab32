"""PostgreSQL directories reading the assistants and users tables."""

from typing import Any
from uuid import UUID

import asyncpg

from omnisession.db.errors import ConnectionError
from omnisession.db.pool import PostgresPool
from omnisession.directory.assistants import AssistantDirectory
from omnisession.directory.models import Assistant, UserProfile
from omnisession.directory.users import UserDirectory
from omnisession.observability.logging import get_logger

logger = get_logger(__name__)


async def _fetchrow(pool: PostgresPool, query: str, *args: Any) -> asyncpg.Record | None:
    try:
        async with pool.acquire() as conn:
            return await conn.fetchrow(query, *args)
    except asyncpg.PostgresError as e:
        logger.error("postgres_directory_error", error=str(e))
        raise ConnectionError(f"Directory lookup failed: {e}", cause=e) from e


class PostgresAssistantDirectory(AssistantDirectory):
    """AssistantDirectory over the assistants table."""

    def __init__(self, pool: PostgresPool) -> None:
        self._pool = pool

    async def get(self, company_id: UUID, assistant_id: UUID) -> Assistant | None:
        row = await _fetchrow(
            self._pool,
            "SELECT * FROM assistants WHERE assistant_id = $1 AND company_id = $2",
            assistant_id,
            company_id,
        )
        return Assistant.model_validate(dict(row)) if row else None

    async def find_by_name(self, company_id: UUID, name: str) -> Assistant | None:
        row = await _fetchrow(
            self._pool,
            """
            SELECT * FROM assistants
            WHERE company_id = $1 AND lower(name) = lower($2)
            ORDER BY (name = $2) DESC, created_at
            LIMIT 1
            """,
            company_id,
            name,
        )
        return Assistant.model_validate(dict(row)) if row else None

    async def get_default(self, company_id: UUID) -> Assistant | None:
        row = await _fetchrow(
            self._pool,
            """
            SELECT * FROM assistants
            WHERE company_id = $1
            ORDER BY is_default DESC, created_at
            LIMIT 1
            """,
            company_id,
        )
        return Assistant.model_validate(dict(row)) if row else None


class PostgresUserDirectory(UserDirectory):
    """UserDirectory over the users table."""

    def __init__(self, pool: PostgresPool) -> None:
        self._pool = pool

    async def get_profile(self, company_id: UUID, user_id: str) -> UserProfile | None:
        row = await _fetchrow(
            self._pool,
            "SELECT * FROM users WHERE user_id = $1 AND company_id = $2",
            user_id,
            company_id,
        )
        return UserProfile.model_validate(dict(row)) if row else None
