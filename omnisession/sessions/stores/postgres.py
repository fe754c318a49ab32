"""PostgreSQL implementation of SessionStore.

The active-identity invariant is a partial unique index; asyncpg reports a
violation as `UniqueViolationError`, which is surfaced as ConflictError.
"""

import json
import re
from collections.abc import Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

import asyncpg

from omnisession.db.errors import ConflictError, ConnectionError, NotFoundError, ValidationError
from omnisession.db.pool import PostgresPool
from omnisession.observability.logging import get_logger
from omnisession.sessions.enums import Channel
from omnisession.sessions.models import (
    ACTIVE_IDENTITY_INDEX,
    IDENTITY_COLUMNS,
    Session,
    SessionIdentity,
    UniqueIndexInfo,
)
from omnisession.sessions.store import SessionStore

logger = get_logger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_ACTIVE_PREDICATES = frozenset({"active", "(active)", "active = true", "(active = true)"})

_IDENTITY_FILTER = """
    company_id = $1
    AND user_id = $2
    AND channel = $3
    AND channel_user_id = $4
    AND assistant_id = $5
"""

_LIST_UNIQUE_INDEXES = """
    SELECT i.relname AS name,
           ix.indisprimary AS is_primary,
           pg_get_expr(ix.indpred, ix.indrelid) AS predicate,
           array_agg(a.attname ORDER BY k.ord) AS columns
    FROM pg_index ix
    JOIN pg_class i ON i.oid = ix.indexrelid
    JOIN pg_class t ON t.oid = ix.indrelid
    CROSS JOIN LATERAL unnest(ix.indkey) WITH ORDINALITY AS k(attnum, ord)
    JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
    WHERE t.relname = 'sessions'
      AND ix.indisunique
      AND ix.indisvalid
    GROUP BY i.relname, ix.indisprimary, ix.indpred, ix.indrelid
"""


def _affected(status: str) -> int:
    """Row count from an asyncpg command tag such as 'UPDATE 3'."""
    try:
        return int(status.split()[-1])
    except (IndexError, ValueError):
        return 0


def _identity_args(identity: SessionIdentity) -> tuple[Any, ...]:
    return (
        identity.company_id,
        identity.user_id,
        identity.channel.value,
        identity.channel_user_id,
        identity.assistant_id,
    )


class PostgresSessionStore(SessionStore):
    """PostgreSQL implementation of SessionStore."""

    def __init__(self, pool: PostgresPool) -> None:
        """Initialize PostgreSQL session store.

        Args:
            pool: Shared connection pool
        """
        self._pool = pool

    def _row_to_session(self, row: asyncpg.Record) -> Session:
        data = dict(row)
        metadata = data.get("channel_metadata")
        if isinstance(metadata, str):
            metadata = json.loads(metadata)
        data["channel_metadata"] = metadata or {}
        data["channel"] = Channel(data.get("channel") or Channel.WEB.value)
        data["channel_user_id"] = data.get("channel_user_id") or ""
        data["last_activity_at"] = data.get("last_activity_at") or data["created_at"]
        try:
            return Session.model_validate(data)
        except ValueError as e:
            raise ValidationError(f"Malformed session row: {e}", cause=e) from e

    async def _fetch_one(self, operation: str, query: str, *args: Any) -> Session | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query, *args)
        except asyncpg.PostgresError as e:
            logger.error("postgres_session_error", operation=operation, error=str(e))
            raise ConnectionError(f"Failed to {operation}: {e}", cause=e) from e
        return self._row_to_session(row) if row else None

    async def _execute(self, operation: str, query: str, *args: Any) -> int:
        try:
            async with self._pool.acquire() as conn:
                status = await conn.execute(query, *args)
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(
                f"Unique violation during {operation}",
                cause=e,
                index_name=e.constraint_name,
            ) from e
        except asyncpg.PostgresError as e:
            logger.error("postgres_session_error", operation=operation, error=str(e))
            raise ConnectionError(f"Failed to {operation}: {e}", cause=e) from e
        return _affected(status)

    async def get(self, session_id: UUID) -> Session | None:
        return await self._fetch_one(
            "get session",
            "SELECT * FROM sessions WHERE session_id = $1",
            session_id,
        )

    async def get_for_company(self, session_id: UUID, company_id: UUID) -> Session | None:
        return await self._fetch_one(
            "get session for company",
            "SELECT * FROM sessions WHERE session_id = $1 AND company_id = $2",
            session_id,
            company_id,
        )

    async def get_for_owner(
        self, session_id: UUID, company_id: UUID, user_id: str
    ) -> Session | None:
        return await self._fetch_one(
            "get session for owner",
            """
            SELECT * FROM sessions
            WHERE session_id = $1 AND company_id = $2 AND user_id = $3
            """,
            session_id,
            company_id,
            user_id,
        )

    async def find_active(self, identity: SessionIdentity) -> Session | None:
        return await self._fetch_one(
            "find active session",
            f"""
            SELECT * FROM sessions
            WHERE {_IDENTITY_FILTER} AND active
            ORDER BY last_activity_at DESC
            LIMIT 1
            """,
            *_identity_args(identity),
        )

    async def insert(self, session: Session) -> Session:
        await self._execute(
            "insert session",
            """
            INSERT INTO sessions (
                session_id, company_id, user_id, assistant_id, channel,
                channel_user_id, channel_metadata, thread_id, active,
                created_at, last_activity_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8, $9, $10, $11)
            """,
            session.session_id,
            session.company_id,
            session.user_id,
            session.assistant_id,
            session.channel.value,
            session.channel_user_id,
            json.dumps(session.channel_metadata),
            session.thread_id,
            session.active,
            session.created_at,
            session.last_activity_at,
        )
        logger.debug(
            "session_inserted",
            session_id=str(session.session_id),
            company_id=str(session.company_id),
        )
        return session

    async def touch(self, session_id: UUID, at: datetime) -> bool:
        updated = await self._execute(
            "touch session",
            "UPDATE sessions SET last_activity_at = $2 WHERE session_id = $1",
            session_id,
            at,
        )
        return updated == 1

    async def deactivate(self, session_id: UUID) -> bool:
        updated = await self._execute(
            "deactivate session",
            "UPDATE sessions SET active = false WHERE session_id = $1 AND active",
            session_id,
        )
        return updated == 1

    async def deactivate_identity(
        self, identity: SessionIdentity, *, exclude: UUID | None = None
    ) -> int:
        return await self._execute(
            "deactivate identity sessions",
            f"""
            UPDATE sessions SET active = false
            WHERE {_IDENTITY_FILTER}
              AND active
              AND ($6::uuid IS NULL OR session_id <> $6::uuid)
            """,
            *_identity_args(identity),
            exclude,
        )

    async def activate(self, session_id: UUID, at: datetime) -> bool:
        updated = await self._execute(
            "activate session",
            """
            UPDATE sessions SET active = true, last_activity_at = $2
            WHERE session_id = $1 AND NOT active
            """,
            session_id,
            at,
        )
        return updated == 1

    async def delete(self, session_id: UUID) -> bool:
        deleted = await self._execute(
            "delete session",
            "DELETE FROM sessions WHERE session_id = $1",
            session_id,
        )
        return deleted == 1

    @staticmethod
    def _company_filter(
        assistant_id: UUID | None, active: bool | None
    ) -> tuple[str, list[Any]]:
        clauses = ["company_id = $1"]
        args: list[Any] = []
        if assistant_id is not None:
            args.append(assistant_id)
            clauses.append(f"assistant_id = ${len(args) + 1}")
        if active is not None:
            args.append(active)
            clauses.append(f"active = ${len(args) + 1}")
        return " AND ".join(clauses), args

    async def list_for_company(
        self,
        company_id: UUID,
        *,
        assistant_id: UUID | None = None,
        active: bool | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Session]:
        where, args = self._company_filter(assistant_id, active)
        position = len(args) + 2
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT * FROM sessions
                    WHERE {where}
                    ORDER BY created_at DESC
                    LIMIT ${position} OFFSET ${position + 1}
                    """,
                    company_id,
                    *args,
                    limit,
                    offset,
                )
        except asyncpg.PostgresError as e:
            logger.error("postgres_list_sessions_error", company_id=str(company_id), error=str(e))
            raise ConnectionError(f"Failed to list sessions: {e}", cause=e) from e
        return [self._row_to_session(row) for row in rows]

    async def count_for_company(
        self,
        company_id: UUID,
        *,
        assistant_id: UUID | None = None,
        active: bool | None = None,
    ) -> int:
        where, args = self._company_filter(assistant_id, active)
        try:
            async with self._pool.acquire() as conn:
                return int(
                    await conn.fetchval(
                        f"SELECT count(*) FROM sessions WHERE {where}", company_id, *args
                    )
                )
        except asyncpg.PostgresError as e:
            raise ConnectionError(f"Failed to count sessions: {e}", cause=e) from e

    # Index maintenance

    async def count(self) -> int:
        try:
            async with self._pool.acquire() as conn:
                return int(await conn.fetchval("SELECT count(*) FROM sessions"))
        except asyncpg.PostgresError as e:
            raise ConnectionError(f"Failed to count sessions: {e}", cause=e) from e

    async def backfill_channel_defaults(self) -> int:
        return await self._execute(
            "backfill channel defaults",
            """
            UPDATE sessions
            SET channel = COALESCE(channel, 'web'),
                channel_user_id = COALESCE(channel_user_id, '')
            WHERE channel IS NULL OR channel_user_id IS NULL
            """,
        )

    async def list_unique_indexes(self) -> list[UniqueIndexInfo]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(_LIST_UNIQUE_INDEXES)
        except asyncpg.PostgresError as e:
            raise ConnectionError(f"Failed to list session indexes: {e}", cause=e) from e

        indexes = []
        for row in rows:
            predicate = (row["predicate"] or "").strip().lower()
            indexes.append(
                UniqueIndexInfo(
                    name=row["name"],
                    columns=tuple(row["columns"]),
                    partial_active=predicate in _ACTIVE_PREDICATES,
                    primary=row["is_primary"],
                )
            )
        return indexes

    async def drop_index(self, name: str) -> None:
        if not _IDENTIFIER.match(name):
            raise ValidationError(f"Refusing to drop index with unsafe name: {name!r}")

        try:
            async with self._pool.acquire() as conn:
                # Unique constraints own their index and must be dropped as constraints
                constraint = await conn.fetchval(
                    """
                    SELECT con.conname FROM pg_constraint con
                    JOIN pg_class i ON i.oid = con.conindid
                    WHERE i.relname = $1
                    """,
                    name,
                )
                if constraint:
                    await conn.execute(f'ALTER TABLE sessions DROP CONSTRAINT "{constraint}"')
                    return
                await conn.execute(f'DROP INDEX "{name}"')
        except asyncpg.UndefinedObjectError as e:
            raise NotFoundError(f"Index {name} does not exist", cause=e) from e
        except asyncpg.PostgresError as e:
            raise ConnectionError(f"Failed to drop index {name}: {e}", cause=e) from e

    async def deactivate_identity_collisions(self, channels: Sequence[str]) -> int:
        canonical = """
            company_id, user_id, channel,
            CASE
                WHEN channel = 'web' AND channel_user_id = '' THEN user_id
                WHEN channel = ANY($1::text[]) THEN split_part(channel_user_id, ':', 1)
                ELSE channel_user_id
            END,
            assistant_id
        """
        return await self._deactivate_ranked(
            "deactivate colliding identities", canonical, list(channels)
        )

    async def backfill_web_channel_user_ids(self) -> int:
        return await self._execute(
            "backfill web channel_user_id",
            """
            UPDATE sessions SET channel_user_id = user_id
            WHERE channel = 'web' AND channel_user_id = ''
            """,
        )

    async def strip_composite_channel_user_ids(self, channels: Sequence[str]) -> int:
        if not channels:
            return 0
        return await self._execute(
            "strip composite channel_user_id",
            """
            UPDATE sessions SET channel_user_id = split_part(channel_user_id, ':', 1)
            WHERE channel = ANY($1::text[])
              AND position(':' IN channel_user_id) > 0
            """,
            list(channels),
        )

    async def deactivate_duplicate_active(self) -> int:
        return await self._deactivate_ranked(
            "deactivate duplicate active sessions", ", ".join(IDENTITY_COLUMNS)
        )

    async def _deactivate_ranked(self, operation: str, partition: str, *args: Any) -> int:
        """Deactivate all but the most recently active row per partition key."""
        return await self._execute(
            operation,
            f"""
            WITH ranked AS (
                SELECT session_id,
                       row_number() OVER (
                           PARTITION BY {partition}
                           ORDER BY last_activity_at DESC NULLS LAST, created_at DESC
                       ) AS position
                FROM sessions
                WHERE active
            )
            UPDATE sessions s SET active = false
            FROM ranked r
            WHERE s.session_id = r.session_id AND r.position > 1
            """,
            *args,
        )

    async def create_active_identity_index(self) -> bool:
        columns = ", ".join(IDENTITY_COLUMNS)
        try:
            async with self._pool.acquire() as conn:
                state = await conn.fetchrow(
                    """
                    SELECT ix.indisvalid AS valid FROM pg_index ix
                    JOIN pg_class i ON i.oid = ix.indexrelid
                    WHERE i.relname = $1
                    """,
                    ACTIVE_IDENTITY_INDEX,
                )
                if state is not None and state["valid"]:
                    return False
                if state is not None:
                    # Left INVALID by an interrupted concurrent build
                    await conn.execute(f'DROP INDEX IF EXISTS "{ACTIVE_IDENTITY_INDEX}"')

                await conn.execute(
                    f"""
                    CREATE UNIQUE INDEX CONCURRENTLY "{ACTIVE_IDENTITY_INDEX}"
                    ON sessions ({columns})
                    WHERE active
                    """
                )
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(
                f"Cannot create {ACTIVE_IDENTITY_INDEX}: duplicate active sessions exist",
                cause=e,
                index_name=ACTIVE_IDENTITY_INDEX,
            ) from e
        except asyncpg.PostgresError as e:
            raise ConnectionError(f"Failed to create session index: {e}", cause=e) from e
        return True
