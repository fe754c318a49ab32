"""Integration tests for the PostgreSQL session store and directories."""

import asyncio
from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest
import pytest_asyncio

from omnisession.db.errors import ConflictError
from omnisession.db.pool import PostgresPool
from omnisession.directory.stores.postgres import (
    PostgresAssistantDirectory,
    PostgresUserDirectory,
)
from omnisession.sessions.enums import Channel
from omnisession.sessions.identity import IdentityResolver
from omnisession.sessions.indexing import ensure_session_index
from omnisession.sessions.lifecycle import SessionLifecycle
from omnisession.sessions.models import ACTIVE_IDENTITY_INDEX, Session, SessionIdentity
from omnisession.sessions.stores.postgres import PostgresSessionStore

pytestmark = pytest.mark.integration


@pytest.fixture
def store(postgres_pool: PostgresPool) -> PostgresSessionStore:
    return PostgresSessionStore(postgres_pool)


@pytest_asyncio.fixture
async def indexed_store(store: PostgresSessionStore) -> PostgresSessionStore:
    report = await ensure_session_index(store)
    assert report.succeeded
    return store


@pytest_asyncio.fixture
async def seeded_assistant(postgres_pool: PostgresPool, company_id: UUID) -> UUID:
    assistant_id = uuid4()
    async with postgres_pool.acquire() as conn:
        await conn.execute(
            """
            INSERT INTO assistants (assistant_id, company_id, name, session_ttl_hours, is_default)
            VALUES ($1, $2, 'Support Bot', 24, true)
            """,
            assistant_id,
            company_id,
        )
        await conn.execute(
            "INSERT INTO users (user_id, company_id, name, email) VALUES ($1, $2, $3, $4)",
            "user-42",
            company_id,
            "Ada Lovelace",
            "ada@example.com",
        )
    return assistant_id


def identity_for(company_id: UUID, assistant_id: UUID) -> SessionIdentity:
    return SessionIdentity(
        company_id=company_id,
        user_id="user-42",
        channel=Channel.WEB,
        channel_user_id="user-42",
        assistant_id=assistant_id,
    )


class TestActiveIdentityIndex:
    @pytest.mark.asyncio
    async def test_second_active_insert_conflicts(self, indexed_store, company_id):
        identity = identity_for(company_id, uuid4())
        await indexed_store.insert(Session.for_identity(identity))

        with pytest.raises(ConflictError) as exc_info:
            await indexed_store.insert(Session.for_identity(identity))

        assert exc_info.value.index_name == ACTIVE_IDENTITY_INDEX

    @pytest.mark.asyncio
    async def test_inactive_rows_do_not_conflict(self, indexed_store, company_id):
        identity = identity_for(company_id, uuid4())
        first = await indexed_store.insert(Session.for_identity(identity))
        assert await indexed_store.deactivate(first.session_id)

        second = await indexed_store.insert(Session.for_identity(identity))

        assert (await indexed_store.find_active(identity)).session_id == second.session_id

    @pytest.mark.asyncio
    async def test_index_is_reported_as_target(self, indexed_store):
        indexes = {index.name: index for index in await indexed_store.list_unique_indexes()}

        assert indexes[ACTIVE_IDENTITY_INDEX].is_target

    @pytest.mark.asyncio
    async def test_rerun_is_noop(self, indexed_store):
        report = await ensure_session_index(indexed_store)

        assert report.succeeded
        assert report.index_created is False
        assert report.dropped_indexes == []


    @pytest.mark.asyncio
    async def test_rerun_resolves_rows_that_would_collide(
        self, indexed_store, postgres_pool, company_id
    ):
        assistant_id = uuid4()
        old = datetime(2024, 1, 1, tzinfo=UTC)
        new = datetime(2024, 1, 2, tzinfo=UTC)
        rows = (
            ("web", "user-42", old),
            ("web", "", new),
            ("telegram", "555", new),
            ("telegram", "555:agent", old),
        )
        async with postgres_pool.acquire() as conn:
            for channel, channel_user_id, at in rows:
                await conn.execute(
                    """
                    INSERT INTO sessions (session_id, company_id, user_id, assistant_id,
                                          channel, channel_user_id, thread_id, active,
                                          created_at, last_activity_at)
                    VALUES ($1, $2, 'user-42', $3, $4, $5, 't', true, $6, $6)
                    """,
                    uuid4(),
                    company_id,
                    assistant_id,
                    channel,
                    channel_user_id,
                    at,
                )

        first = await ensure_session_index(indexed_store)
        second = await ensure_session_index(indexed_store)

        assert first.succeeded, first.error
        assert first.duplicates_deactivated == 2
        assert second.succeeded, second.error
        assert second.duplicates_deactivated == 0
        page = await indexed_store.list_for_company(company_id, active=True)
        assert sorted((s.channel.value, s.channel_user_id) for s in page) == [
            ("telegram", "555"),
            ("web", "user-42"),
        ]
        assert all(s.last_activity_at == new for s in page)


class TestLegacyMigration:
    @pytest.mark.asyncio
    async def test_migrates_legacy_rows(self, store, postgres_pool, company_id):
        assistant_id = uuid4()
        old = datetime(2024, 1, 1, tzinfo=UTC)
        new = datetime(2024, 1, 2, tzinfo=UTC)
        async with postgres_pool.acquire() as conn:
            await conn.execute(
                """
                CREATE UNIQUE INDEX uq_sessions_legacy
                ON sessions (company_id, user_id, channel, channel_user_id)
                """
            )
            # Pre-channel row: NULL channel fields
            await conn.execute(
                """
                INSERT INTO sessions (session_id, company_id, user_id, assistant_id,
                                      thread_id, active, created_at, last_activity_at)
                VALUES ($1, $2, 'legacy-user', $3, 't0', true, $4, $4)
                """,
                uuid4(),
                company_id,
                assistant_id,
                old,
            )
            # Two telegram rows that collapse to the same identity once stripped
            for raw_id, at in (("99:agent-a", old), ("99:agent-b", new)):
                await conn.execute(
                    """
                    INSERT INTO sessions (session_id, company_id, user_id, assistant_id,
                                          channel, channel_user_id, thread_id, active,
                                          created_at, last_activity_at)
                    VALUES ($1, $2, 'user-42', $3, 'telegram', $4, 't', true, $5, $5)
                    """,
                    uuid4(),
                    company_id,
                    assistant_id,
                    raw_id,
                    at,
                )

        report = await ensure_session_index(store)

        assert report.succeeded, report.error
        assert report.channel_defaults_backfilled == 1
        assert report.dropped_indexes == ["uq_sessions_legacy"]
        assert report.web_identities_backfilled == 1
        assert report.composite_ids_stripped == 2
        assert report.duplicates_deactivated == 1
        assert report.index_created is True

        telegram = SessionIdentity(
            company_id=company_id,
            user_id="user-42",
            channel=Channel.TELEGRAM,
            channel_user_id="99",
            assistant_id=assistant_id,
        )
        survivor = await store.find_active(telegram)
        assert survivor.last_activity_at == new


class TestLifecycleOnPostgres:
    @pytest_asyncio.fixture
    async def lifecycle(self, indexed_store, postgres_pool) -> SessionLifecycle:
        return SessionLifecycle(indexed_store, PostgresUserDirectory(postgres_pool))

    @pytest_asyncio.fixture
    async def resolved(self, postgres_pool, seeded_assistant, company_id):
        resolver = IdentityResolver(PostgresAssistantDirectory(postgres_pool))
        return await resolver.resolve(company_id, "user-42")

    @pytest.mark.asyncio
    async def test_concurrent_get_or_create_converges(
        self, lifecycle, indexed_store, resolved
    ):
        handles = await asyncio.gather(*(lifecycle.get_or_create(resolved) for _ in range(8)))

        assert len({h.session_id for h in handles}) == 1
        page = await indexed_store.list_for_company(resolved.identity.company_id)
        assert [s.active for s in page] == [True]

    @pytest.mark.asyncio
    async def test_web_metadata_from_user_profile(self, lifecycle, indexed_store, resolved):
        handle = await lifecycle.get_or_create(resolved)

        session = await indexed_store.get(handle.session_id)
        assert session.channel_metadata["name"] == "Ada Lovelace"

    @pytest.mark.asyncio
    async def test_clear_then_activate(self, lifecycle, indexed_store, resolved, company_id):
        first = await lifecycle.get_or_create(resolved)
        second = await lifecycle.clear(resolved)

        activated = await lifecycle.activate_session(first.session_id, company_id, "user-42")

        assert activated.active
        assert not (await indexed_store.get(second.session_id)).active
