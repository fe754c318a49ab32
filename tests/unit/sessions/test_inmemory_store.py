"""Tests for InMemorySessionStore."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from omnisession.db.errors import ConflictError, NotFoundError
from omnisession.sessions.enums import Channel
from omnisession.sessions.models import (
    ACTIVE_IDENTITY_INDEX,
    Session,
    SessionIdentity,
    UniqueIndexInfo,
)
from omnisession.sessions.stores.inmemory import PRIMARY_KEY, InMemorySessionStore

T0 = datetime(2024, 1, 1, tzinfo=UTC)


@pytest.fixture
def store() -> InMemorySessionStore:
    """Create a fresh store for each test."""
    return InMemorySessionStore()


@pytest.fixture
def identity() -> SessionIdentity:
    return SessionIdentity(
        company_id=uuid4(),
        user_id="u1",
        channel=Channel.WEB,
        channel_user_id="u1",
        assistant_id=uuid4(),
    )


def make_session(identity: SessionIdentity, **overrides) -> Session:
    session = Session.for_identity(identity, now=T0)
    return session.model_copy(update=overrides)


class TestRuntimeOperations:
    """Tests for the operations used on the request path."""

    @pytest.mark.asyncio
    async def test_insert_and_find_active(self, store, identity):
        session = await store.insert(make_session(identity))

        found = await store.find_active(identity)
        assert found is not None
        assert found.session_id == session.session_id

    @pytest.mark.asyncio
    async def test_second_active_insert_conflicts(self, store, identity):
        await store.insert(make_session(identity))

        with pytest.raises(ConflictError) as exc_info:
            await store.insert(make_session(identity))
        assert exc_info.value.index_name == ACTIVE_IDENTITY_INDEX

    @pytest.mark.asyncio
    async def test_inactive_rows_do_not_conflict(self, store, identity):
        await store.insert(make_session(identity, active=False))
        await store.insert(make_session(identity, active=False))
        await store.insert(make_session(identity))

        assert await store.count() == 3

    @pytest.mark.asyncio
    async def test_other_channel_identity_does_not_conflict(self, store, identity):
        await store.insert(make_session(identity))
        other = identity.model_copy(update={"channel": Channel.TELEGRAM, "channel_user_id": "77"})
        await store.insert(make_session(other))

        assert await store.find_active(other) is not None

    @pytest.mark.asyncio
    async def test_touch_and_deactivate(self, store, identity):
        session = await store.insert(make_session(identity))
        later = T0 + timedelta(minutes=5)

        assert await store.touch(session.session_id, later) is True
        assert (await store.get(session.session_id)).last_activity_at == later

        assert await store.deactivate(session.session_id) is True
        assert await store.deactivate(session.session_id) is False
        assert await store.find_active(identity) is None

    @pytest.mark.asyncio
    async def test_touch_missing_session(self, store):
        assert await store.touch(uuid4(), T0) is False

    @pytest.mark.asyncio
    async def test_activate_conflicts_with_active_sibling(self, store, identity):
        old = await store.insert(make_session(identity, active=False))
        await store.insert(make_session(identity))

        with pytest.raises(ConflictError):
            await store.activate(old.session_id, T0)
        assert (await store.get(old.session_id)).active is False

    @pytest.mark.asyncio
    async def test_deactivate_identity_spares_excluded(self, store, identity):
        keep = await store.insert(make_session(identity, active=False))
        current = await store.insert(make_session(identity))

        count = await store.deactivate_identity(identity, exclude=keep.session_id)

        assert count == 1
        assert (await store.get(current.session_id)).active is False

    @pytest.mark.asyncio
    async def test_company_and_owner_scoped_reads(self, store, identity):
        session = await store.insert(make_session(identity))

        assert await store.get_for_company(session.session_id, identity.company_id)
        assert await store.get_for_company(session.session_id, uuid4()) is None
        assert await store.get_for_owner(session.session_id, identity.company_id, "u1")
        assert await store.get_for_owner(session.session_id, identity.company_id, "u2") is None

    @pytest.mark.asyncio
    async def test_list_for_company_newest_first(self, store, identity):
        for hours in range(3):
            await store.insert(
                make_session(identity, active=False, created_at=T0 + timedelta(hours=hours))
            )

        page = await store.list_for_company(identity.company_id, limit=2)
        assert [s.created_at for s in page] == [T0 + timedelta(hours=2), T0 + timedelta(hours=1)]
        assert await store.count_for_company(identity.company_id) == 3
        assert await store.count_for_company(identity.company_id, active=True) == 0

    @pytest.mark.asyncio
    async def test_delete(self, store, identity):
        session = await store.insert(make_session(identity))

        assert await store.delete(session.session_id) is True
        assert await store.delete(session.session_id) is False


class TestMaintenanceOperations:
    """Tests for the operations used by the index migration."""

    @pytest.mark.asyncio
    async def test_legacy_documents_read_with_defaults(self, store, identity):
        session_id = store.seed_document(
            {
                "session_id": uuid4(),
                "company_id": identity.company_id,
                "user_id": "u1",
                "assistant_id": identity.assistant_id,
                "thread_id": "legacy-thread",
                "active": True,
                "created_at": T0,
                "last_activity_at": None,
            }
        )

        session = await store.get(session_id)
        assert session.channel is Channel.WEB
        assert session.channel_user_id == ""
        assert session.last_activity_at == T0
        assert session.thread_id == "legacy-thread"

    @pytest.mark.asyncio
    async def test_writes_validated_against_all_indexes(self, identity):
        legacy = UniqueIndexInfo(name="uq_legacy", columns=("company_id", "user_id"))
        store = InMemorySessionStore(indexes=[legacy])
        await store.insert(make_session(identity, active=False))

        with pytest.raises(ConflictError) as exc_info:
            await store.insert(make_session(identity, active=False))
        assert exc_info.value.index_name == "uq_legacy"

    @pytest.mark.asyncio
    async def test_list_and_drop_indexes(self):
        legacy = UniqueIndexInfo(name="uq_legacy", columns=("company_id", "user_id"))
        store = InMemorySessionStore(indexes=[legacy])

        assert await store.list_unique_indexes() == [PRIMARY_KEY, legacy]
        await store.drop_index("uq_legacy")
        assert await store.list_unique_indexes() == [PRIMARY_KEY]

        with pytest.raises(NotFoundError):
            await store.drop_index("uq_legacy")

    @pytest.mark.asyncio
    async def test_create_index_refuses_duplicates(self, identity):
        store = InMemorySessionStore(indexes=[])
        await store.insert(make_session(identity))
        await store.insert(make_session(identity))

        with pytest.raises(ConflictError):
            await store.create_active_identity_index()

        assert await store.deactivate_duplicate_active() == 1
        assert await store.create_active_identity_index() is True
        assert await store.create_active_identity_index() is False

    @pytest.mark.asyncio
    async def test_deactivate_duplicates_keeps_most_recent(self, identity):
        store = InMemorySessionStore(indexes=[])
        stale = await store.insert(make_session(identity, last_activity_at=T0))
        fresh = await store.insert(
            make_session(identity, last_activity_at=T0 + timedelta(hours=1))
        )

        await store.deactivate_duplicate_active()

        assert (await store.get(fresh.session_id)).active is True
        assert (await store.get(stale.session_id)).active is False
