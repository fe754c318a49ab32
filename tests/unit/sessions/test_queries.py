"""Tests for SessionQueries."""

from uuid import uuid4

import pytest
import pytest_asyncio

from omnisession.sessions.errors import AccessDeniedError, AssistantNotFoundError
from omnisession.sessions.identity import IdentityResolver
from omnisession.sessions.lifecycle import SessionLifecycle
from omnisession.sessions.queries import SessionQueries


@pytest.fixture
def resolver(assistants) -> IdentityResolver:
    return IdentityResolver(assistants)


@pytest.fixture
def queries(session_store, assistants, users, resolver) -> SessionQueries:
    return SessionQueries(session_store, assistants, users, resolver)


@pytest_asyncio.fixture
async def handles(session_store, users, resolver, company_id, user_id, clock):
    """Two sessions with the default assistant (one rotated away) and one with Sales."""
    lifecycle = SessionLifecycle(session_store, users, clock=clock)
    support = await resolver.resolve(company_id, user_id)
    sales = await resolver.resolve(company_id, user_id, assistant="Sales")

    first = await lifecycle.get_or_create(support)
    clock.advance(minutes=1)
    second = await lifecycle.clear(support)
    clock.advance(minutes=1)
    third = await lifecycle.get_or_create(sales)
    return first, second, third


class TestGetSessionDetails:
    @pytest.mark.asyncio
    async def test_includes_names(self, queries, handles, company_id, default_assistant):
        first, _, _ = handles

        details = await queries.get_session_details(first.session_id, company_id)

        assert details.session.session_id == first.session_id
        assert details.user_name == "Ada Lovelace"
        assert details.assistant_name == default_assistant.name
        assert details.language == "en"

    @pytest.mark.asyncio
    async def test_other_tenant_denied(self, queries, handles):
        first, _, _ = handles

        with pytest.raises(AccessDeniedError):
            await queries.get_session_details(first.session_id, uuid4())


class TestListSessions:
    @pytest.mark.asyncio
    async def test_newest_first_with_total(self, queries, handles, company_id):
        first, second, third = handles

        page = await queries.list_sessions(company_id, limit=2)

        assert page.total == 3
        assert [s.session_id for s in page.sessions] == [third.session_id, second.session_id]

    @pytest.mark.asyncio
    async def test_filters_by_assistant_name_and_status(self, queries, handles, company_id):
        first, second, _ = handles

        page = await queries.list_sessions(company_id, assistant="support bot", active=False)

        assert [s.session_id for s in page.sessions] == [first.session_id]
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_unknown_assistant_filter(self, queries, handles, company_id):
        with pytest.raises(AssistantNotFoundError):
            await queries.list_sessions(company_id, assistant="ghost")

    @pytest.mark.asyncio
    async def test_other_tenant_sees_nothing(self, queries, handles):
        page = await queries.list_sessions(uuid4())
        assert page.total == 0
        assert page.sessions == []


class TestDeleteSession:
    @pytest.mark.asyncio
    async def test_deletes_owned_session(self, queries, session_store, handles, company_id):
        first, _, _ = handles

        await queries.delete_session(str(first.session_id), company_id)

        assert await session_store.get(first.session_id) is None

    @pytest.mark.asyncio
    async def test_cannot_delete_other_tenants_session(
        self, queries, session_store, handles
    ):
        first, _, _ = handles

        with pytest.raises(AccessDeniedError):
            await queries.delete_session(first.session_id, uuid4())
        assert await session_store.get(first.session_id) is not None
