"""Tests for identity resolution."""

from uuid import uuid4

import pytest

from omnisession.directory.stores.inmemory import InMemoryAssistantDirectory
from omnisession.sessions.enums import Channel
from omnisession.sessions.errors import (
    AssistantNotFoundError,
    InvalidChannelError,
    NoDefaultAssistantError,
)
from omnisession.sessions.identity import (
    IdentityResolver,
    canonical_channel_user_id,
    parse_channel,
)


@pytest.fixture
def resolver(assistants) -> IdentityResolver:
    return IdentityResolver(assistants)


class TestParseChannel:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("web", Channel.WEB),
            ("  Telegram ", Channel.TELEGRAM),
            ("WEBCHAT", Channel.WEB),
            (None, Channel.WEB),
            ("", Channel.WEB),
        ],
    )
    def test_normalizes(self, raw, expected):
        assert parse_channel(raw) is expected

    def test_unknown_channel_rejected(self):
        with pytest.raises(InvalidChannelError):
            parse_channel("carrier-pigeon")


class TestCanonicalChannelUserId:
    def test_strips_composite_suffix_on_composite_channels(self):
        assert (
            canonical_channel_user_id(Channel.TELEGRAM, "12345:agent-9", ["telegram"]) == "12345"
        )

    def test_keeps_colons_elsewhere(self):
        assert canonical_channel_user_id(Channel.EMAIL, "a:b@example.com", ["telegram"]) == (
            "a:b@example.com"
        )


class TestResolve:
    @pytest.mark.asyncio
    async def test_web_defaults_channel_user_id_to_user(
        self, resolver, company_id, user_id, default_assistant
    ):
        resolved = await resolver.resolve(company_id, user_id)

        assert resolved.identity.channel is Channel.WEB
        assert resolved.identity.channel_user_id == user_id
        assert resolved.identity.assistant_id == default_assistant.assistant_id
        assert resolved.assistant == default_assistant

    @pytest.mark.asyncio
    async def test_non_web_channel_requires_external_id(self, resolver, company_id, user_id):
        with pytest.raises(InvalidChannelError):
            await resolver.resolve(company_id, user_id, channel="whatsapp", channel_user_id="  ")

    @pytest.mark.asyncio
    async def test_composite_id_canonicalized(self, resolver, company_id, user_id):
        resolved = await resolver.resolve(
            company_id, user_id, channel="telegram", channel_user_id=" 555:agent "
        )
        assert resolved.identity.channel_user_id == "555"

    @pytest.mark.asyncio
    async def test_assistant_by_id(self, resolver, company_id, user_id, sales_assistant):
        resolved = await resolver.resolve(
            company_id, user_id, assistant=str(sales_assistant.assistant_id)
        )
        assert resolved.assistant == sales_assistant

    @pytest.mark.asyncio
    async def test_assistant_by_name_case_insensitive(
        self, resolver, company_id, user_id, sales_assistant
    ):
        resolved = await resolver.resolve(company_id, user_id, assistant="sales")
        assert resolved.assistant == sales_assistant

    @pytest.mark.asyncio
    async def test_assistant_by_url_path(self, resolver, company_id, user_id, default_assistant):
        resolved = await resolver.resolve(company_id, user_id, assistant="agents/support-bot")
        assert resolved.assistant == default_assistant

    @pytest.mark.asyncio
    async def test_strict_unknown_assistant_raises(self, resolver, company_id, user_id):
        with pytest.raises(AssistantNotFoundError):
            await resolver.resolve(company_id, user_id, assistant="ghost")

    @pytest.mark.asyncio
    async def test_hint_falls_back_to_default(
        self, resolver, company_id, user_id, default_assistant
    ):
        resolved = await resolver.resolve(company_id, user_id, assistant="ghost", strict=False)
        assert resolved.assistant == default_assistant

    @pytest.mark.asyncio
    async def test_assistant_of_other_tenant_not_visible(
        self, resolver, user_id, sales_assistant
    ):
        with pytest.raises(NoDefaultAssistantError):
            await resolver.resolve(
                uuid4(), user_id, assistant=str(sales_assistant.assistant_id), strict=False
            )

    @pytest.mark.asyncio
    async def test_oldest_assistant_is_default_when_none_flagged(
        self, company_id, user_id, sales_assistant
    ):
        older = sales_assistant.model_copy(
            update={
                "assistant_id": uuid4(),
                "name": "Legacy",
                "created_at": sales_assistant.created_at.replace(year=2020),
            }
        )
        resolver = IdentityResolver(InMemoryAssistantDirectory([sales_assistant, older]))

        resolved = await resolver.resolve(company_id, user_id)
        assert resolved.assistant.name == "Legacy"
