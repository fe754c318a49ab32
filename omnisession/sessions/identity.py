"""Identity resolution: raw channel event -> canonical session tuple."""

from collections.abc import Iterable
from uuid import UUID

from omnisession.directory.assistants import AssistantDirectory
from omnisession.directory.models import Assistant
from omnisession.observability.logging import get_logger
from omnisession.sessions.enums import Channel
from omnisession.sessions.errors import (
    AssistantNotFoundError,
    InvalidChannelError,
    NoDefaultAssistantError,
)
from omnisession.sessions.models import ResolvedIdentity, SessionIdentity

logger = get_logger(__name__)

CHANNEL_ALIASES: dict[str, Channel] = {
    "webchat": Channel.WEB,
}


def parse_channel(name: str | Channel | None, default: Channel = Channel.WEB) -> Channel:
    """Normalize a channel name.

    Raises:
        InvalidChannelError: if the name is not a known channel
    """
    if isinstance(name, Channel):
        return name
    if name is None or not name.strip():
        return default

    normalized = name.strip().lower()
    if normalized in CHANNEL_ALIASES:
        return CHANNEL_ALIASES[normalized]
    try:
        return Channel(normalized)
    except ValueError:
        raise InvalidChannelError(f"Unknown channel: {name}") from None


def canonical_channel_user_id(
    channel: Channel,
    raw_id: str,
    composite_channels: Iterable[str] = (),
) -> str:
    """Canonical external id for a channel.

    Legacy adapters on composite channels appended the agent id
    ("rawId:agentId"); only the raw id identifies the person.
    """
    value = raw_id.strip()
    if channel.value in set(composite_channels) and ":" in value:
        value = value.split(":", 1)[0]
    return value


def _as_uuid(value: str) -> UUID | None:
    try:
        return UUID(value)
    except ValueError:
        return None


class IdentityResolver:
    """Turns authenticated request data into a ResolvedIdentity.

    Channel identity defaults to the user id on the web channel. The
    assistant is resolved by id or name within the tenant, falling back to
    the tenant's default.
    """

    def __init__(
        self,
        assistants: AssistantDirectory,
        *,
        default_channel: Channel = Channel.WEB,
        composite_id_channels: Iterable[str] = ("telegram", "whatsapp"),
    ) -> None:
        self._assistants = assistants
        self._default_channel = default_channel
        self._composite_id_channels = tuple(composite_id_channels)

    async def resolve(
        self,
        company_id: UUID,
        user_id: str,
        *,
        channel: str | Channel | None = None,
        channel_user_id: str | None = None,
        assistant: str | None = None,
        strict: bool = True,
    ) -> ResolvedIdentity:
        """Resolve the session tuple for a request.

        Args:
            company_id: Authenticated tenant
            user_id: Authenticated user
            channel: Channel name; defaults to the configured default channel
            channel_user_id: External id on that channel
            assistant: Assistant id or name; None selects the tenant default
            strict: If False, an unresolvable assistant falls back to the default

        Raises:
            InvalidChannelError: unknown channel or missing channel identity
            AssistantNotFoundError: strict and the assistant does not resolve
            NoDefaultAssistantError: the tenant has no assistant at all
        """
        resolved_channel = parse_channel(channel, self._default_channel)
        external_id = canonical_channel_user_id(
            resolved_channel, channel_user_id or "", self._composite_id_channels
        )
        if not external_id:
            if resolved_channel is not Channel.WEB:
                raise InvalidChannelError(
                    f"channel_user_id is required for channel {resolved_channel.value}"
                )
            external_id = user_id

        bound = await self.resolve_assistant(company_id, assistant, strict=strict)

        identity = SessionIdentity(
            company_id=company_id,
            user_id=user_id,
            channel=resolved_channel,
            channel_user_id=external_id,
            assistant_id=bound.assistant_id,
        )
        return ResolvedIdentity(identity=identity, assistant=bound)

    async def resolve_assistant(
        self,
        company_id: UUID,
        identifier: str | None,
        *,
        strict: bool = True,
    ) -> Assistant:
        """Resolve an assistant identifier within a tenant."""
        if identifier and identifier.strip():
            found = await self.lookup_assistant(company_id, identifier)
            if found is not None:
                return found
            if strict:
                raise AssistantNotFoundError(f"Assistant not found: {identifier}")
            logger.warning(
                "assistant_hint_not_found",
                company_id=str(company_id),
                assistant=identifier,
            )

        default = await self._assistants.get_default(company_id)
        if default is None:
            raise NoDefaultAssistantError(
                "No default assistant available for this company. "
                "Please configure a default assistant."
            )
        return default

    async def lookup_assistant(self, company_id: UUID, identifier: str) -> Assistant | None:
        """Find an assistant by id, name, or URL-like path ("agents/support-bot")."""
        trimmed = identifier.strip()

        assistant_id = _as_uuid(trimmed)
        if assistant_id is not None:
            by_id = await self._assistants.get(company_id, assistant_id)
            if by_id is not None:
                return by_id

        by_name = await self._assistants.find_by_name(company_id, trimmed)
        if by_name is not None:
            return by_name

        if "/" in trimmed or "." in trimmed:
            tail = trimmed.rstrip("/").rsplit("/", 1)[-1]
            extracted = tail.replace("-", " ").replace("_", " ").strip()
            if extracted and extracted != trimmed:
                return await self._assistants.find_by_name(company_id, extracted)
        return None
