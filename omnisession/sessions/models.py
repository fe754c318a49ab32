"""Session domain models.

`Session` is the persisted record. Everything handed across the store or
lifecycle boundary besides it is a frozen value object.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from omnisession.directory.models import Assistant
from omnisession.sessions.enums import Channel

# Column order of the partial unique index guarding active sessions
IDENTITY_COLUMNS: tuple[str, ...] = (
    "company_id",
    "user_id",
    "channel",
    "channel_user_id",
    "assistant_id",
)
ACTIVE_IDENTITY_INDEX = "uq_sessions_active_identity"


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


def new_thread_id() -> str:
    """Generate an opaque correlation id for a fresh conversation."""
    return uuid4().hex


class SessionIdentity(BaseModel):
    """The tuple that at most one active session may hold."""

    model_config = ConfigDict(frozen=True)

    company_id: UUID
    user_id: str = Field(..., min_length=1)
    channel: Channel
    channel_user_id: str
    assistant_id: UUID


class Session(BaseModel):
    """Persisted conversation session record."""

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    session_id: UUID = Field(default_factory=uuid4, description="Unique identifier")
    company_id: UUID = Field(..., description="Owning tenant")
    user_id: str = Field(..., description="Authenticated user")
    assistant_id: UUID = Field(..., description="Bound assistant")
    channel: Channel = Field(default=Channel.WEB, description="Originating channel")
    channel_user_id: str = Field(default="", description="External identity on the channel")
    channel_metadata: dict[str, Any] = Field(
        default_factory=dict, description="Opaque channel profile data"
    )
    thread_id: str = Field(default_factory=new_thread_id, description="Correlation id")
    active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now)
    last_activity_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def for_identity(
        cls,
        identity: SessionIdentity,
        *,
        channel_metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> "Session":
        """Build a fresh active session for an identity tuple."""
        now = now or utc_now()
        return cls(
            company_id=identity.company_id,
            user_id=identity.user_id,
            assistant_id=identity.assistant_id,
            channel=identity.channel,
            channel_user_id=identity.channel_user_id,
            channel_metadata=dict(channel_metadata or {}),
            created_at=now,
            last_activity_at=now,
        )

    @property
    def identity(self) -> SessionIdentity:
        return SessionIdentity(
            company_id=self.company_id,
            user_id=self.user_id,
            channel=self.channel,
            channel_user_id=self.channel_user_id,
            assistant_id=self.assistant_id,
        )

    @property
    def activity_reference(self) -> datetime:
        """Timestamp TTL is measured from."""
        return self.last_activity_at or self.created_at


class SessionHandle(BaseModel):
    """Minimal result handed to downstream collaborators."""

    model_config = ConfigDict(frozen=True)

    session_id: UUID
    assistant_id: UUID


class ResolvedIdentity(BaseModel):
    """Output of the identity resolver."""

    model_config = ConfigDict(frozen=True)

    identity: SessionIdentity
    assistant: Assistant


class SessionDetails(BaseModel):
    """A session joined with the names of its user and assistant."""

    model_config = ConfigDict(frozen=True)

    session: Session
    user_name: str | None = None
    assistant_name: str | None = None
    language: str | None = None


class SessionPage(BaseModel):
    """One page of a tenant-scoped session listing."""

    model_config = ConfigDict(frozen=True)

    sessions: list[Session]
    total: int
    limit: int
    offset: int


class UniqueIndexInfo(BaseModel):
    """A unique index on the sessions collection."""

    model_config = ConfigDict(frozen=True)

    name: str
    columns: tuple[str, ...]
    partial_active: bool = False
    primary: bool = False

    @property
    def is_target(self) -> bool:
        """Whether this is exactly the active-identity index."""
        return self.columns == IDENTITY_COLUMNS and self.partial_active
