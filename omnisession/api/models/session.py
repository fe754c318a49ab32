"""Session API request and response models."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from omnisession.sessions.models import Session, SessionDetails

SessionStatus = Literal["active", "inactive", "all"]


class SessionRequest(BaseModel):
    """Body of POST /session and POST /session/clear."""

    channel: str | None = Field(
        default=None,
        description="Channel name (web, telegram, whatsapp, ...); defaults to web",
    )
    channel_user_id: str | None = Field(
        default=None,
        description="External identity on the channel; web defaults to the user id",
    )
    channel_metadata: dict[str, Any] | None = Field(
        default=None,
        description="Opaque profile data for the channel",
    )
    assistant_id: str | None = Field(
        default=None,
        description="Last used assistant (id or name); falls back to the default",
    )


class SessionResponse(BaseModel):
    """Handle returned by get-or-create and clear."""

    id: str
    assistant_id: str
    channel: str
    language: str


class SessionSummary(BaseModel):
    """A session as listed for its tenant."""

    id: str
    user_id: str
    assistant_id: str
    channel: str
    channel_user_id: str
    thread_id: str
    active: bool
    created_at: datetime
    last_activity_at: datetime

    @classmethod
    def from_session(cls, session: Session) -> "SessionSummary":
        return cls(
            id=str(session.session_id),
            user_id=session.user_id,
            assistant_id=str(session.assistant_id),
            channel=session.channel.value,
            channel_user_id=session.channel_user_id,
            thread_id=session.thread_id,
            active=session.active,
            created_at=session.created_at,
            last_activity_at=session.last_activity_at,
        )


class SessionDetailResponse(SessionSummary):
    """A session with its channel metadata and related names."""

    channel_metadata: dict[str, Any] = Field(default_factory=dict)
    user_name: str | None = None
    assistant_name: str | None = None
    language: str | None = None

    @classmethod
    def from_details(cls, details: SessionDetails) -> "SessionDetailResponse":
        summary = SessionSummary.from_session(details.session)
        return cls(
            **summary.model_dump(),
            channel_metadata=details.session.channel_metadata,
            user_name=details.user_name,
            assistant_name=details.assistant_name,
            language=details.language,
        )


class SessionListResponse(BaseModel):
    """Paginated session listing."""

    items: list[SessionSummary]
    total: int
    limit: int
    offset: int
    has_more: bool
