"""Records owned by the assistant and user directories."""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class Assistant(BaseModel):
    """Assistant record as seen by the session service."""

    model_config = ConfigDict(frozen=True)

    assistant_id: UUID = Field(default_factory=uuid4)
    company_id: UUID
    name: str
    language: str = "en"
    session_ttl_hours: float | None = Field(
        default=None,
        ge=0,
        description="Inactivity threshold; None or 0 never expires",
    )
    is_default: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class UserProfile(BaseModel):
    """User profile used to pre-fill web channel metadata."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    company_id: UUID
    name: str = ""
    email: str = ""
    phone: str = ""
