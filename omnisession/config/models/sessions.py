"""Session lifecycle configuration models."""

from pydantic import BaseModel, Field, model_validator


class SessionsConfig(BaseModel):
    """Tuning for get-or-create conflict recovery and the startup index migration."""

    max_create_attempts: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Insert/re-read cycles before SessionCreateRaceError is raised",
    )
    retry_base_delay_ms: float = Field(
        default=10.0,
        ge=0,
        description="Base of the jittered exponential backoff between attempts",
    )
    retry_max_delay_ms: float = Field(
        default=250.0,
        ge=0,
        description="Upper bound on a single backoff sleep",
    )
    default_channel: str = Field(
        default="web",
        description="Channel assumed when a request names none",
    )
    composite_id_channels: list[str] = Field(
        default=["telegram", "whatsapp"],
        description="Channels whose legacy ids look like 'rawId:agentId'",
    )
    run_index_migration_on_startup: bool = Field(
        default=True,
        description="Run ensure_session_index when the API starts",
    )

    @model_validator(mode="after")
    def check_delays(self) -> "SessionsConfig":
        """Backoff cap must not be below its base."""
        if self.retry_max_delay_ms < self.retry_base_delay_ms:
            raise ValueError("retry_max_delay_ms must be >= retry_base_delay_ms")
        return self
