"""GET /health response models."""

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

HealthStatus = Literal["healthy", "degraded", "unhealthy"]


class ComponentHealth(BaseModel):
    """One probed dependency, e.g. the PostgreSQL pool."""

    name: str
    """Component name: "postgres" or "inmemory"."""

    status: HealthStatus
    """Component status."""

    latency_ms: float | None = None
    """Round-trip time of the probe, when one ran."""

    message: str | None = None
    """Why the component is unhealthy, e.g. the connection error."""


class HealthResponse(BaseModel):
    """Service health; unhealthy when any component is."""

    status: HealthStatus
    """Overall status."""

    version: str
    """Service version."""

    backend: str
    """Configured storage backend."""

    components: list[ComponentHealth] = Field(default_factory=list)
    """Per-component results."""

    checked_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    """When the check ran."""
