"""Request context models for middleware and observability."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class TenantContext(BaseModel):
    """Caller identity extracted from the bearer token.

    The token's tenant_id claim is the company; sub is the user.
    """

    company_id: UUID
    """Tenant identifier from the tenant_id claim."""

    user_id: str = Field(..., min_length=1)
    """User identifier from the sub claim."""

    roles: list[str] = Field(default_factory=list)
    """User roles from JWT claims."""

    model_config = ConfigDict(frozen=True)


class RequestContext(BaseModel):
    """Request context for observability and logging.

    Bound at the start of each request and used to correlate logs
    and traces across the request lifecycle.
    """

    trace_id: str
    """OpenTelemetry trace ID, or the request ID when no span is active."""

    span_id: str
    """OpenTelemetry span ID."""

    request_id: str
    """Unique identifier for this request."""

    company_id: UUID | None = None
    """Tenant ID once authenticated."""

    session_id: str | None = None
    """Session ID the request operates on."""
