"""Request context middleware for observability."""

import uuid
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from uuid import UUID

import structlog
from fastapi import Request, Response
from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware

from omnisession.api.models.context import RequestContext
from omnisession.observability.logging import bind_request_identity, get_logger

logger = get_logger(__name__)

_request_context: ContextVar[RequestContext | None] = ContextVar("request_context", default=None)


def get_request_context() -> RequestContext | None:
    """Get the current request context, or None outside a request."""
    return _request_context.get()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds trace and request ids to every log line of a request.

    Trace ids come from the current OpenTelemetry span when one is active;
    otherwise the generated request id doubles as trace id.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        span_context = trace.get_current_span().get_span_context()
        trace_id = format(span_context.trace_id, "032x") if span_context.is_valid else ""
        span_id = format(span_context.span_id, "016x") if span_context.is_valid else ""

        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        context = RequestContext(
            trace_id=trace_id or request_id,
            span_id=span_id,
            request_id=request_id,
        )
        _request_context.set(context)
        request.state.context = context

        structlog.contextvars.clear_contextvars()
        bind_request_identity(trace_id=context.trace_id, request_id=context.request_id)

        logger.debug("request_started", method=request.method, path=request.url.path)

        response = await call_next(request)

        logger.debug(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
        )

        response.headers["X-Request-ID"] = context.request_id
        response.headers["X-Trace-ID"] = context.trace_id
        return response


def update_request_context(
    *,
    company_id: UUID | None = None,
    session_id: str | None = None,
) -> None:
    """Attach identifiers to the current request as they become known."""
    current = get_request_context()
    if current is not None:
        if company_id is not None:
            current.company_id = company_id
        if session_id is not None:
            current.session_id = session_id

    bind_request_identity(company_id=company_id, session_id=session_id)
