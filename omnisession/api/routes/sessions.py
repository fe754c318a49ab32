"""Session lifecycle endpoints."""

from fastapi import APIRouter, Query, Response

from omnisession.api.dependencies import (
    LifecycleDep,
    QueriesDep,
    ResolverDep,
    SessionStoreDep,
)
from omnisession.api.middleware.auth import TenantContextDep
from omnisession.api.middleware.context import update_request_context
from omnisession.api.models.session import (
    SessionDetailResponse,
    SessionListResponse,
    SessionRequest,
    SessionResponse,
    SessionStatus,
    SessionSummary,
)
from omnisession.observability.logging import get_logger
from omnisession.sessions.models import ResolvedIdentity, SessionHandle
from omnisession.sessions.ownership import validate_session_ownership

logger = get_logger(__name__)

router = APIRouter()


def _to_response(handle: SessionHandle, resolved: ResolvedIdentity) -> SessionResponse:
    return SessionResponse(
        id=str(handle.session_id),
        assistant_id=str(handle.assistant_id),
        channel=resolved.identity.channel.value,
        language=resolved.assistant.language,
    )


@router.post("/session", response_model=SessionResponse)
async def get_or_create_session(
    body: SessionRequest,
    tenant: TenantContextDep,
    resolver: ResolverDep,
    lifecycle: LifecycleDep,
) -> SessionResponse:
    """Return the caller's active session for the channel, creating one if needed.

    The assistant in the body is a hint: if it does not resolve, the
    tenant's default assistant is used.
    """
    resolved = await resolver.resolve(
        tenant.company_id,
        tenant.user_id,
        channel=body.channel,
        channel_user_id=body.channel_user_id,
        assistant=body.assistant_id,
        strict=False,
    )
    handle = await lifecycle.get_or_create(resolved, body.channel_metadata)
    update_request_context(session_id=str(handle.session_id))
    return _to_response(handle, resolved)


@router.post("/session/clear", response_model=SessionResponse)
async def clear_session(
    body: SessionRequest,
    tenant: TenantContextDep,
    resolver: ResolverDep,
    lifecycle: LifecycleDep,
) -> SessionResponse:
    """Start a fresh conversation, retiring the current one."""
    resolved = await resolver.resolve(
        tenant.company_id,
        tenant.user_id,
        channel=body.channel,
        channel_user_id=body.channel_user_id,
        assistant=body.assistant_id,
        strict=False,
    )
    handle = await lifecycle.clear(resolved, body.channel_metadata)
    update_request_context(session_id=str(handle.session_id))
    logger.info("session_clear_request", session_id=str(handle.session_id))
    return _to_response(handle, resolved)


@router.get("/session/{session_id}", response_model=SessionDetailResponse)
async def get_session(
    session_id: str,
    tenant: TenantContextDep,
    queries: QueriesDep,
) -> SessionDetailResponse:
    """Get a session of the caller's tenant with its user and assistant names.

    Raises:
        AccessDeniedError: unknown session or owned by another tenant (403)
    """
    update_request_context(session_id=session_id)
    details = await queries.get_session_details(session_id, tenant.company_id)
    return SessionDetailResponse.from_details(details)


@router.post("/session/{session_id}/activate", response_model=SessionSummary)
async def activate_session(
    session_id: str,
    tenant: TenantContextDep,
    lifecycle: LifecycleDep,
) -> SessionSummary:
    """Resume one of the caller's earlier sessions, retiring its siblings."""
    update_request_context(session_id=session_id)
    session = await lifecycle.activate_session(session_id, tenant.company_id, tenant.user_id)
    return SessionSummary.from_session(session)


@router.post("/session/{session_id}/end", status_code=204)
async def end_session(
    session_id: str,
    tenant: TenantContextDep,
    store: SessionStoreDep,
    lifecycle: LifecycleDep,
) -> Response:
    """End an active session of the caller's tenant.

    Ending an already inactive session is a 404.
    """
    update_request_context(session_id=session_id)
    session = await validate_session_ownership(store, session_id, tenant.company_id)
    await lifecycle.end_session(session.session_id)
    return Response(status_code=204)


@router.delete("/session/{session_id}", status_code=204)
async def delete_session(
    session_id: str,
    tenant: TenantContextDep,
    queries: QueriesDep,
) -> Response:
    """Permanently delete a session and its history."""
    update_request_context(session_id=session_id)
    await queries.delete_session(session_id, tenant.company_id)
    return Response(status_code=204)


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    tenant: TenantContextDep,
    queries: QueriesDep,
    assistant: str | None = Query(default=None, description="Assistant id or name"),
    status: SessionStatus = Query(default="all"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> SessionListResponse:
    """List the tenant's sessions, newest first."""
    active = None if status == "all" else status == "active"
    page = await queries.list_sessions(
        tenant.company_id,
        assistant=assistant,
        active=active,
        limit=limit,
        offset=offset,
    )
    return SessionListResponse(
        items=[SessionSummary.from_session(s) for s in page.sessions],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
        has_more=page.offset + len(page.sessions) < page.total,
    )
