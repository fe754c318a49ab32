"""Ownership checks guarding access to a session from external tools.

Every tool or integration that reads or mutates a session's messages calls
validate_session_ownership first. A malformed id, an unknown id and a
session owned by another tenant all produce the same AccessDeniedError, so
callers cannot probe which session ids exist elsewhere.
"""

from uuid import UUID

from omnisession.observability.logging import get_logger
from omnisession.sessions.errors import AccessDeniedError
from omnisession.sessions.lifecycle import parse_session_id
from omnisession.sessions.models import Session
from omnisession.sessions.store import SessionStore

logger = get_logger(__name__)


async def resolve_session_with_company(
    store: SessionStore,
    session_id: UUID | str | None,
    company_id: UUID | None,
) -> Session | None:
    """Return the session if it exists and belongs to the company, else None."""
    if not session_id or company_id is None:
        return None

    parsed = parse_session_id(session_id)
    if parsed is None:
        return None

    return await store.get_for_company(parsed, company_id)


async def validate_session_ownership(
    store: SessionStore,
    session_id: UUID | str | None,
    company_id: UUID | None,
) -> Session:
    """Ensure the session belongs to the caller's tenant.

    Raises:
        AccessDeniedError: the session is missing or owned by another tenant
    """
    session = await resolve_session_with_company(store, session_id, company_id)
    if session is None:
        logger.warning(
            "session_access_denied",
            session_id=str(session_id),
            company_id=str(company_id),
        )
        raise AccessDeniedError(f"Session not found or access denied: {session_id}")
    return session
