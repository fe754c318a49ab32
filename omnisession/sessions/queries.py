"""Read-side session operations for the API and external tooling."""

from uuid import UUID

from omnisession.directory.assistants import AssistantDirectory
from omnisession.directory.users import UserDirectory
from omnisession.observability.logging import get_logger
from omnisession.sessions.identity import IdentityResolver
from omnisession.sessions.models import SessionDetails, SessionPage
from omnisession.sessions.ownership import validate_session_ownership
from omnisession.sessions.store import SessionStore

logger = get_logger(__name__)


class SessionQueries:
    """Ownership-checked reads, listings and deletion of sessions.

    Related records are looked up explicitly and returned as frozen value
    objects; nothing here hands out live store rows for mutation.
    """

    def __init__(
        self,
        store: SessionStore,
        assistants: AssistantDirectory,
        users: UserDirectory,
        resolver: IdentityResolver,
    ) -> None:
        self._store = store
        self._assistants = assistants
        self._users = users
        self._resolver = resolver

    async def get_session_details(
        self, session_id: UUID | str, company_id: UUID
    ) -> SessionDetails:
        """Fetch a session with its user and assistant names.

        Raises:
            AccessDeniedError: not owned by the company
        """
        session = await validate_session_ownership(self._store, session_id, company_id)
        assistant = await self._assistants.get(company_id, session.assistant_id)
        profile = await self._users.get_profile(company_id, session.user_id)
        return SessionDetails(
            session=session,
            user_name=profile.name if profile else None,
            assistant_name=assistant.name if assistant else None,
            language=assistant.language if assistant else None,
        )

    async def list_sessions(
        self,
        company_id: UUID,
        *,
        assistant: str | None = None,
        active: bool | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> SessionPage:
        """List a tenant's sessions, newest first.

        Raises:
            AssistantNotFoundError: the assistant filter does not resolve
        """
        assistant_id = None
        if assistant:
            assistant_id = (
                await self._resolver.resolve_assistant(company_id, assistant, strict=True)
            ).assistant_id

        sessions = await self._store.list_for_company(
            company_id,
            assistant_id=assistant_id,
            active=active,
            limit=limit,
            offset=offset,
        )
        total = await self._store.count_for_company(
            company_id, assistant_id=assistant_id, active=active
        )
        return SessionPage(sessions=sessions, total=total, limit=limit, offset=offset)

    async def delete_session(self, session_id: UUID | str, company_id: UUID) -> None:
        """Permanently delete a session owned by the company.

        Raises:
            AccessDeniedError: not owned by the company
        """
        session = await validate_session_ownership(self._store, session_id, company_id)
        await self._store.delete(session.session_id)
        logger.info(
            "session_deleted",
            session_id=str(session.session_id),
            company_id=str(company_id),
        )
