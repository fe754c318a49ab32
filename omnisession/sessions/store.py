"""SessionStore abstract interface."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from omnisession.sessions.models import Session, SessionIdentity, UniqueIndexInfo


class SessionStore(ABC):
    """Abstract interface for session storage.

    The backend must enforce the partial unique index on the active identity
    tuple once it exists: writes that would produce a second active row for a
    tuple raise `omnisession.db.errors.ConflictError`. That constraint is the
    only synchronization primitive the lifecycle controller relies on.

    The second group of methods is used only by the startup index migration.
    """

    @abstractmethod
    async def get(self, session_id: UUID) -> Session | None:
        """Get a session by ID."""

    @abstractmethod
    async def get_for_company(self, session_id: UUID, company_id: UUID) -> Session | None:
        """Get a session by ID, only if it belongs to the company."""

    @abstractmethod
    async def get_for_owner(
        self, session_id: UUID, company_id: UUID, user_id: str
    ) -> Session | None:
        """Get a session by ID, only if it belongs to the company and user."""

    @abstractmethod
    async def find_active(self, identity: SessionIdentity) -> Session | None:
        """Get the active session for an identity tuple."""

    @abstractmethod
    async def insert(self, session: Session) -> Session:
        """Insert a new session.

        Raises:
            ConflictError: another active session holds the same tuple
        """

    @abstractmethod
    async def touch(self, session_id: UUID, at: datetime) -> bool:
        """Set last_activity_at. Returns False if the session does not exist."""

    @abstractmethod
    async def deactivate(self, session_id: UUID) -> bool:
        """Mark an active session inactive. Returns False if it was not active."""

    @abstractmethod
    async def deactivate_identity(
        self, identity: SessionIdentity, *, exclude: UUID | None = None
    ) -> int:
        """Deactivate every active session of a tuple, optionally sparing one."""

    @abstractmethod
    async def activate(self, session_id: UUID, at: datetime) -> bool:
        """Mark an inactive session active and touch it.

        Returns False if the session does not exist or is already active.

        Raises:
            ConflictError: another active session holds the same tuple
        """

    @abstractmethod
    async def delete(self, session_id: UUID) -> bool:
        """Permanently delete a session."""

    @abstractmethod
    async def list_for_company(
        self,
        company_id: UUID,
        *,
        assistant_id: UUID | None = None,
        active: bool | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Session]:
        """List a tenant's sessions, newest first."""

    @abstractmethod
    async def count_for_company(
        self,
        company_id: UUID,
        *,
        assistant_id: UUID | None = None,
        active: bool | None = None,
    ) -> int:
        """Count a tenant's sessions with the same filters as list_for_company."""

    # Index maintenance

    @abstractmethod
    async def count(self) -> int:
        """Total number of session rows."""

    @abstractmethod
    async def backfill_channel_defaults(self) -> int:
        """Set channel='web' / channel_user_id='' where missing."""

    @abstractmethod
    async def list_unique_indexes(self) -> list[UniqueIndexInfo]:
        """List valid unique indexes on the sessions collection."""

    @abstractmethod
    async def drop_index(self, name: str) -> None:
        """Drop a unique index by name."""

    @abstractmethod
    async def deactivate_identity_collisions(self, channels: Sequence[str]) -> int:
        """Keep one active row per canonical tuple ahead of the identity rewrites.

        The canonical channel_user_id is user_id for web rows with an empty
        one and 'rawId' for 'rawId:suffix' on the given channels. All but the
        most recently active row of each canonical tuple are deactivated, so
        the rewrites cannot collide under the active-identity index.
        """

    @abstractmethod
    async def backfill_web_channel_user_ids(self) -> int:
        """Set channel_user_id = user_id on web sessions where it is empty."""

    @abstractmethod
    async def strip_composite_channel_user_ids(self, channels: Sequence[str]) -> int:
        """Rewrite 'rawId:suffix' channel_user_ids to 'rawId' on the given channels."""

    @abstractmethod
    async def deactivate_duplicate_active(self) -> int:
        """Keep only the most recently active row per tuple active."""

    @abstractmethod
    async def create_active_identity_index(self) -> bool:
        """Create the partial unique index. Returns False if it already existed.

        Raises:
            ConflictError: existing rows violate the index
        """
