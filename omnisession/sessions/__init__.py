"""Session lifecycle and identity consistency.

Resolves channel events to a canonical identity tuple, keeps at most one
active session per tuple, and evolves the backing unique index online.
"""

from omnisession.directory.models import Assistant, UserProfile
from omnisession.sessions.enums import Channel, DeactivationReason
from omnisession.sessions.errors import (
    AccessDeniedError,
    AssistantNotFoundError,
    BadRequestError,
    InvalidChannelError,
    NoDefaultAssistantError,
    NotFoundError,
    SessionCreateRaceError,
    SessionError,
    SessionNotFoundError,
)
from omnisession.sessions.identity import IdentityResolver
from omnisession.sessions.indexing import IndexMigrationReport, ensure_session_index
from omnisession.sessions.lifecycle import SessionLifecycle
from omnisession.sessions.models import (
    ResolvedIdentity,
    Session,
    SessionDetails,
    SessionHandle,
    SessionIdentity,
    SessionPage,
)
from omnisession.sessions.ownership import (
    resolve_session_with_company,
    validate_session_ownership,
)
from omnisession.sessions.queries import SessionQueries
from omnisession.sessions.store import SessionStore

__all__ = [
    # Enums
    "Channel",
    "DeactivationReason",
    # Models
    "Assistant",
    "ResolvedIdentity",
    "Session",
    "SessionDetails",
    "SessionHandle",
    "SessionIdentity",
    "SessionPage",
    "UserProfile",
    # Errors
    "AccessDeniedError",
    "AssistantNotFoundError",
    "BadRequestError",
    "InvalidChannelError",
    "NoDefaultAssistantError",
    "NotFoundError",
    "SessionCreateRaceError",
    "SessionError",
    "SessionNotFoundError",
    # Services
    "IdentityResolver",
    "IndexMigrationReport",
    "SessionLifecycle",
    "SessionQueries",
    "SessionStore",
    "ensure_session_index",
    "resolve_session_with_company",
    "validate_session_ownership",
]
