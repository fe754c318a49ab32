"""Session domain errors.

Raised by the identity resolver, lifecycle controller and ownership
validator. The HTTP layer maps each kind onto a 4xx/5xx response.
"""


class SessionError(Exception):
    """Base class for session domain errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(SessionError):
    """A session or assistant does not exist (or is not in the required state)."""


class SessionNotFoundError(NotFoundError):
    """No session matches, or end_session targeted a session that is not active."""


class AssistantNotFoundError(NotFoundError):
    """An explicit assistant identifier did not resolve within the tenant."""


class BadRequestError(SessionError):
    """The request cannot be served as given."""


class NoDefaultAssistantError(BadRequestError):
    """The tenant has no assistant to fall back to."""


class InvalidChannelError(BadRequestError):
    """Unknown channel name or missing channel identity."""


class SessionCreateRaceError(SessionError):
    """Neither inserting nor re-reading produced the tuple's active session."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class AccessDeniedError(SessionError):
    """The caller's tenant does not own the session (or it does not exist)."""
