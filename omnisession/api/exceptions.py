"""API exception hierarchy and the mapping of domain errors onto it.

Route handlers let session domain errors propagate; the global exception
handler looks up their status code and error code here.
"""

from omnisession.api.models.errors import ErrorCode
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


class OmnisessionAPIError(Exception):
    """Base exception for errors raised by the HTTP layer itself.

    Subclasses set status_code and error_code to define the HTTP response.
    """

    status_code: int = 500
    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UnauthorizedError(OmnisessionAPIError):
    """Raised when the bearer token is missing, invalid or lacks claims."""

    status_code = 401
    error_code = ErrorCode.UNAUTHORIZED


# Resolved along the exception's MRO, so subclasses may override their base
SESSION_ERROR_RESPONSES: dict[type[SessionError], tuple[int, ErrorCode]] = {
    SessionNotFoundError: (404, ErrorCode.SESSION_NOT_FOUND),
    AssistantNotFoundError: (404, ErrorCode.ASSISTANT_NOT_FOUND),
    NotFoundError: (404, ErrorCode.SESSION_NOT_FOUND),
    InvalidChannelError: (400, ErrorCode.INVALID_CHANNEL),
    NoDefaultAssistantError: (400, ErrorCode.NO_DEFAULT_ASSISTANT),
    BadRequestError: (400, ErrorCode.INVALID_REQUEST),
    SessionCreateRaceError: (503, ErrorCode.SESSION_CREATE_RACE),
    AccessDeniedError: (403, ErrorCode.ACCESS_DENIED),
}


def session_error_response(exc: SessionError) -> tuple[int, ErrorCode]:
    """HTTP status and error code for a session domain error."""
    for cls in type(exc).__mro__:
        if cls in SESSION_ERROR_RESPONSES:
            return SESSION_ERROR_RESPONSES[cls]
    return 500, ErrorCode.INTERNAL_ERROR
