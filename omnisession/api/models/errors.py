"""Error response models for consistent API error handling."""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Machine-readable error codes returned in the error envelope."""

    INVALID_REQUEST = "INVALID_REQUEST"
    """Request validation failed (malformed JSON, missing fields, etc.)."""

    UNAUTHORIZED = "UNAUTHORIZED"
    """Missing, invalid or expired bearer token."""

    INVALID_CHANNEL = "INVALID_CHANNEL"
    """Unknown channel, or a non-web channel without channel_user_id."""

    NO_DEFAULT_ASSISTANT = "NO_DEFAULT_ASSISTANT"
    """The tenant has no assistant to bind the session to."""

    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    """No session matches (or it is not in the required state)."""

    ASSISTANT_NOT_FOUND = "ASSISTANT_NOT_FOUND"
    """The assistant identifier does not resolve within the tenant."""

    ACCESS_DENIED = "ACCESS_DENIED"
    """The session is not owned by the caller's tenant."""

    SESSION_CREATE_RACE = "SESSION_CREATE_RACE"
    """Concurrent writers kept the session from being created; retry later."""

    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    """The session store could not be reached."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred."""


class ErrorDetail(BaseModel):
    """Field-level detail for validation failures."""

    field: str | None = None
    message: str


class ErrorBody(BaseModel):
    """Error body content for API error responses."""

    code: ErrorCode
    message: str
    details: list[ErrorDetail] | None = None


class ErrorResponse(BaseModel):
    """Standard error response format for all API errors.

    Example:
        {
            "error": {
                "code": "ACCESS_DENIED",
                "message": "Session not found or access denied: ..."
            }
        }
    """

    error: ErrorBody
