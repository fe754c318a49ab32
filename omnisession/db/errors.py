"""Store error hierarchy.

Store implementations wrap backend-specific exceptions in these so the
lifecycle layer can react to them without knowing the backend.
"""


class StoreError(Exception):
    """Base exception for all store errors."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConnectionError(StoreError):
    """Raised when the backend is unreachable or a query fails at transport level."""


class NotFoundError(StoreError):
    """Raised when a specific row lookup fails (not for empty result sets)."""


class ConflictError(StoreError):
    """Raised on unique constraint violation.

    For sessions this is the signal that a concurrent caller already holds
    the active row for an identity tuple.
    """

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        index_name: str | None = None,
    ) -> None:
        super().__init__(message, cause)
        self.index_name = index_name


class ValidationError(StoreError):
    """Raised when a row cannot be mapped to or from the domain model."""
