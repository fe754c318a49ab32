"""Database utilities for Omnisession.

This module contains:
- Connection pool management
- Store error hierarchy
- Alembic migrations for the base tables
"""

from omnisession.db.errors import (
    ConflictError,
    ConnectionError,
    NotFoundError,
    StoreError,
    ValidationError,
)

__all__ = [
    "StoreError",
    "ConnectionError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
]
