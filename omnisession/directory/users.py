"""UserDirectory abstract interface."""

from abc import ABC, abstractmethod
from uuid import UUID

from omnisession.directory.models import UserProfile


class UserDirectory(ABC):
    """Lookup of user profiles within a tenant."""

    @abstractmethod
    async def get_profile(self, company_id: UUID, user_id: str) -> UserProfile | None:
        """Get a user's profile."""
