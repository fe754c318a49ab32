"""AssistantDirectory abstract interface."""

from abc import ABC, abstractmethod
from uuid import UUID

from omnisession.directory.models import Assistant


class AssistantDirectory(ABC):
    """Lookup of assistants within a tenant."""

    @abstractmethod
    async def get(self, company_id: UUID, assistant_id: UUID) -> Assistant | None:
        """Get an assistant by ID, only if it belongs to the company."""

    @abstractmethod
    async def find_by_name(self, company_id: UUID, name: str) -> Assistant | None:
        """Find an assistant by name, case-insensitively."""

    @abstractmethod
    async def get_default(self, company_id: UUID) -> Assistant | None:
        """The tenant's default assistant.

        The one flagged is_default, otherwise the oldest one.
        """
