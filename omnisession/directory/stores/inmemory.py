"""In-memory directories for development and tests."""

from uuid import UUID

from omnisession.directory.assistants import AssistantDirectory
from omnisession.directory.models import Assistant, UserProfile
from omnisession.directory.users import UserDirectory


class InMemoryAssistantDirectory(AssistantDirectory):
    """Dict-backed AssistantDirectory."""

    def __init__(self, assistants: list[Assistant] | None = None) -> None:
        self._assistants: dict[UUID, Assistant] = {}
        for assistant in assistants or []:
            self.add(assistant)

    def add(self, assistant: Assistant) -> Assistant:
        self._assistants[assistant.assistant_id] = assistant
        return assistant

    async def get(self, company_id: UUID, assistant_id: UUID) -> Assistant | None:
        assistant = self._assistants.get(assistant_id)
        if assistant is None or assistant.company_id != company_id:
            return None
        return assistant

    async def find_by_name(self, company_id: UUID, name: str) -> Assistant | None:
        wanted = name.casefold()
        for assistant in self._assistants.values():
            if assistant.company_id == company_id and assistant.name.casefold() == wanted:
                return assistant
        return None

    async def get_default(self, company_id: UUID) -> Assistant | None:
        candidates = [a for a in self._assistants.values() if a.company_id == company_id]
        if not candidates:
            return None
        flagged = [a for a in candidates if a.is_default]
        return min(flagged or candidates, key=lambda a: a.created_at)


class InMemoryUserDirectory(UserDirectory):
    """Dict-backed UserDirectory."""

    def __init__(self, profiles: list[UserProfile] | None = None) -> None:
        self._profiles: dict[tuple[UUID, str], UserProfile] = {}
        for profile in profiles or []:
            self.add(profile)

    def add(self, profile: UserProfile) -> UserProfile:
        self._profiles[(profile.company_id, profile.user_id)] = profile
        return profile

    async def get_profile(self, company_id: UUID, user_id: str) -> UserProfile | None:
        return self._profiles.get((company_id, user_id))
