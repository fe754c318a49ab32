"""Read-only directories of assistants and users consumed by the session core."""

from omnisession.directory.assistants import AssistantDirectory
from omnisession.directory.models import Assistant, UserProfile
from omnisession.directory.users import UserDirectory

__all__ = ["Assistant", "AssistantDirectory", "UserDirectory", "UserProfile"]
