"""Directory implementations."""

from omnisession.directory.stores.inmemory import (
    InMemoryAssistantDirectory,
    InMemoryUserDirectory,
)

__all__ = ["InMemoryAssistantDirectory", "InMemoryUserDirectory"]
