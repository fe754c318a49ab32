"""Session store implementations."""

from omnisession.sessions.stores.inmemory import InMemorySessionStore

__all__ = ["InMemorySessionStore"]
