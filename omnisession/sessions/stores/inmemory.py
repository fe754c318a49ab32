"""In-memory implementation of SessionStore."""

from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

from omnisession.db.errors import ConflictError, NotFoundError
from omnisession.sessions.enums import Channel
from omnisession.sessions.models import (
    ACTIVE_IDENTITY_INDEX,
    IDENTITY_COLUMNS,
    Session,
    SessionIdentity,
    UniqueIndexInfo,
)
from omnisession.sessions.store import SessionStore

PRIMARY_KEY = UniqueIndexInfo(name="sessions_pkey", columns=("session_id",), primary=True)
TARGET_INDEX = UniqueIndexInfo(
    name=ACTIVE_IDENTITY_INDEX, columns=IDENTITY_COLUMNS, partial_active=True
)


def _identity_key(identity: SessionIdentity) -> tuple[Any, ...]:
    return (
        identity.company_id,
        identity.user_id,
        identity.channel.value,
        identity.channel_user_id,
        identity.assistant_id,
    )


class InMemorySessionStore(SessionStore):
    """In-memory SessionStore for testing and development.

    Rows are kept as plain documents so that legacy shapes (missing channel
    fields, composite ids) can be seeded and migrated. Every write is
    validated against the current unique indexes before it is committed,
    which mirrors how PostgreSQL rejects a whole statement.
    """

    def __init__(self, indexes: Iterable[UniqueIndexInfo] | None = None) -> None:
        """Initialize empty storage.

        Args:
            indexes: Unique indexes to enforce. Defaults to the
                active-identity index, i.e. an already migrated store.
        """
        self._docs: dict[UUID, dict[str, Any]] = {}
        initial = [TARGET_INDEX] if indexes is None else list(indexes)
        self._indexes: dict[str, UniqueIndexInfo] = {idx.name: idx for idx in initial}

    # Document helpers

    @staticmethod
    def _to_doc(session: Session) -> dict[str, Any]:
        doc = session.model_dump()
        doc["channel"] = session.channel.value
        return doc

    @staticmethod
    def _to_session(doc: dict[str, Any]) -> Session:
        data = dict(doc)
        data["channel"] = Channel(data.get("channel") or Channel.WEB.value)
        data["channel_user_id"] = data.get("channel_user_id") or ""
        data["channel_metadata"] = data.get("channel_metadata") or {}
        data["last_activity_at"] = data.get("last_activity_at") or data["created_at"]
        return Session.model_validate(data)

    def seed_document(self, doc: dict[str, Any]) -> UUID:
        """Insert a raw document without index checks (legacy data in tests)."""
        self._docs[doc["session_id"]] = dict(doc)
        return doc["session_id"]

    def documents(self) -> list[dict[str, Any]]:
        """Copies of the raw documents."""
        return [dict(doc) for doc in self._docs.values()]

    def _violations(
        self, docs: dict[UUID, dict[str, Any]], index: UniqueIndexInfo
    ) -> bool:
        seen: set[tuple[Any, ...]] = set()
        for doc in docs.values():
            if index.partial_active and not doc.get("active"):
                continue
            key = tuple(doc.get(column) for column in index.columns)
            if key in seen:
                return True
            seen.add(key)
        return False

    def _commit(self, updates: dict[UUID, dict[str, Any]]) -> None:
        """Apply document replacements atomically or raise ConflictError."""
        candidate = {**self._docs, **updates}
        for index in self._indexes.values():
            if self._violations(candidate, index):
                raise ConflictError(
                    f"Duplicate key for unique index {index.name}",
                    index_name=index.name,
                )
        self._docs = candidate

    def _patched(self, session_id: UUID, **changes: Any) -> dict[UUID, dict[str, Any]]:
        return {session_id: {**self._docs[session_id], **changes}}

    def _matches_identity(self, doc: dict[str, Any], key: tuple[Any, ...]) -> bool:
        return tuple(doc.get(column) for column in IDENTITY_COLUMNS) == key

    # Runtime operations

    async def get(self, session_id: UUID) -> Session | None:
        doc = self._docs.get(session_id)
        return self._to_session(doc) if doc else None

    async def get_for_company(self, session_id: UUID, company_id: UUID) -> Session | None:
        doc = self._docs.get(session_id)
        if doc is None or doc.get("company_id") != company_id:
            return None
        return self._to_session(doc)

    async def get_for_owner(
        self, session_id: UUID, company_id: UUID, user_id: str
    ) -> Session | None:
        doc = self._docs.get(session_id)
        if doc is None or doc.get("company_id") != company_id or doc.get("user_id") != user_id:
            return None
        return self._to_session(doc)

    async def find_active(self, identity: SessionIdentity) -> Session | None:
        key = _identity_key(identity)
        matches = [
            doc
            for doc in self._docs.values()
            if doc.get("active") and self._matches_identity(doc, key)
        ]
        if not matches:
            return None
        newest = max(matches, key=lambda doc: doc.get("last_activity_at") or doc["created_at"])
        return self._to_session(newest)

    async def insert(self, session: Session) -> Session:
        if session.session_id in self._docs:
            raise ConflictError(
                f"Session {session.session_id} already exists",
                index_name=PRIMARY_KEY.name,
            )
        self._commit({session.session_id: self._to_doc(session)})
        return session

    async def touch(self, session_id: UUID, at: datetime) -> bool:
        if session_id not in self._docs:
            return False
        self._commit(self._patched(session_id, last_activity_at=at))
        return True

    async def deactivate(self, session_id: UUID) -> bool:
        doc = self._docs.get(session_id)
        if doc is None or not doc.get("active"):
            return False
        self._commit(self._patched(session_id, active=False))
        return True

    async def deactivate_identity(
        self, identity: SessionIdentity, *, exclude: UUID | None = None
    ) -> int:
        key = _identity_key(identity)
        updates = {
            session_id: {**doc, "active": False}
            for session_id, doc in self._docs.items()
            if doc.get("active") and session_id != exclude and self._matches_identity(doc, key)
        }
        self._commit(updates)
        return len(updates)

    async def activate(self, session_id: UUID, at: datetime) -> bool:
        doc = self._docs.get(session_id)
        if doc is None or doc.get("active"):
            return False
        self._commit(self._patched(session_id, active=True, last_activity_at=at))
        return True

    async def delete(self, session_id: UUID) -> bool:
        return self._docs.pop(session_id, None) is not None

    def _filtered(
        self,
        company_id: UUID,
        assistant_id: UUID | None,
        active: bool | None,
    ) -> list[dict[str, Any]]:
        results = []
        for doc in self._docs.values():
            if doc.get("company_id") != company_id:
                continue
            if assistant_id is not None and doc.get("assistant_id") != assistant_id:
                continue
            if active is not None and bool(doc.get("active")) != active:
                continue
            results.append(doc)
        return results

    async def list_for_company(
        self,
        company_id: UUID,
        *,
        assistant_id: UUID | None = None,
        active: bool | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Session]:
        results = self._filtered(company_id, assistant_id, active)
        results.sort(key=lambda doc: doc["created_at"], reverse=True)
        return [self._to_session(doc) for doc in results[offset : offset + limit]]

    async def count_for_company(
        self,
        company_id: UUID,
        *,
        assistant_id: UUID | None = None,
        active: bool | None = None,
    ) -> int:
        return len(self._filtered(company_id, assistant_id, active))

    # Index maintenance

    async def count(self) -> int:
        return len(self._docs)

    async def backfill_channel_defaults(self) -> int:
        updates = {}
        for session_id, doc in self._docs.items():
            if doc.get("channel") is None or doc.get("channel_user_id") is None:
                updates[session_id] = {
                    **doc,
                    "channel": doc.get("channel") or Channel.WEB.value,
                    "channel_user_id": doc.get("channel_user_id") or "",
                }
        self._commit(updates)
        return len(updates)

    async def list_unique_indexes(self) -> list[UniqueIndexInfo]:
        return [PRIMARY_KEY, *self._indexes.values()]

    async def drop_index(self, name: str) -> None:
        if name not in self._indexes:
            raise NotFoundError(f"Index {name} does not exist")
        del self._indexes[name]

    async def deactivate_identity_collisions(self, channels: Sequence[str]) -> int:
        composite = set(channels)

        def canonical_key(doc: dict[str, Any]) -> tuple[Any, ...]:
            channel_user_id = doc.get("channel_user_id") or ""
            if doc.get("channel") == Channel.WEB.value and not channel_user_id:
                channel_user_id = doc["user_id"]
            elif doc.get("channel") in composite:
                channel_user_id = channel_user_id.split(":", 1)[0]
            return (
                doc.get("company_id"),
                doc.get("user_id"),
                doc.get("channel"),
                channel_user_id,
                doc.get("assistant_id"),
            )

        return self._deactivate_superseded(canonical_key)

    async def backfill_web_channel_user_ids(self) -> int:
        updates = {
            session_id: {**doc, "channel_user_id": doc["user_id"]}
            for session_id, doc in self._docs.items()
            if doc.get("channel") == Channel.WEB.value and not doc.get("channel_user_id")
        }
        self._commit(updates)
        return len(updates)

    async def strip_composite_channel_user_ids(self, channels: Sequence[str]) -> int:
        wanted = set(channels)
        updates = {
            session_id: {**doc, "channel_user_id": doc["channel_user_id"].split(":", 1)[0]}
            for session_id, doc in self._docs.items()
            if doc.get("channel") in wanted and ":" in (doc.get("channel_user_id") or "")
        }
        self._commit(updates)
        return len(updates)

    async def deactivate_duplicate_active(self) -> int:
        return self._deactivate_superseded(
            lambda doc: tuple(doc.get(column) for column in IDENTITY_COLUMNS)
        )

    def _deactivate_superseded(
        self, key_of: Callable[[dict[str, Any]], tuple[Any, ...]]
    ) -> int:
        """Deactivate all but the most recently active row per key."""
        groups: dict[tuple[Any, ...], list[dict[str, Any]]] = {}
        for doc in self._docs.values():
            if doc.get("active"):
                groups.setdefault(key_of(doc), []).append(doc)

        updates = {}
        for docs in groups.values():
            docs.sort(
                key=lambda doc: doc.get("last_activity_at") or doc["created_at"],
                reverse=True,
            )
            for stale in docs[1:]:
                updates[stale["session_id"]] = {**stale, "active": False}
        self._commit(updates)
        return len(updates)

    async def create_active_identity_index(self) -> bool:
        if TARGET_INDEX.name in self._indexes:
            return False
        if self._violations(self._docs, TARGET_INDEX):
            raise ConflictError(
                f"Cannot create {TARGET_INDEX.name}: duplicate active sessions exist",
                index_name=TARGET_INDEX.name,
            )
        self._indexes[TARGET_INDEX.name] = TARGET_INDEX
        return True
