"""Session lifecycle controller.

Keeps at most one active session per identity tuple without any in-process
locking. The store's partial unique index is the only arbiter: a caller
that loses the insert race gets ConflictError, re-reads the winner and
returns it. When even the re-read comes back empty (the winner was ended or
expired in between) the whole cycle is retried a bounded number of times
with jittered backoff before SessionCreateRaceError is raised.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from omnisession.config.models.sessions import SessionsConfig
from omnisession.db.errors import ConflictError
from omnisession.directory.models import Assistant
from omnisession.directory.users import UserDirectory
from omnisession.observability.logging import get_logger
from omnisession.observability.metrics import (
    GET_OR_CREATE_LATENCY,
    SESSION_CREATE_CONFLICTS,
    SESSION_CREATE_RACES,
    SESSIONS_CREATED,
    SESSIONS_DEACTIVATED,
)
from omnisession.sessions.enums import Channel, DeactivationReason
from omnisession.sessions.errors import SessionCreateRaceError, SessionNotFoundError
from omnisession.sessions.models import (
    ResolvedIdentity,
    Session,
    SessionHandle,
    SessionIdentity,
    utc_now,
)
from omnisession.sessions.store import SessionStore

logger = get_logger(__name__)

Clock = Callable[[], datetime]
Sleeper = Callable[[float], Awaitable[None]]


def parse_session_id(session_id: UUID | str) -> UUID | None:
    """Parse a session id, returning None when it is not a UUID."""
    if isinstance(session_id, UUID):
        return session_id
    try:
        return UUID(str(session_id).strip())
    except ValueError:
        return None


def is_expired(session: Session, assistant: Assistant, now: datetime) -> bool:
    """Whether the session outlived its assistant's inactivity TTL."""
    if not assistant.session_ttl_hours:
        return False
    elapsed = now - session.activity_reference
    return elapsed > timedelta(hours=assistant.session_ttl_hours)


class SessionLifecycle:
    """Get-or-create, touch, rotate, activate and end sessions."""

    def __init__(
        self,
        store: SessionStore,
        users: UserDirectory,
        config: SessionsConfig | None = None,
        *,
        clock: Clock = utc_now,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._store = store
        self._users = users
        self._config = config or SessionsConfig()
        self._clock = clock
        self._sleep = sleep

    async def get_or_create(
        self,
        resolved: ResolvedIdentity,
        channel_metadata: dict[str, Any] | None = None,
    ) -> SessionHandle:
        """Return the tuple's active session, creating one if needed.

        An active session past its assistant's TTL is deactivated and
        replaced; its channel metadata is carried over when the caller
        supplies none.

        Raises:
            SessionCreateRaceError: no session could be created or re-read
        """
        with GET_OR_CREATE_LATENCY.time():
            return await self._get_or_create(resolved, channel_metadata)

    async def _get_or_create(
        self,
        resolved: ResolvedIdentity,
        channel_metadata: dict[str, Any] | None,
    ) -> SessionHandle:
        identity = resolved.identity
        attempts = self._config.max_create_attempts

        for attempt in range(1, attempts + 1):
            current = await self._store.find_active(identity)
            if current is not None:
                if not is_expired(current, resolved.assistant, self._clock()):
                    await self._store.touch(current.session_id, self._clock())
                    return SessionHandle(
                        session_id=current.session_id, assistant_id=current.assistant_id
                    )

                if channel_metadata is None and current.channel_metadata:
                    channel_metadata = dict(current.channel_metadata)
                await self._expire(current, resolved.assistant)

            handle = await self._insert_or_recover(identity, channel_metadata)
            if handle is not None:
                return handle

            SESSION_CREATE_CONFLICTS.labels(outcome="retried").inc()
            logger.warning(
                "session_create_conflict_unresolved",
                company_id=str(identity.company_id),
                channel=identity.channel.value,
                attempt=attempt,
                max_attempts=attempts,
            )
            if attempt < attempts:
                await self._backoff(attempt)

        SESSION_CREATE_RACES.inc()
        logger.error(
            "session_create_race_exhausted",
            company_id=str(identity.company_id),
            channel=identity.channel.value,
            attempts=attempts,
        )
        raise SessionCreateRaceError(
            "Failed to create or retrieve session after duplicate key error",
            attempts=attempts,
        )

    async def clear(
        self,
        resolved: ResolvedIdentity,
        channel_metadata: dict[str, Any] | None = None,
    ) -> SessionHandle:
        """Rotate: deactivate the tuple's active sessions and start a fresh one."""
        identity = resolved.identity

        previous = await self._store.find_active(identity)
        if channel_metadata is None and previous is not None and previous.channel_metadata:
            channel_metadata = dict(previous.channel_metadata)

        rotated = await self._store.deactivate_identity(identity)
        if rotated:
            SESSIONS_DEACTIVATED.labels(reason=DeactivationReason.ROTATED.value).inc(rotated)
            logger.info(
                "session_rotated",
                company_id=str(identity.company_id),
                previous_session_id=str(previous.session_id) if previous else None,
                deactivated=rotated,
            )

        attempts = self._config.max_create_attempts
        for attempt in range(1, attempts + 1):
            handle = await self._insert_or_recover(identity, channel_metadata)
            if handle is not None:
                return handle
            SESSION_CREATE_CONFLICTS.labels(outcome="retried").inc()
            if attempt < attempts:
                await self._backoff(attempt)

        SESSION_CREATE_RACES.inc()
        raise SessionCreateRaceError(
            "Failed to create a session after rotation", attempts=attempts
        )

    async def activate_session(
        self,
        session_id: UUID | str,
        company_id: UUID,
        user_id: str,
    ) -> Session:
        """Make an existing session of the caller the active one for its tuple.

        Idempotent: activating the already active session changes nothing.

        Raises:
            SessionNotFoundError: no such session for this company and user
            SessionCreateRaceError: siblings kept reappearing
        """
        parsed = parse_session_id(session_id)
        target = (
            await self._store.get_for_owner(parsed, company_id, user_id) if parsed else None
        )
        if target is None:
            raise SessionNotFoundError("Session not found")
        if target.active:
            return target

        attempts = self._config.max_create_attempts
        for attempt in range(1, attempts + 1):
            superseded = await self._store.deactivate_identity(
                target.identity, exclude=target.session_id
            )
            if superseded:
                SESSIONS_DEACTIVATED.labels(
                    reason=DeactivationReason.SUPERSEDED.value
                ).inc(superseded)
            try:
                await self._store.activate(target.session_id, self._clock())
            except ConflictError:
                # A concurrent get_or_create slipped a sibling in
                if attempt < attempts:
                    await self._backoff(attempt)
                continue

            activated = await self._store.get(target.session_id)
            if activated is None:
                raise SessionNotFoundError("Session not found")
            logger.info(
                "session_activated",
                session_id=str(target.session_id),
                company_id=str(company_id),
                superseded=superseded,
            )
            return activated

        SESSION_CREATE_RACES.inc()
        raise SessionCreateRaceError(
            f"Could not activate session {target.session_id}", attempts=attempts
        )

    async def end_session(self, session_id: UUID | str) -> None:
        """Mark an active session inactive.

        Raises:
            SessionNotFoundError: no active session with this id
        """
        parsed = parse_session_id(session_id)
        if parsed is None or not await self._store.deactivate(parsed):
            raise SessionNotFoundError("Active session not found")

        SESSIONS_DEACTIVATED.labels(reason=DeactivationReason.ENDED.value).inc()
        logger.info("session_ended", session_id=str(parsed))

    async def _expire(self, session: Session, assistant: Assistant) -> None:
        elapsed = self._clock() - session.activity_reference
        if await self._store.deactivate(session.session_id):
            SESSIONS_DEACTIVATED.labels(reason=DeactivationReason.TTL.value).inc()
        logger.info(
            "session_expired_ttl",
            session_id=str(session.session_id),
            inactive_hours=round(elapsed.total_seconds() / 3600, 2),
            ttl_hours=assistant.session_ttl_hours,
        )

    async def _insert_or_recover(
        self,
        identity: SessionIdentity,
        channel_metadata: dict[str, Any] | None,
    ) -> SessionHandle | None:
        """Insert a fresh session; on conflict return the winner, if any."""
        metadata = await self._build_channel_metadata(identity, channel_metadata)
        session = Session.for_identity(identity, channel_metadata=metadata, now=self._clock())

        try:
            await self._store.insert(session)
        except ConflictError as e:
            winner = await self._store.find_active(identity)
            if winner is None:
                return None
            SESSION_CREATE_CONFLICTS.labels(outcome="recovered").inc()
            logger.info(
                "session_create_conflict_recovered",
                session_id=str(winner.session_id),
                index=e.index_name,
            )
            return SessionHandle(session_id=winner.session_id, assistant_id=winner.assistant_id)

        SESSIONS_CREATED.labels(channel=identity.channel.value).inc()
        logger.info(
            "session_created",
            session_id=str(session.session_id),
            company_id=str(identity.company_id),
            assistant_id=str(identity.assistant_id),
            channel=identity.channel.value,
        )
        return SessionHandle(session_id=session.session_id, assistant_id=session.assistant_id)

    async def _build_channel_metadata(
        self,
        identity: SessionIdentity,
        supplied: dict[str, Any] | None,
    ) -> dict[str, Any]:
        if supplied is not None:
            return dict(supplied)
        if identity.channel is not Channel.WEB:
            return {}

        profile = await self._users.get_profile(identity.company_id, identity.user_id)
        if profile is None:
            return {}
        return {"name": profile.name, "email": profile.email, "phone": ""}

    async def _backoff(self, attempt: int) -> None:
        ceiling = min(
            self._config.retry_max_delay_ms,
            self._config.retry_base_delay_ms * 2 ** (attempt - 1),
        )
        await self._sleep(random.uniform(0, ceiling) / 1000)
