"""Online evolution of the sessions unique index.

Runs at startup against a live, possibly inconsistent collection. The steps
are order-sensitive: stale unique indexes must be gone before the identity
backfills run, or rewriting channel_user_id can collide under the old,
narrower key. Every step is idempotent, so the routine is safe to re-run.
Failures are logged and reported, never raised.
"""

from collections.abc import Sequence

from pydantic import BaseModel, Field

from omnisession.observability.logging import get_logger
from omnisession.observability.metrics import INDEX_MIGRATION_RUNS, SESSIONS_DEACTIVATED
from omnisession.sessions.enums import DeactivationReason
from omnisession.sessions.models import UniqueIndexInfo
from omnisession.sessions.store import SessionStore

logger = get_logger(__name__)

INDEX_PREFIX: tuple[str, ...] = ("company_id", "user_id")


class IndexMigrationReport(BaseModel):
    """What a run of ensure_session_index changed."""

    succeeded: bool = False
    failed_step: str | None = None
    error: str | None = None
    channel_defaults_backfilled: int = 0
    dropped_indexes: list[str] = Field(default_factory=list)
    web_identities_backfilled: int = 0
    composite_ids_stripped: int = 0
    duplicates_deactivated: int = 0
    index_created: bool = False


def is_stale_index(index: UniqueIndexInfo) -> bool:
    """A unique index from an earlier schema generation.

    Keyed on (company_id, user_id, ...) but not exactly the active-identity index.
    """
    if index.primary:
        return False
    return index.columns[: len(INDEX_PREFIX)] == INDEX_PREFIX and not index.is_target


async def ensure_session_index(
    store: SessionStore,
    composite_id_channels: Sequence[str] = ("telegram", "whatsapp"),
) -> IndexMigrationReport:
    """Bring the sessions collection to the active-identity index.

    Steps, in order:
    1. backfill missing channel / channel_user_id with web / ''
    2. drop stale unique indexes, then deactivate rows that steps 3-4
       would otherwise make collide under the canonical identity
    3. web sessions with empty channel_user_id get user_id
    4. strip legacy 'rawId:agentId' suffixes on composite channels
    5. deactivate all but the most recently active row of duplicated tuples
    6. create the partial unique index
    """
    report = IndexMigrationReport()
    step = "backfill_channel_defaults"
    try:
        report.channel_defaults_backfilled = await store.backfill_channel_defaults()
        if report.channel_defaults_backfilled:
            logger.info(
                "sessions_backfilled_channel_defaults",
                count=report.channel_defaults_backfilled,
            )

        step = "drop_stale_indexes"
        for index in await store.list_unique_indexes():
            if is_stale_index(index):
                await store.drop_index(index.name)
                report.dropped_indexes.append(index.name)
                logger.info("session_index_dropped", index=index.name, columns=index.columns)

        step = "resolve_identity_collisions"
        collisions = await store.deactivate_identity_collisions(list(composite_id_channels))
        if collisions:
            logger.warning("sessions_identity_collisions_deactivated", count=collisions)

        step = "backfill_web_identities"
        report.web_identities_backfilled = await store.backfill_web_channel_user_ids()
        if report.web_identities_backfilled:
            logger.info(
                "sessions_backfilled_web_identity",
                count=report.web_identities_backfilled,
            )

        step = "strip_composite_ids"
        report.composite_ids_stripped = await store.strip_composite_channel_user_ids(
            list(composite_id_channels)
        )
        if report.composite_ids_stripped:
            logger.info(
                "sessions_composite_ids_stripped",
                count=report.composite_ids_stripped,
                channels=list(composite_id_channels),
            )

        step = "deactivate_duplicates"
        report.duplicates_deactivated = collisions + await store.deactivate_duplicate_active()
        if report.duplicates_deactivated:
            SESSIONS_DEACTIVATED.labels(
                reason=DeactivationReason.DEDUPLICATED.value
            ).inc(report.duplicates_deactivated)
            logger.warning(
                "sessions_duplicates_deactivated",
                count=report.duplicates_deactivated,
            )

        step = "create_index"
        report.index_created = await store.create_active_identity_index()
    except Exception as e:
        report.failed_step = step
        report.error = str(e)
        INDEX_MIGRATION_RUNS.labels(outcome="failed").inc()
        logger.exception("session_index_migration_failed", step=step, error=str(e))
        return report

    report.succeeded = True
    INDEX_MIGRATION_RUNS.labels(outcome="succeeded").inc()
    logger.info(
        "session_index_ensured",
        created=report.index_created,
        dropped=report.dropped_indexes,
    )
    return report
